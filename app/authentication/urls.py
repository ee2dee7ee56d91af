"""
URL configuration for authentication endpoints.

Routes:
    /token/          - Obtain JWT access/refresh pair (POST)
    /token/refresh/  - Refresh access token (POST)

Donors that are logged in get their donations attributed to them;
anonymous donors skip these endpoints entirely.
"""

from django.urls import path

from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

app_name = "authentication"

urlpatterns = [
    path("token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
]
