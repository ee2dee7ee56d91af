"""
URL configuration for the Django application.

The `urlpatterns` list routes URLs to views. This is the root URL configuration
that includes all app-specific routes.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/                  - Authentication endpoints (simplejwt)
        token/                     - Obtain JWT pair
        token/refresh/             - Refresh access token
    /api/v1/donations/             - Donation endpoints
        intents/                   - Create a donation PaymentIntent (POST)
        confirm/                   - Client-side confirmation (POST)
        webhooks/stripe/           - Stripe webhook endpoint (POST)
        {id}/                      - Donation + campaign snapshot (GET)
    /api/v1/notifications/         - Campaign owner inbox
        {id}/read/                 - Mark as read
        read-all/                  - Mark all as read
        unread-count/              - Unread badge count

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    # Authentication (JWT)
    path("auth/", include("authentication.urls")),
    # Donations
    path("donations/", include("donations.urls")),
    # Notifications
    path("notifications/", include("notifications.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Donations Admin"
admin.site.site_title = "Donations Admin Portal"
admin.site.index_title = "Campaigns, donations and webhook events"
