"""
Authentication application.

Provides the email-based User model that donors and campaign owners
share. Login and token issuance are served by djangorestframework-simplejwt.

Usage:
    from authentication.models import User
"""
