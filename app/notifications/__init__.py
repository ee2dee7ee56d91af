"""
Notifications app for campaign owner messages.

This app provides:
- Notification model (one row per donation event, idempotent)
- NotificationService for centralized notification creation
- Celery task for the email copy
- REST API for listing and reading notifications

Usage:
    from notifications.services import NotificationService

    result = NotificationService.create_notification(
        recipient_id=campaign.owner_id,
        notification_type=NotificationType.DONATION_RECEIVED,
        title="New donation received",
        body="Jane donated 25.00 USD to your campaign",
        idempotency_key=f"donation:{donation.id}:received",
    )
"""
