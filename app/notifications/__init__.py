"""
Notifications app for queued e-mail notifications.

This app provides:
- NotificationJob model keyed by a deterministic job id
- NotificationService.enqueue for fire-and-forget queueing
- Celery task for e-mail delivery

Usage:
    from notifications.services import NotificationService

    result = NotificationService.enqueue(
        job_id=f"booking-confirmed-{booking.id}",
        notification_type=NotificationType.BOOKING_CONFIRMED,
        recipient_email=booking.user.email,
    )

    if result.success:
        job = result.data
"""
