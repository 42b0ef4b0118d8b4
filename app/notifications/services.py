"""
Notification service layer.

Services:
    NotificationService: Fire-and-forget enqueueing of notification jobs

Design Principles:
    - Services are stateless (use class methods)
    - Enqueueing is keyed by a deterministic job id; a second enqueue with
      the same id returns the existing job and schedules nothing
    - Delivery is scheduled after the surrounding transaction commits, so a
      rolled-back confirmation never sends an e-mail

Usage:
    from notifications.services import NotificationService

    NotificationService.enqueue(
        job_id=f"booking-confirmed-{booking.id}",
        notification_type=NotificationType.BOOKING_CONFIRMED,
        recipient_email=booking.user.email,
        subject="Your booking is confirmed!",
        context={"booking_reference": booking.booking_reference},
    )
"""

from __future__ import annotations

from django.db import transaction

from core.services import BaseService, ServiceResult

from notifications.models import NotificationJob


class NotificationService(BaseService):
    """
    Service for queueing notifications.

    Methods:
        enqueue: Persist a job by job id and schedule its delivery once
    """

    @classmethod
    def enqueue(
        cls,
        job_id: str,
        notification_type: str,
        recipient_email: str,
        subject: str = "",
        context: dict | None = None,
    ) -> ServiceResult[NotificationJob]:
        """
        Queue a notification for delivery.

        Args:
            job_id: Deterministic id; duplicates collapse onto one job
            notification_type: NotificationType value
            recipient_email: Address to deliver to
            subject: E-mail subject line
            context: Flat template data

        Returns:
            ServiceResult with the NotificationJob (new or existing)
        """
        # Import tasks here to avoid circular imports
        from notifications import tasks

        job, created = NotificationJob.objects.get_or_create(
            job_id=job_id,
            defaults={
                "notification_type": notification_type,
                "recipient_email": recipient_email or "",
                "subject": subject,
                "context": context or {},
            },
        )

        if not created:
            cls.get_logger().info(
                "Duplicate notification enqueue collapsed",
                extra={"job_id": job_id, "status": job.status},
            )
            return ServiceResult.success(job)

        transaction.on_commit(lambda: tasks.deliver_notification.delay(job_id))

        cls.get_logger().info(
            "Notification queued",
            extra={"job_id": job_id, "notification_type": notification_type},
        )
        return ServiceResult.success(job)
