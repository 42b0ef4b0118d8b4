"""
Notification system models.

This module defines:
- NotificationType: Kinds of notification the payment flow emits
- NotificationJobStatus: Delivery state of a queued job
- NotificationJob: One queued notification, keyed by a deterministic job id

Design Decisions:
    - job_id is unique; enqueueing the same job id twice yields one row
      and one delivery
    - Context is a flat JSON dict; rendering beyond a subject line is
      handled outside this app
    - Jobs are never deleted; FAILED rows remain for inspection

Usage:
    from notifications.models import NotificationJob, NotificationType

    NotificationJob.objects.get_or_create(
        job_id=f"booking-confirmed-{booking.id}",
        defaults={
            "notification_type": NotificationType.BOOKING_CONFIRMED,
            "recipient_email": booking.user.email,
        },
    )
"""

from __future__ import annotations

from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

# =============================================================================
# Enums
# =============================================================================


class NotificationType(models.TextChoices):
    BOOKING_CONFIRMED = "booking_confirmed", "Booking Confirmed"
    BOOKING_EXTENSION_CONFIRMED = (
        "booking_extension_confirmed",
        "Booking Extension Confirmed",
    )


class NotificationJobStatus(models.TextChoices):
    """
    Delivery state.

    PENDING → SENT
    PENDING → FAILED
    """

    PENDING = "pending", "Pending"
    SENT = "sent", "Sent"
    FAILED = "failed", "Failed"


# =============================================================================
# Models
# =============================================================================


class NotificationJob(UUIDPrimaryKeyMixin, BaseModel):
    """
    A queued notification.

    Fields:
        job_id: Deterministic id; duplicate enqueues collapse onto one row
        notification_type: NotificationType
        recipient_email: Address the e-mail is sent to
        subject: E-mail subject line
        context: Flat template data for the message body
        status: NotificationJobStatus
        sent_at: When delivery succeeded
        error: Last delivery error, if any
    """

    job_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Deterministic job id used to collapse duplicate enqueues",
    )
    notification_type = models.CharField(
        max_length=50,
        choices=NotificationType.choices,
    )
    recipient_email = models.EmailField(blank=True)
    subject = models.CharField(max_length=255, blank=True)
    context = models.JSONField(default=dict, blank=True)
    status = models.CharField(
        max_length=20,
        choices=NotificationJobStatus.choices,
        default=NotificationJobStatus.PENDING,
        db_index=True,
    )
    sent_at = models.DateTimeField(null=True, blank=True)
    error = models.TextField(blank=True)

    class Meta:
        db_table = "notifications_notification_job"
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"NotificationJob({self.job_id}, {self.status})"
