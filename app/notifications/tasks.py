"""
Celery tasks for notification delivery.

Tasks:
    deliver_notification: Send a queued NotificationJob by e-mail

Design:
    - Tasks receive the job_id string, not the model
    - Re-running on a non-PENDING job is a no-op
    - A job with no recipient address fails permanently without retry
    - Mail backend errors are retried with backoff, then recorded as FAILED

Usage:
    from notifications.tasks import deliver_notification

    # Called automatically by NotificationService.enqueue()
    deliver_notification.delay("booking-confirmed-<uuid>")
"""

from __future__ import annotations

import logging

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone as django_timezone

from notifications.models import NotificationJob, NotificationJobStatus

logger = logging.getLogger(__name__)


def _render_body(job: NotificationJob) -> str:
    lines = [job.subject or job.get_notification_type_display(), ""]
    lines.extend(f"{key}: {value}" for key, value in sorted(job.context.items()))
    return "\n".join(lines)


def _mark_failed(job: NotificationJob, error: str) -> None:
    job.status = NotificationJobStatus.FAILED
    job.error = error
    job.save(update_fields=["status", "error", "updated_at"])


@shared_task(
    bind=True,
    max_retries=3,
    retry_backoff=True,
)
def deliver_notification(self, job_id: str) -> bool:
    """
    Deliver a queued notification by e-mail.

    Flow:
        1. Fetch the job; skip if missing or not PENDING
        2. Fail permanently if there is no recipient address
        3. send_mail through the configured backend
        4. On success: status=SENT, sent_at=now
        5. On backend error: retry, then status=FAILED once retries run out

    Args:
        job_id: NotificationJob.job_id

    Returns:
        True if sent or skipped, False on permanent failure
    """
    try:
        job = NotificationJob.objects.get(job_id=job_id)
    except NotificationJob.DoesNotExist:
        logger.warning(f"Notification job {job_id} not found")
        return True

    if job.status != NotificationJobStatus.PENDING:
        logger.info(f"Notification job {job_id} status is {job.status}, skipping")
        return True

    if not job.recipient_email:
        _mark_failed(job, "Recipient has no email address")
        logger.warning(f"Notification job {job_id} has no recipient email")
        return False

    try:
        send_mail(
            subject=job.subject or job.get_notification_type_display(),
            message=_render_body(job),
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[job.recipient_email],
            fail_silently=False,
        )
    except Exception as exc:
        if self.request.retries >= self.max_retries:
            _mark_failed(job, str(exc))
            logger.exception(f"Notification job {job_id} failed permanently")
            return False
        logger.warning(f"Notification job {job_id} failed, will retry: {exc}")
        raise self.retry(exc=exc)

    job.status = NotificationJobStatus.SENT
    job.sent_at = django_timezone.now()
    job.error = ""
    job.save(update_fields=["status", "sent_at", "error", "updated_at"])

    logger.info(f"Notification job {job_id} sent")
    return True
