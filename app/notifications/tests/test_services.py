"""
Tests for NotificationService.

Tests cover:
- Job persistence keyed by job_id
- Duplicate enqueue collapsing
- Delivery scheduled only after commit

Usage:
    pytest app/notifications/tests/test_services.py -v
"""

from unittest.mock import patch

import pytest

from notifications.models import NotificationJob, NotificationJobStatus, NotificationType
from notifications.services import NotificationService


@pytest.mark.django_db
class TestEnqueue:
    def test_creates_pending_job(self, django_capture_on_commit_callbacks):
        with patch("notifications.tasks.deliver_notification.delay"):
            with django_capture_on_commit_callbacks(execute=True):
                result = NotificationService.enqueue(
                    job_id="booking-confirmed-abc",
                    notification_type=NotificationType.BOOKING_CONFIRMED,
                    recipient_email="customer@example.com",
                    subject="Your booking is confirmed!",
                    context={"booking_reference": "BK-1"},
                )

        assert result.success
        job = result.data
        assert job.job_id == "booking-confirmed-abc"
        assert job.status == NotificationJobStatus.PENDING
        assert job.context == {"booking_reference": "BK-1"}

    def test_schedules_delivery_on_commit(self, django_capture_on_commit_callbacks):
        with patch("notifications.tasks.deliver_notification.delay") as mock_delay:
            with django_capture_on_commit_callbacks(execute=False) as callbacks:
                NotificationService.enqueue(
                    job_id="booking-confirmed-abc",
                    notification_type=NotificationType.BOOKING_CONFIRMED,
                    recipient_email="customer@example.com",
                )

            mock_delay.assert_not_called()
            assert len(callbacks) == 1
            callbacks[0]()

        mock_delay.assert_called_once_with("booking-confirmed-abc")

    def test_duplicate_job_id_collapses(self, django_capture_on_commit_callbacks):
        with patch("notifications.tasks.deliver_notification.delay") as mock_delay:
            with django_capture_on_commit_callbacks(execute=True):
                first = NotificationService.enqueue(
                    job_id="booking-extension-confirmed-xyz",
                    notification_type=NotificationType.BOOKING_EXTENSION_CONFIRMED,
                    recipient_email="customer@example.com",
                )
                second = NotificationService.enqueue(
                    job_id="booking-extension-confirmed-xyz",
                    notification_type=NotificationType.BOOKING_EXTENSION_CONFIRMED,
                    recipient_email="customer@example.com",
                )

        assert second.success
        assert first.data.pk == second.data.pk
        assert NotificationJob.objects.count() == 1
        mock_delay.assert_called_once()
