"""
Django signals for payments app.

This module defines signal handlers for:
- Queueing a payout when a booking becomes COMPLETED

Usage:
    Signals are automatically connected when app is ready.
    See apps.py for registration.
"""

from __future__ import annotations

import logging

from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from bookings.models import Booking, BookingStatus

logger = logging.getLogger(__name__)


@receiver(post_save, sender=Booking)
def queue_payout_on_completion(sender, instance, created, **kwargs):
    """
    Queue payout processing after a booking is saved as COMPLETED.

    Saves that name update_fields without "status" are ignored. The task
    is enqueued on commit so the worker sees the committed status; repeat
    enqueues are harmless because payout initiation is idempotent per
    booking.
    """
    update_fields = kwargs.get("update_fields")
    if update_fields and "status" not in update_fields:
        return

    if instance.status != BookingStatus.COMPLETED:
        return

    from payments.tasks import process_payout_for_booking

    booking_id = str(instance.id)
    logger.info("Booking completed, queueing payout", extra={"booking_id": booking_id})
    transaction.on_commit(lambda: process_payout_for_booking.delay(booking_id))
