"""
Celery tasks for payouts.

This module provides async tasks for:
- Initiating the payout of a completed booking
- Periodically re-queueing payouts that failed or never finished

Usage:
    from payments.tasks import process_payout_for_booking

    # Queued by the Booking post_save signal once a booking is COMPLETED
    process_payout_for_booking.delay(str(booking.id))

    # Runs hourly via celery-beat
    from payments.tasks import retry_failed_payouts
    retry_failed_payouts.delay()
"""

from __future__ import annotations

import logging

from celery import shared_task
from django.conf import settings

from bookings.models import Booking, BookingStatus
from payments.exceptions import (
    ProviderNetworkError,
    ProviderTimeoutError,
    ProviderUnknownError,
)
from payments.services import PayoutService

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Maximum bookings re-queued per sweep
BATCH_SIZE = 100


# =============================================================================
# Payout Tasks
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(ProviderTimeoutError, ProviderNetworkError, ProviderUnknownError),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": settings.PAYOUT_MAX_RETRIES},
    acks_late=True,
)
def process_payout_for_booking(self, booking_id: str) -> dict:
    """
    Initiate the payout for a completed booking.

    The transfer reference is derived from the PayoutTransaction id, so a
    retry after an ambiguous provider error resends the same reference and
    cannot pay twice.

    Args:
        booking_id: UUID of the Booking

    Returns:
        Dict with the outcome status
    """
    booking = Booking.objects.filter(id=booking_id).first()

    if booking is None:
        logger.warning("Booking not found for payout", extra={"booking_id": booking_id})
        return {"status": "skipped", "reason": "booking_not_found"}

    if booking.status != BookingStatus.COMPLETED:
        logger.info(
            "Booking is not completed, skipping payout",
            extra={"booking_id": booking_id, "status": booking.status},
        )
        return {"status": "skipped", "reason": "booking_not_completed"}

    logger.info(
        "Processing payout for booking",
        extra={"booking_id": booking_id, "attempt": self.request.retries + 1},
    )

    result = PayoutService.initiate_payout(booking)

    if not result.success:
        return {
            "status": "failed",
            "booking_id": booking_id,
            "error_code": result.error_code,
            "error": result.error,
        }

    payout = result.data
    if payout is None:
        return {"status": "skipped", "reason": "not_payable", "booking_id": booking_id}

    return {
        "status": payout.status,
        "booking_id": booking_id,
        "payout_transaction_id": str(payout.id),
    }


@shared_task(bind=True)
def retry_failed_payouts(self) -> dict:
    """
    Re-queue payouts for completed bookings that are not paid out.

    Picks up FAILED payouts, PENDING_DISBURSEMENT payouts whose transfer
    call had an ambiguous outcome and ran out of retries, and completed
    bookings that never got a payout. Safe to run repeatedly because
    process_payout_for_booking skips payouts already in flight.

    Returns:
        Dict with queued_count
    """
    booking_ids = PayoutService.get_bookings_needing_payout(limit=BATCH_SIZE)

    for booking_id in booking_ids:
        process_payout_for_booking.delay(str(booking_id))

    logger.info(
        "Queued payout retries",
        extra={"queued_count": len(booking_ids)},
    )
    return {"queued_count": len(booking_ids)}
