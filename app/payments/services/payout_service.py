"""
Payout service for transfers to fleet owners.

This module provides the PayoutService class which pays a completed
booking's net amount to the fleet owner's verified bank account and
reconciles Flutterwave's transfer.completed webhook.

Initiation is idempotent per booking:
1. One PayoutTransaction row per booking. A concurrent initiator that loses
   the unique constraint re-reads and continues with the winner's row.
2. The transfer reference is derived from the row id (payout_<id>) and is
   stored before the call, so every attempt for the booking sends the same
   reference and the webhook can always find the row. A FAILED row is
   reopened to PENDING_DISBURSEMENT before its next attempt.
3. The provider call runs outside any transaction. Its outcome is written
   together with the booking's overall_payout_status in one transaction,
   and only while the row is still PENDING_DISBURSEMENT; a transfer.completed
   webhook that settled it during the call wins.

Error Handling:
    - Explicit rejection / auth failure: FAILED with a note, booking FAILED
    - Timeout, network or unknown error: row stays PENDING_DISBURSEMENT and
      the error is re-raised for the Celery task to retry

Usage:
    from payments.services import PayoutService

    result = PayoutService.initiate_payout(booking)
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import IntegrityError
from django.db.models import Q
from django.utils import timezone
from django_fsm import can_proceed

from bookings.models import BankDetails, Booking, BookingStatus, PayoutStatus
from core.services import BaseService, ServiceResult

from payments.adapters import (
    FlutterwaveClient,
    IdempotencyKeyGenerator,
    TransferParams,
    TransferResult,
    get_flutterwave_client,
)
from payments.exceptions import ProviderAuthError, ProviderError, ProviderRejectedError
from payments.models import PayoutTransaction
from payments.state_machines import PayoutTransactionStatus

if TYPE_CHECKING:
    from payments.webhooks.events import TransferCompletedEvent


# =============================================================================
# Constants
# =============================================================================

# A PENDING_DISBURSEMENT row older than this had an ambiguous transfer call.
STALE_PENDING_DISBURSEMENT = timedelta(minutes=15)


# =============================================================================
# Payout Service
# =============================================================================


class PayoutService(BaseService):
    """
    Initiates fleet-owner payouts and reconciles transfer webhooks.

    Usage:
        # From the Celery task once a booking is COMPLETED
        result = PayoutService.initiate_payout(booking)

        # From the webhook router
        result = PayoutService.reconcile_transfer(event)
    """

    _client: FlutterwaveClient | None = None

    @classmethod
    def get_client(cls) -> FlutterwaveClient:
        return cls._client or get_flutterwave_client()

    @classmethod
    def set_client(cls, client: FlutterwaveClient | None) -> None:
        """Set the Flutterwave client (for testing)."""
        cls._client = client

    # =========================================================================
    # Initiation
    # =========================================================================

    @classmethod
    def initiate_payout(cls, booking: Booking) -> ServiceResult[PayoutTransaction | None]:
        """
        Create or resume the booking's payout and send the transfer.

        Returns:
            success(None) when skipped (zero amount, no verified bank details)
            success(payout) when already in flight, done, or now PROCESSING
            failure TRANSFER_REJECTED when Flutterwave declined the transfer

        Raises:
            ProviderError: Ambiguous outcome; the row stays PENDING_DISBURSEMENT
        """
        logger = cls.get_logger()
        log_context = {
            "booking_id": str(booking.id),
            "booking_reference": booking.booking_reference,
        }

        amount = booking.fleet_owner_payout_amount_net
        if not amount or amount <= 0:
            logger.info("Payout amount is zero, skipping payout", extra=log_context)
            return ServiceResult.success(None)

        bank = BankDetails.objects.filter(
            user_id=booking.fleet_owner_id, is_verified=True
        ).first()
        if bank is None:
            logger.warning(
                "Fleet owner has no verified bank details, skipping payout",
                extra={**log_context, "fleet_owner_id": str(booking.fleet_owner_id)},
            )
            return ServiceResult.success(None)

        payout = cls._create_or_get_payout(booking, bank)
        log_context["payout_transaction_id"] = str(payout.id)

        if payout.is_in_flight:
            logger.info(
                "Payout already in flight or paid out, skipping",
                extra={**log_context, "status": payout.status},
            )
            return ServiceResult.success(payout)

        reference = IdempotencyKeyGenerator.payout_reference(payout.id)
        prepared = cls._prepare_attempt(payout.id, reference)
        if prepared is None:
            logger.info(
                "Payout is not in an initiable state, skipping",
                extra={**log_context, "status": payout.status},
            )
            return ServiceResult.success(
                PayoutTransaction.objects.get(id=payout.id)
            )
        payout = prepared

        params = TransferParams(
            bank_code=bank.bank_code,
            account_number=bank.account_number,
            amount=payout.amount_to_pay,
            reference=reference,
            booking_id=str(booking.id),
            booking_reference=booking.booking_reference,
        )

        try:
            result = cls.get_client().initiate_transfer(params)
        except (ProviderRejectedError, ProviderAuthError) as e:
            payout = cls._record_failure(payout.id, booking.id, e.message)
            logger.warning(
                "Transfer rejected by Flutterwave, payout failed",
                extra={**log_context, "error_code": e.error_code, "reason": e.message},
            )
            return ServiceResult.failure(e.message, error_code="TRANSFER_REJECTED")
        except ProviderError as e:
            logger.error(
                "Transfer outcome unknown, payout left pending for retry",
                extra={**log_context, "error_code": e.error_code, "reference": reference},
            )
            raise

        payout = cls._record_processing(payout.id, booking.id, result, reference)
        logger.info(
            "Transfer accepted by Flutterwave",
            extra={
                **log_context,
                "reference": reference,
                "transfer_id": result.id,
                "status": payout.status,
            },
        )
        return ServiceResult.success(payout)

    @classmethod
    def _create_or_get_payout(cls, booking: Booking, bank: BankDetails) -> PayoutTransaction:
        try:
            with cls.atomic():
                return PayoutTransaction.objects.create(
                    booking=booking,
                    fleet_owner_id=booking.fleet_owner_id,
                    amount_to_pay=booking.fleet_owner_payout_amount_net,
                    currency=settings.PAYOUT_CURRENCY,
                    payout_method_details=(
                        f"Bank: {bank.bank_name}, Account: ****{bank.account_number[-4:]}"
                    ),
                    initiated_at=timezone.now(),
                )
        except IntegrityError:
            cls.get_logger().info(
                "Payout already exists for booking, resuming it",
                extra={"booking_id": str(booking.id)},
            )
            return PayoutTransaction.objects.get(booking=booking)

    @classmethod
    def _prepare_attempt(cls, payout_id, reference: str) -> PayoutTransaction | None:
        """
        Pin the reference and leave the row PENDING_DISBURSEMENT for the call.

        A FAILED row is reopened first. Returns None when another worker or
        a webhook moved the row since it was read.
        """
        with cls.atomic():
            payout = PayoutTransaction.objects.select_for_update().get(id=payout_id)
            if can_proceed(payout.reopen):
                payout.reopen()
            elif payout.status != PayoutTransactionStatus.PENDING_DISBURSEMENT:
                return None
            payout.payout_provider_reference = reference
            payout.save()
        return payout

    @classmethod
    def _superseded(cls, payout: PayoutTransaction) -> bool:
        # transfer.completed may have landed while the call was in flight.
        if payout.status == PayoutTransactionStatus.PENDING_DISBURSEMENT:
            return False
        cls.get_logger().info(
            "Payout settled while the transfer call was in flight, keeping it",
            extra={"payout_transaction_id": str(payout.id), "status": payout.status},
        )
        return True

    @classmethod
    def _record_processing(
        cls, payout_id, booking_id, result: TransferResult, reference: str
    ) -> PayoutTransaction:
        with cls.atomic():
            payout = PayoutTransaction.objects.select_for_update().get(id=payout_id)
            if cls._superseded(payout):
                return payout
            payout.start_processing(transfer_id=result.id, reference=reference)
            payout.save()
            Booking.objects.filter(id=booking_id).update(
                overall_payout_status=PayoutStatus.PROCESSING,
                updated_at=timezone.now(),
            )
        return payout

    @classmethod
    def _record_failure(cls, payout_id, booking_id, notes: str) -> PayoutTransaction:
        with cls.atomic():
            payout = PayoutTransaction.objects.select_for_update().get(id=payout_id)
            if cls._superseded(payout):
                return payout
            payout.fail(notes=notes)
            payout.save()
            Booking.objects.filter(id=booking_id).update(
                overall_payout_status=PayoutStatus.FAILED,
                updated_at=timezone.now(),
            )
        return payout

    # =========================================================================
    # Reconciliation
    # =========================================================================

    @classmethod
    def reconcile_transfer(
        cls, event: TransferCompletedEvent
    ) -> ServiceResult[PayoutTransaction]:
        """
        Apply a transfer.completed webhook to its payout.

        PAID_OUT and FAILED payouts are left untouched. Otherwise a
        "SUCCESSFUL" status (any case) pays the payout out and anything
        else fails it; completed_at is stamped either way.
        """
        logger = cls.get_logger()
        log_context = {
            "reference": event.reference,
            "transfer_id": event.transfer_id,
            "transfer_status": event.status,
            "event_type": event.event_type,
        }

        if not event.reference or not event.status:
            logger.warning(
                "transfer.completed missing reference or status, dropping",
                extra=log_context,
            )
            return ServiceResult.failure(
                "Missing reference or status", error_code="MALFORMED_EVENT"
            )

        with cls.atomic():
            payout = (
                PayoutTransaction.objects.select_for_update()
                .filter(payout_provider_reference=event.reference)
                .first()
            )
            if payout is None:
                logger.warning("Payout transaction not found for webhook", extra=log_context)
                return ServiceResult.failure(
                    "Payout transaction not found", error_code="PAYOUT_NOT_FOUND"
                )

            log_context["payout_transaction_id"] = str(payout.id)

            if payout.is_final:
                logger.info(
                    "Payout transaction already finalized, skipping",
                    extra={**log_context, "current_status": payout.status},
                )
                return ServiceResult.success(payout)

            succeeded = event.status.upper() == "SUCCESSFUL"
            transition = payout.mark_paid_out if succeeded else payout.fail
            if not can_proceed(transition):
                logger.warning(
                    "Payout transaction cannot accept transfer outcome, skipping",
                    extra={**log_context, "current_status": payout.status},
                )
                return ServiceResult.success(payout)

            if succeeded:
                payout.mark_paid_out(amount_paid=event.amount)
                booking_status = PayoutStatus.PAID
            else:
                payout.fail(
                    notes=event.complete_message or f"Transfer {event.status}"
                )
                booking_status = PayoutStatus.FAILED
            payout.completed_at = timezone.now()
            payout.save()

            Booking.objects.filter(id=payout.booking_id).update(
                overall_payout_status=booking_status,
                updated_at=timezone.now(),
            )

        logger.info(
            "Payout transaction status updated from webhook",
            extra={**log_context, "new_status": payout.status},
        )
        return ServiceResult.success(payout)

    # =========================================================================
    # Query Methods
    # =========================================================================

    @classmethod
    def get_bookings_needing_payout(cls, limit: int = 100) -> list:
        """
        Ids of COMPLETED bookings whose payout should be (re)attempted.

        Covers FAILED payouts, PENDING_DISBURSEMENT payouts older than
        STALE_PENDING_DISBURSEMENT, and bookings with a positive payout
        amount that never got a PayoutTransaction.
        """
        stale_before = timezone.now() - STALE_PENDING_DISBURSEMENT
        return list(
            Booking.objects.filter(status=BookingStatus.COMPLETED)
            .filter(
                Q(payout_transaction__status=PayoutTransactionStatus.FAILED)
                | Q(
                    payout_transaction__status=PayoutTransactionStatus.PENDING_DISBURSEMENT,
                    payout_transaction__created_at__lt=stale_before,
                )
                | Q(
                    payout_transaction__isnull=True,
                    fleet_owner_payout_amount_net__gt=0,
                )
            )
            .order_by("updated_at")
            .values_list("id", flat=True)[:limit]
        )
