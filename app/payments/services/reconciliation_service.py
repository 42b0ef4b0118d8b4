"""
Charge reconciliation for charge.completed webhooks.

The webhook body is never trusted on its own. Every charge event is
re-fetched from Flutterwave's verification endpoint, and only the verified
record decides the Payment's status and amounts.

Flow:
    1. Field guard: tx_ref and transaction id must be present (no query otherwise)
    2. Verify the transaction with Flutterwave; any disagreement drops the event
    3. Resolve the one Booking or Extension whose payment_intent is the tx_ref
    4. Create the Payment keyed by tx_ref (first writer wins)
    5. On creation of a SUCCESSFUL payment, confirm the booking/extension

Steps 4 and 5 share one transaction, so a Payment row exists only if its
confirmation was applied with it. Redeliveries find the row and stop.

Usage:
    from payments.services import ChargeReconciliationService

    result = ChargeReconciliationService.reconcile_charge(event)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from django.db import IntegrityError
from django.utils import timezone

from bookings.models import Booking, Extension
from bookings.services import (
    BookingConfirmationService,
    ExtensionConfirmationService,
)
from core.services import BaseService, ServiceResult

from payments.adapters import FlutterwaveClient, get_flutterwave_client
from payments.exceptions import ProviderRejectedError
from payments.models import Payment
from payments.state_machines import PaymentAttemptStatus
from payments.webhooks.events import parse_amount, parse_text

if TYPE_CHECKING:
    from payments.webhooks.events import ChargeCompletedEvent


class ChargeReconciliationService(BaseService):
    """
    Turns a verified charge.completed event into exactly one Payment row.

    Result error codes (all are drops, never retried by the caller):
        MALFORMED_EVENT: tx_ref or transaction id missing
        VERIFICATION_FAILED: Flutterwave could not verify the transaction
        VERIFICATION_MISMATCH: Verified data disagrees with the webhook
        OWNER_NOT_FOUND: No booking or extension carries this tx_ref
        OWNER_AMBIGUOUS: More than one booking/extension carries this tx_ref
        INTEGRITY_ERROR: The transaction id is already recorded elsewhere

    Provider errors other than an explicit rejection propagate so that the
    webhook is redelivered.
    """

    _client: FlutterwaveClient | None = None

    @classmethod
    def get_client(cls) -> FlutterwaveClient:
        return cls._client or get_flutterwave_client()

    @classmethod
    def set_client(cls, client: FlutterwaveClient | None) -> None:
        """Set the Flutterwave client (for testing)."""
        cls._client = client

    @classmethod
    def reconcile_charge(cls, event: ChargeCompletedEvent) -> ServiceResult[Payment]:
        logger = cls.get_logger()
        log_context = {
            "tx_ref": event.tx_ref,
            "transaction_id": event.transaction_id,
            "event_type": event.event_type,
        }

        if not event.tx_ref or not event.transaction_id:
            logger.warning(
                "charge.completed missing tx_ref or transaction id, dropping",
                extra=log_context,
            )
            return ServiceResult.failure(
                "Missing tx_ref or transaction id", error_code="MALFORMED_EVENT"
            )

        logger.info("Processing charge.completed", extra=log_context)

        try:
            envelope = cls.get_client().verify_transaction(event.transaction_id)
        except ProviderRejectedError as e:
            logger.warning(
                "Flutterwave refused to verify transaction, dropping",
                extra={**log_context, "provider_message": e.message},
            )
            return ServiceResult.failure(
                "Transaction verification failed", error_code="VERIFICATION_FAILED"
            )

        verified = envelope.get("data")
        if envelope.get("status") != "success" or not isinstance(verified, dict):
            logger.warning(
                "Transaction verification failed, dropping",
                extra={**log_context, "verification_status": envelope.get("status")},
            )
            return ServiceResult.failure(
                "Transaction verification failed", error_code="VERIFICATION_FAILED"
            )

        mismatch = cls._find_mismatch(event, verified)
        if mismatch:
            field_name, webhook_value, verified_value = mismatch
            logger.error(
                "Verified transaction disagrees with webhook, dropping",
                extra={
                    **log_context,
                    "field": field_name,
                    "webhook_value": str(webhook_value),
                    "verified_value": str(verified_value),
                },
            )
            return ServiceResult.failure(
                f"Verification mismatch on {field_name}",
                error_code="VERIFICATION_MISMATCH",
            )

        if str(verified.get("status", "")).lower() == "successful":
            status = PaymentAttemptStatus.SUCCESSFUL
        else:
            status = PaymentAttemptStatus.FAILED

        owner_result = cls._resolve_owner(event.tx_ref)
        if not owner_result.success:
            return owner_result
        booking, extension = owner_result.data

        return cls._record_payment(event, verified, status, booking, extension)

    # =========================================================================
    # Verification
    # =========================================================================

    @staticmethod
    def _find_mismatch(
        event: ChargeCompletedEvent, verified: dict[str, Any]
    ) -> tuple[str, Any, Any] | None:
        """
        First field where Flutterwave disagrees with the webhook.

        Returns (field, webhook value, verified value), or None when the
        tx_ref, transaction id and charged amount all agree.
        """
        verified_tx_ref = parse_text(verified.get("tx_ref"))
        if verified_tx_ref != event.tx_ref:
            return "tx_ref", event.tx_ref, verified_tx_ref

        verified_id = parse_text(verified.get("id"))
        if verified_id != event.transaction_id:
            return "transaction_id", event.transaction_id, verified_id

        verified_amount = parse_amount(verified.get("charged_amount"))
        if verified_amount is None or verified_amount != event.charged_amount:
            return "charged_amount", event.charged_amount, verified_amount

        return None

    # =========================================================================
    # Materialization
    # =========================================================================

    @classmethod
    def _resolve_owner(
        cls, tx_ref: str
    ) -> ServiceResult[tuple[Booking | None, Extension | None]]:
        logger = cls.get_logger()
        bookings = list(Booking.objects.filter(payment_intent=tx_ref)[:2])
        extensions = list(Extension.objects.filter(payment_intent=tx_ref)[:2])
        matches = len(bookings) + len(extensions)

        if matches == 0:
            logger.warning(
                "No booking or extension found for tx_ref, dropping",
                extra={"tx_ref": tx_ref},
            )
            return ServiceResult.failure(
                "No booking or extension for tx_ref", error_code="OWNER_NOT_FOUND"
            )

        if matches > 1:
            logger.error(
                "tx_ref matches more than one booking/extension, manual review required",
                extra={
                    "tx_ref": tx_ref,
                    "booking_ids": [str(b.id) for b in bookings],
                    "extension_ids": [str(e.id) for e in extensions],
                },
            )
            return ServiceResult.failure(
                "tx_ref matches more than one owner", error_code="OWNER_AMBIGUOUS"
            )

        if bookings:
            return ServiceResult.success((bookings[0], None))
        return ServiceResult.success((None, extensions[0]))

    @classmethod
    def _record_payment(
        cls,
        event: ChargeCompletedEvent,
        verified: dict[str, Any],
        status: str,
        booking: Booking | None,
        extension: Extension | None,
    ) -> ServiceResult[Payment]:
        logger = cls.get_logger()
        owner = booking or extension
        defaults = {
            "booking": booking,
            "extension": extension,
            "flutterwave_transaction_id": event.transaction_id,
            "flutterwave_reference": parse_text(verified.get("flw_ref")) or event.flw_ref,
            "amount_expected": owner.total_amount,
            "amount_charged": parse_amount(verified.get("charged_amount")),
            "currency": parse_text(verified.get("currency")) or event.currency or "NGN",
            "status": status,
            "payment_method": (
                parse_text(verified.get("payment_type")) or event.payment_type or ""
            ),
            "confirmed_at": (
                timezone.now() if status == PaymentAttemptStatus.SUCCESSFUL else None
            ),
            "webhook_payload": event.data,
        }

        try:
            with cls.atomic():
                payment, created = Payment.objects.get_or_create(
                    tx_ref=event.tx_ref, defaults=defaults
                )
                if created and payment.status == PaymentAttemptStatus.SUCCESSFUL:
                    if booking is not None:
                        BookingConfirmationService.confirm_from_payment(payment)
                    else:
                        ExtensionConfirmationService.confirm_from_payment(payment)
        except IntegrityError:
            logger.error(
                "Transaction id already recorded on another payment, manual review required",
                extra={"tx_ref": event.tx_ref, "transaction_id": event.transaction_id},
                exc_info=True,
            )
            return ServiceResult.failure(
                "Transaction id already recorded", error_code="INTEGRITY_ERROR"
            )

        if not created:
            logger.info(
                "Payment already recorded for tx_ref, skipping",
                extra={
                    "tx_ref": event.tx_ref,
                    "payment_id": str(payment.id),
                    "status": payment.status,
                },
            )
            return ServiceResult.success(payment)

        logger.info(
            "Payment recorded from verified charge",
            extra={
                "tx_ref": event.tx_ref,
                "payment_id": str(payment.id),
                "status": payment.status,
                "booking_id": str(booking.id) if booking else None,
                "extension_id": str(extension.id) if extension else None,
            },
        )
        return ServiceResult.success(payment)
