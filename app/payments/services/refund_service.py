"""
Refund service for customer refunds on Flutterwave charges.

Refunds are split into a fast local claim and a slow provider call:

1. Claim: a conditional UPDATE moves the Payment to REFUND_PROCESSING only
   if it still has the status we read (SUCCESSFUL or REFUND_ERROR). The
   affected-row count is the compare-and-swap result; losing callers get
   RefundInProgressError and Flutterwave is never called for them.
2. Provider call with the claimed idempotency key.
3. Outcome:
   - accepted: stays REFUND_PROCESSING until refund.completed arrives
   - explicit rejection: REFUND_FAILED (terminal), failure result
   - any other provider error: REFUND_ERROR (retriable, key kept), re-raised

Idempotency key policy:
    A retry from REFUND_ERROR reuses the stored key so Flutterwave collapses
    it onto the earlier attempt. A claim from SUCCESSFUL generates a new key.

Usage:
    from payments.services import RefundService

    result = RefundService.initiate_refund(
        user=request.user,
        tx_ref="booking_123",
        amount=Decimal("5000.00"),
        reason="Trip cancelled",
    )
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from django.utils import timezone

from core.services import BaseService, ServiceResult

from payments.adapters import (
    FlutterwaveClient,
    IdempotencyKeyGenerator,
    get_flutterwave_client,
)
from payments.exceptions import (
    PaymentNotFoundError,
    PaymentPermissionError,
    PaymentValidationError,
    ProviderError,
    ProviderRejectedError,
    RefundInProgressError,
)
from payments.models import Payment
from payments.state_machines import REFUNDABLE_STATUSES, PaymentAttemptStatus

if TYPE_CHECKING:
    from payments.webhooks.events import RefundCompletedEvent


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class RefundInitiationResult:
    """
    Outcome of an accepted refund request.

    Attributes:
        payment: The Payment, now REFUND_PROCESSING
        refund_id: Flutterwave refund id
        idempotency_key: Key sent with the request
        provider_status: Status Flutterwave reported for the refund
    """

    payment: Payment
    refund_id: str | None
    idempotency_key: str
    provider_status: str


# =============================================================================
# Refund Service
# =============================================================================


class RefundService(BaseService):
    """
    Initiates refunds and reconciles refund.completed webhooks.

    Caller errors raise PaymentError subclasses (rendered as 4xx by the API
    exception handler). An explicit provider decline is a normal failure
    result. Ambiguous provider errors propagate after the Payment is parked
    in REFUND_ERROR.
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
    def initiate_refund(
        cls,
        user,
        tx_ref: str,
        amount: Decimal,
        reason: str = "",
    ) -> ServiceResult[RefundInitiationResult]:
        """
        Claim the refund attempt on a payment and send it to Flutterwave.

        Args:
            user: Requesting user; must own the booking/extension or be staff
            tx_ref: Payment reference
            amount: Amount to refund, at most the charged amount
            reason: Free-text reason, logged only

        Raises:
            PaymentNotFoundError: No payment with this tx_ref
            PaymentPermissionError: Caller does not own the payment
            PaymentValidationError: Bad amount, state or missing transaction id
            RefundInProgressError: Another caller holds the refund attempt
            ProviderError: Outcome unknown; payment left in REFUND_ERROR
        """
        logger = cls.get_logger()

        payment = (
            Payment.objects.select_related("booking", "extension__booking_leg__booking")
            .filter(tx_ref=tx_ref)
            .first()
        )
        if payment is None:
            raise PaymentNotFoundError(
                "Payment not found", details={"tx_ref": tx_ref}
            )

        cls._validate_refund(user, payment, amount)

        observed_status = payment.status
        is_retry = observed_status == PaymentAttemptStatus.REFUND_ERROR
        if is_retry and payment.refund_idempotency_key:
            idempotency_key = payment.refund_idempotency_key
        else:
            idempotency_key = IdempotencyKeyGenerator.refund_key(payment.id)

        # Guard on the exact status read so the key policy matches the row.
        claimed = Payment.objects.filter(id=payment.id, status=observed_status).update(
            status=PaymentAttemptStatus.REFUND_PROCESSING,
            refund_idempotency_key=idempotency_key,
            updated_at=timezone.now(),
        )
        if claimed == 0:
            logger.info(
                "Refund claim lost, another refund is in progress",
                extra={"payment_id": str(payment.id), "tx_ref": tx_ref},
            )
            raise RefundInProgressError(
                "Refund already in progress or payment status changed",
                details={"tx_ref": tx_ref},
            )

        logger.info(
            "Refund claimed",
            extra={
                "payment_id": str(payment.id),
                "tx_ref": tx_ref,
                "amount": str(amount),
                "reason": reason,
                "is_retry": is_retry,
                "idempotency_key": idempotency_key,
            },
        )

        client = cls.get_client()
        try:
            refund = client.initiate_refund(
                transaction_id=payment.flutterwave_transaction_id,
                amount=amount,
                idempotency_key=idempotency_key,
                callback_url=client.config.callback_url,
            )
        except ProviderRejectedError as e:
            cls._leave_processing(payment, PaymentAttemptStatus.REFUND_FAILED)
            logger.warning(
                "Refund rejected by Flutterwave",
                extra={
                    "payment_id": str(payment.id),
                    "tx_ref": tx_ref,
                    "provider_message": e.message,
                },
            )
            return ServiceResult.failure(e.message, error_code="REFUND_REJECTED")
        except ProviderError as e:
            cls._leave_processing(payment, PaymentAttemptStatus.REFUND_ERROR)
            logger.error(
                "Refund outcome unknown, payment set to REFUND_ERROR",
                extra={
                    "payment_id": str(payment.id),
                    "tx_ref": tx_ref,
                    "error_code": e.error_code,
                    "idempotency_key": idempotency_key,
                },
            )
            raise

        payment.refresh_from_db()
        logger.info(
            "Refund accepted by Flutterwave",
            extra={
                "payment_id": str(payment.id),
                "tx_ref": tx_ref,
                "refund_id": refund.id,
                "provider_status": refund.status,
            },
        )
        return ServiceResult.success(
            RefundInitiationResult(
                payment=payment,
                refund_id=refund.id,
                idempotency_key=idempotency_key,
                provider_status=refund.status,
            )
        )

    @classmethod
    def _validate_refund(cls, user, payment: Payment, amount: Decimal) -> None:
        if not (user.is_staff or payment.owner_user_id == user.id):
            raise PaymentPermissionError(
                "You do not have permission to refund this payment"
            )

        if payment.status not in REFUNDABLE_STATUSES:
            raise PaymentValidationError(
                "Cannot refund a payment that is not successful or in refund error state",
                details={"status": payment.status},
            )

        if amount is None or amount <= 0:
            raise PaymentValidationError("Refund amount must be positive")

        if payment.amount_charged is None or amount > payment.amount_charged:
            raise PaymentValidationError(
                "Refund amount cannot exceed the amount charged",
                details={
                    "amount": str(amount),
                    "amount_charged": str(payment.amount_charged),
                },
            )

        if not payment.flutterwave_transaction_id:
            raise PaymentValidationError(
                "Payment has no Flutterwave transaction to refund"
            )

    @classmethod
    def _leave_processing(cls, payment: Payment, status: str) -> int:
        # A refund.completed webhook may already have settled the payment.
        return Payment.objects.filter(
            id=payment.id, status=PaymentAttemptStatus.REFUND_PROCESSING
        ).update(status=status, updated_at=timezone.now())

    # =========================================================================
    # Reconciliation
    # =========================================================================

    @classmethod
    def reconcile_refund(cls, event: RefundCompletedEvent) -> ServiceResult[Payment]:
        """
        Apply a refund.completed webhook to its payment.

        Only a payment in REFUND_PROCESSING is updated; anything else is a
        stale or duplicate delivery.

        Classification:
            status not "completed*"             -> REFUND_FAILED
            refunded >= charged                 -> REFUNDED
            refunded < charged, or charged unknown -> PARTIALLY_REFUNDED
        """
        logger = cls.get_logger()
        log_context = {
            "transaction_id": event.transaction_id,
            "flw_ref": event.flw_ref,
            "event_type": event.event_type,
        }

        if not event.transaction_id or event.amount_refunded is None:
            logger.warning(
                "refund.completed missing TransactionId or numeric AmountRefunded, dropping",
                extra=log_context,
            )
            return ServiceResult.failure(
                "Missing TransactionId or AmountRefunded",
                error_code="MALFORMED_EVENT",
            )

        payment = Payment.objects.filter(
            flutterwave_transaction_id=event.transaction_id
        ).first()
        if payment is None:
            logger.warning("Payment not found for refund webhook", extra=log_context)
            return ServiceResult.failure(
                "Payment not found", error_code="PAYMENT_NOT_FOUND"
            )

        if payment.status != PaymentAttemptStatus.REFUND_PROCESSING:
            logger.info(
                "Payment not in REFUND_PROCESSING, skipping",
                extra={
                    **log_context,
                    "payment_id": str(payment.id),
                    "current_status": payment.status,
                },
            )
            return ServiceResult.success(payment)

        new_status = cls._classify(payment, event)
        audit = {
            "refundAmount": str(event.amount_refunded),
            "refundStatus": event.status,
            "refundFlwRef": event.flw_ref,
            "refundedAt": timezone.now().isoformat(),
        }

        updated = Payment.objects.filter(
            id=payment.id, status=PaymentAttemptStatus.REFUND_PROCESSING
        ).update(
            status=new_status,
            webhook_payload={**(payment.webhook_payload or {}), "refund": audit},
            updated_at=timezone.now(),
        )
        if updated == 0:
            logger.info(
                "Payment left REFUND_PROCESSING concurrently, skipping",
                extra={**log_context, "payment_id": str(payment.id)},
            )
            return ServiceResult.success(payment)

        payment.refresh_from_db()
        logger.info(
            "Payment refund status updated from webhook",
            extra={
                **log_context,
                "payment_id": str(payment.id),
                "new_status": new_status,
                "amount_refunded": str(event.amount_refunded),
            },
        )
        return ServiceResult.success(payment)

    @classmethod
    def _classify(cls, payment: Payment, event: RefundCompletedEvent) -> str:
        # Flutterwave sends "completed", "completed-bank-transfer", "completed-momo", ...
        if not (event.status or "").lower().startswith("completed"):
            return PaymentAttemptStatus.REFUND_FAILED

        if payment.amount_charged is None:
            cls.get_logger().warning(
                "Payment missing amount_charged, treating refund as partial",
                extra={
                    "payment_id": str(payment.id),
                    "amount_refunded": str(event.amount_refunded),
                },
            )
            return PaymentAttemptStatus.PARTIALLY_REFUNDED

        if event.amount_refunded >= payment.amount_charged:
            return PaymentAttemptStatus.REFUNDED
        return PaymentAttemptStatus.PARTIALLY_REFUNDED
