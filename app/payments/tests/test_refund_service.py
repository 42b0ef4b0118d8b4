"""
Tests for RefundService.

Tests cover:
1. Refund claim via compare-and-swap on the observed status
2. Idempotency key reuse from REFUND_ERROR and fresh keys otherwise
3. Validation (ownership, state, amount) without mutation
4. Provider outcomes: accepted, declined, ambiguous
5. refund.completed reconciliation and classification
"""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import patch

import pytest

from payments.adapters import RefundResult
from payments.exceptions import (
    PaymentNotFoundError,
    PaymentPermissionError,
    PaymentValidationError,
    ProviderNetworkError,
    ProviderRejectedError,
    ProviderTimeoutError,
    RefundInProgressError,
)
from payments.models import Payment
from payments.services import RefundService
from payments.state_machines import PaymentAttemptStatus
from payments.tests.factories import PaymentFactory
from payments.webhooks.events import RefundCompletedEvent

CALLBACK_URL = "https://app.example.com/api/v1/payments/webhooks/flutterwave/"


@pytest.fixture
def refund_accepted(flutterwave_client):
    flutterwave_client.initiate_refund.return_value = RefundResult(
        id="9001",
        amount_refunded=Decimal("5000.00"),
        status="completed",
    )
    return flutterwave_client


@pytest.fixture
def refund_processing_payment(booking):
    return PaymentFactory(
        booking=booking,
        tx_ref="booking_tx-1",
        flutterwave_transaction_id="555",
        status=PaymentAttemptStatus.REFUND_PROCESSING,
        refund_idempotency_key="refund_key-1",
        webhook_payload={"id": 555, "tx_ref": "booking_tx-1"},
    )


def refund_event(**overrides):
    data = {
        "TransactionId": 555,
        "AmountRefunded": 10000,
        "status": "completed",
        "FlwRef": "FLW-REFUND-1",
    }
    data.update(overrides)
    return RefundCompletedEvent.from_data(data)


# =============================================================================
# Initiation
# =============================================================================


@pytest.mark.django_db
class TestInitiateRefund:
    def test_accepted_refund_moves_to_processing(
        self, customer, successful_payment, refund_accepted
    ):
        result = RefundService.initiate_refund(
            user=customer, tx_ref="booking_tx-1", amount=Decimal("5000.00")
        )

        assert result.success
        successful_payment.refresh_from_db()
        assert successful_payment.status == PaymentAttemptStatus.REFUND_PROCESSING
        assert successful_payment.refund_idempotency_key == result.data.idempotency_key
        assert result.data.refund_id == "9001"
        assert result.data.provider_status == "completed"
        refund_accepted.initiate_refund.assert_called_once_with(
            transaction_id="555",
            amount=Decimal("5000.00"),
            idempotency_key=successful_payment.refund_idempotency_key,
            callback_url=CALLBACK_URL,
        )

    def test_fresh_key_from_successful(
        self, customer, successful_payment, refund_accepted
    ):
        Payment.objects.filter(id=successful_payment.id).update(
            refund_idempotency_key="refund_stale"
        )

        result = RefundService.initiate_refund(
            user=customer, tx_ref="booking_tx-1", amount=Decimal("5000.00")
        )

        key = result.data.idempotency_key
        assert key != "refund_stale"
        assert key.startswith(f"refund_{successful_payment.id}_")

    def test_retry_from_refund_error_reuses_key(self, customer, booking, refund_accepted):
        payment = PaymentFactory(
            booking=booking,
            status=PaymentAttemptStatus.REFUND_ERROR,
            refund_idempotency_key="refund_previous_attempt",
        )

        result = RefundService.initiate_refund(
            user=customer, tx_ref=payment.tx_ref, amount=Decimal("5000.00")
        )

        assert result.success
        assert result.data.idempotency_key == "refund_previous_attempt"
        kwargs = refund_accepted.initiate_refund.call_args.kwargs
        assert kwargs["idempotency_key"] == "refund_previous_attempt"
        payment.refresh_from_db()
        assert payment.status == PaymentAttemptStatus.REFUND_PROCESSING

    def test_retry_from_refund_error_without_key_generates_one(
        self, customer, booking, refund_accepted
    ):
        payment = PaymentFactory(
            booking=booking,
            status=PaymentAttemptStatus.REFUND_ERROR,
            refund_idempotency_key=None,
        )

        result = RefundService.initiate_refund(
            user=customer, tx_ref=payment.tx_ref, amount=Decimal("5000.00")
        )

        assert result.data.idempotency_key.startswith(f"refund_{payment.id}_")

    def test_staff_can_refund_any_payment(
        self, staff_user, successful_payment, refund_accepted
    ):
        result = RefundService.initiate_refund(
            user=staff_user, tx_ref="booking_tx-1", amount=Decimal("5000.00")
        )

        assert result.success

    def test_extension_payment_owner_can_refund(
        self, customer, extension, refund_accepted
    ):
        payment = PaymentFactory(booking=None, extension=extension, tx_ref="extension_tx-1")

        result = RefundService.initiate_refund(
            user=customer, tx_ref="extension_tx-1", amount=Decimal("100.00")
        )

        assert result.success
        payment.refresh_from_db()
        assert payment.status == PaymentAttemptStatus.REFUND_PROCESSING


# =============================================================================
# Validation
# =============================================================================


@pytest.mark.django_db
class TestInitiateRefundValidation:
    def test_unknown_payment(self, customer, flutterwave_client):
        with pytest.raises(PaymentNotFoundError):
            RefundService.initiate_refund(
                user=customer, tx_ref="missing", amount=Decimal("1.00")
            )

    def test_non_owner_rejected(self, other_user, successful_payment, flutterwave_client):
        with pytest.raises(PaymentPermissionError):
            RefundService.initiate_refund(
                user=other_user, tx_ref="booking_tx-1", amount=Decimal("1.00")
            )

        successful_payment.refresh_from_db()
        assert successful_payment.status == PaymentAttemptStatus.SUCCESSFUL
        flutterwave_client.initiate_refund.assert_not_called()

    @pytest.mark.parametrize(
        "status",
        [
            PaymentAttemptStatus.PENDING,
            PaymentAttemptStatus.FAILED,
            PaymentAttemptStatus.REFUND_PROCESSING,
            PaymentAttemptStatus.REFUNDED,
            PaymentAttemptStatus.PARTIALLY_REFUNDED,
            PaymentAttemptStatus.REFUND_FAILED,
        ],
    )
    def test_non_refundable_status_is_not_mutated(
        self, customer, booking, flutterwave_client, status
    ):
        payment = PaymentFactory(
            booking=booking, status=status, refund_idempotency_key="refund_existing"
        )

        with pytest.raises(PaymentValidationError):
            RefundService.initiate_refund(
                user=customer, tx_ref=payment.tx_ref, amount=Decimal("1.00")
            )

        payment.refresh_from_db()
        assert payment.status == status
        assert payment.refund_idempotency_key == "refund_existing"
        flutterwave_client.initiate_refund.assert_not_called()

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-1"), Decimal("10000.01")])
    def test_invalid_amount(self, customer, successful_payment, flutterwave_client, amount):
        with pytest.raises(PaymentValidationError):
            RefundService.initiate_refund(
                user=customer, tx_ref="booking_tx-1", amount=amount
            )

        flutterwave_client.initiate_refund.assert_not_called()

    def test_full_amount_allowed(self, customer, successful_payment, refund_accepted):
        result = RefundService.initiate_refund(
            user=customer, tx_ref="booking_tx-1", amount=Decimal("10000.00")
        )

        assert result.success

    def test_missing_transaction_id(self, customer, booking, flutterwave_client):
        payment = PaymentFactory(booking=booking, flutterwave_transaction_id=None)

        with pytest.raises(PaymentValidationError):
            RefundService.initiate_refund(
                user=customer, tx_ref=payment.tx_ref, amount=Decimal("1.00")
            )


# =============================================================================
# Concurrency
# =============================================================================


@pytest.mark.django_db
class TestRefundClaim:
    def test_lost_claim_never_calls_provider(
        self, customer, successful_payment, flutterwave_client
    ):
        def claimed_elsewhere(payment_id):
            # Another request wins the claim between our read and our update.
            Payment.objects.filter(id=payment_id).update(
                status=PaymentAttemptStatus.REFUND_PROCESSING,
                refund_idempotency_key="refund_winner",
            )
            return "refund_loser"

        with patch(
            "payments.services.refund_service.IdempotencyKeyGenerator.refund_key",
            side_effect=claimed_elsewhere,
        ):
            with pytest.raises(RefundInProgressError):
                RefundService.initiate_refund(
                    user=customer, tx_ref="booking_tx-1", amount=Decimal("5000.00")
                )

        flutterwave_client.initiate_refund.assert_not_called()
        successful_payment.refresh_from_db()
        assert successful_payment.refund_idempotency_key == "refund_winner"

    def test_second_request_after_claim_is_rejected(
        self, customer, successful_payment, refund_accepted
    ):
        RefundService.initiate_refund(
            user=customer, tx_ref="booking_tx-1", amount=Decimal("5000.00")
        )

        with pytest.raises(PaymentValidationError):
            RefundService.initiate_refund(
                user=customer, tx_ref="booking_tx-1", amount=Decimal("5000.00")
            )

        assert refund_accepted.initiate_refund.call_count == 1


# =============================================================================
# Provider Outcomes
# =============================================================================


@pytest.mark.django_db
class TestRefundProviderOutcomes:
    def test_decline_marks_refund_failed(
        self, customer, successful_payment, flutterwave_client
    ):
        flutterwave_client.initiate_refund.side_effect = ProviderRejectedError(
            "Refund amount exceeds transaction amount", status_code=400
        )

        result = RefundService.initiate_refund(
            user=customer, tx_ref="booking_tx-1", amount=Decimal("5000.00")
        )

        assert not result.success
        assert result.error_code == "REFUND_REJECTED"
        assert result.error == "Refund amount exceeds transaction amount"
        successful_payment.refresh_from_db()
        assert successful_payment.status == PaymentAttemptStatus.REFUND_FAILED

    @pytest.mark.parametrize("error_class", [ProviderTimeoutError, ProviderNetworkError])
    def test_ambiguous_error_parks_in_refund_error(
        self, customer, successful_payment, flutterwave_client, error_class
    ):
        flutterwave_client.initiate_refund.side_effect = error_class("no response")

        with pytest.raises(error_class):
            RefundService.initiate_refund(
                user=customer, tx_ref="booking_tx-1", amount=Decimal("5000.00")
            )

        successful_payment.refresh_from_db()
        assert successful_payment.status == PaymentAttemptStatus.REFUND_ERROR
        assert successful_payment.refund_idempotency_key.startswith(
            f"refund_{successful_payment.id}_"
        )

    def test_retry_after_timeout_sends_same_key(
        self, customer, successful_payment, flutterwave_client
    ):
        flutterwave_client.initiate_refund.side_effect = [
            ProviderTimeoutError("no response"),
            RefundResult(id="9001", amount_refunded=Decimal("5000.00"), status="completed"),
        ]

        with pytest.raises(ProviderTimeoutError):
            RefundService.initiate_refund(
                user=customer, tx_ref="booking_tx-1", amount=Decimal("5000.00")
            )
        result = RefundService.initiate_refund(
            user=customer, tx_ref="booking_tx-1", amount=Decimal("5000.00")
        )

        first, second = flutterwave_client.initiate_refund.call_args_list
        assert first.kwargs["idempotency_key"] == second.kwargs["idempotency_key"]
        assert result.data.payment.status == PaymentAttemptStatus.REFUND_PROCESSING

    def test_webhook_settled_before_decline_is_kept(
        self, customer, successful_payment, flutterwave_client
    ):
        def settled_then_declined(**kwargs):
            Payment.objects.filter(id=successful_payment.id).update(
                status=PaymentAttemptStatus.REFUNDED
            )
            raise ProviderRejectedError("Duplicate refund", status_code=400)

        flutterwave_client.initiate_refund.side_effect = settled_then_declined

        RefundService.initiate_refund(
            user=customer, tx_ref="booking_tx-1", amount=Decimal("5000.00")
        )

        successful_payment.refresh_from_db()
        assert successful_payment.status == PaymentAttemptStatus.REFUNDED


# =============================================================================
# refund.completed Reconciliation
# =============================================================================


@pytest.mark.django_db
class TestReconcileRefund:
    @pytest.mark.parametrize(
        "refund_status,amount,expected",
        [
            ("completed", 10000, PaymentAttemptStatus.REFUNDED),
            ("completed-momo", 10000, PaymentAttemptStatus.REFUNDED),
            ("COMPLETED", 12000, PaymentAttemptStatus.REFUNDED),
            ("completed", 5000, PaymentAttemptStatus.PARTIALLY_REFUNDED),
            ("failed", 10000, PaymentAttemptStatus.REFUND_FAILED),
        ],
    )
    def test_classification(
        self, refund_processing_payment, refund_status, amount, expected
    ):
        result = RefundService.reconcile_refund(
            refund_event(status=refund_status, AmountRefunded=amount)
        )

        assert result.success
        refund_processing_payment.refresh_from_db()
        assert refund_processing_payment.status == expected

    def test_records_refund_audit(self, refund_processing_payment):
        RefundService.reconcile_refund(refund_event(AmountRefunded="5000.50"))

        refund_processing_payment.refresh_from_db()
        payload = refund_processing_payment.webhook_payload
        assert payload["tx_ref"] == "booking_tx-1"
        assert payload["refund"]["refundAmount"] == "5000.50"
        assert payload["refund"]["refundStatus"] == "completed"
        assert payload["refund"]["refundFlwRef"] == "FLW-REFUND-1"
        assert payload["refund"]["refundedAt"]

    def test_unknown_charged_amount_is_partial(self, refund_processing_payment):
        Payment.objects.filter(id=refund_processing_payment.id).update(
            amount_charged=None
        )

        RefundService.reconcile_refund(refund_event(AmountRefunded=10000))

        refund_processing_payment.refresh_from_db()
        assert (
            refund_processing_payment.status == PaymentAttemptStatus.PARTIALLY_REFUNDED
        )

    @pytest.mark.parametrize(
        "status",
        [
            PaymentAttemptStatus.SUCCESSFUL,
            PaymentAttemptStatus.REFUNDED,
            PaymentAttemptStatus.REFUND_ERROR,
        ],
    )
    def test_stale_delivery_is_ignored(self, refund_processing_payment, status):
        Payment.objects.filter(id=refund_processing_payment.id).update(status=status)

        result = RefundService.reconcile_refund(refund_event(status="failed"))

        assert result.success
        refund_processing_payment.refresh_from_db()
        assert refund_processing_payment.status == status
        assert "refund" not in refund_processing_payment.webhook_payload

    def test_duplicate_delivery_applies_once(self, refund_processing_payment):
        RefundService.reconcile_refund(refund_event(AmountRefunded=5000))
        RefundService.reconcile_refund(refund_event(AmountRefunded=10000))

        refund_processing_payment.refresh_from_db()
        assert (
            refund_processing_payment.status == PaymentAttemptStatus.PARTIALLY_REFUNDED
        )
        assert refund_processing_payment.webhook_payload["refund"]["refundAmount"] == "5000"

    @pytest.mark.parametrize(
        "overrides",
        [{"TransactionId": None}, {"AmountRefunded": None}, {"AmountRefunded": "abc"}],
    )
    def test_missing_fields_make_no_queries(
        self, refund_processing_payment, django_assert_num_queries, overrides
    ):
        event = refund_event(**overrides)

        with django_assert_num_queries(0):
            result = RefundService.reconcile_refund(event)

        assert result.error_code == "MALFORMED_EVENT"

    def test_unknown_transaction(self, refund_processing_payment):
        result = RefundService.reconcile_refund(refund_event(TransactionId=999))

        assert result.error_code == "PAYMENT_NOT_FOUND"
        refund_processing_payment.refresh_from_db()
        assert refund_processing_payment.status == PaymentAttemptStatus.REFUND_PROCESSING
