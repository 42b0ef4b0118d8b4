"""
Tests for PaymentService.

Tests cover:
- Checkout creation for bookings and extensions
- Server-side amount check and entity state checks
- Ownership checks on initialization and status lookup
"""

import uuid
from decimal import Decimal

import pytest

from bookings.models import BookingStatus, ExtensionStatus, PaymentStatus
from payments.adapters import PaymentLinkParams, PaymentLinkResult
from payments.exceptions import (
    PaymentNotFoundError,
    PaymentPermissionError,
    PaymentValidationError,
    ProviderUnknownError,
)
from payments.services import PaymentService
from payments.state_machines import PaymentAttemptStatus
from payments.tests.factories import PaymentFactory

CHECKOUT_URL = "https://checkout.flutterwave.test/v3/hosted/pay/abc123"


@pytest.fixture
def link_created(flutterwave_client):
    def create(params):
        return PaymentLinkResult(tx_ref=params.tx_ref, checkout_url=CHECKOUT_URL)

    flutterwave_client.create_payment_link.side_effect = create
    return flutterwave_client


# =============================================================================
# Initialization
# =============================================================================


@pytest.mark.django_db
class TestInitializePayment:
    def test_booking_checkout(self, customer, booking, link_created):
        result = PaymentService.initialize_payment(
            user=customer,
            entity_type="booking",
            entity_id=booking.id,
            amount=Decimal("10000.00"),
            callback_url="https://app.example.com/done",
        )

        assert result.success
        assert result.data.payment_intent_id == f"booking_{booking.id}"
        assert result.data.checkout_url == CHECKOUT_URL
        booking.refresh_from_db()
        assert booking.payment_intent == f"booking_{booking.id}"

    def test_link_params(self, customer, booking, link_created):
        PaymentService.initialize_payment(
            user=customer,
            entity_type="booking",
            entity_id=booking.id,
            amount=Decimal("10000.00"),
            callback_url="https://app.example.com/done",
        )

        params = link_created.create_payment_link.call_args.args[0]
        assert isinstance(params, PaymentLinkParams)
        assert params.amount == Decimal("10000.00")
        assert params.redirect_url == "https://app.example.com/done"
        assert params.customer_email == customer.email
        assert params.entity_type == "booking"
        assert params.metadata == {
            "type": "booking",
            "entityId": str(booking.id),
            "userId": str(customer.id),
        }

    def test_extension_checkout(self, customer, extension, link_created):
        result = PaymentService.initialize_payment(
            user=customer,
            entity_type="extension",
            entity_id=extension.id,
            amount=Decimal("2500.00"),
            callback_url="https://app.example.com/done",
        )

        assert result.data.payment_intent_id == f"extension_{extension.id}"
        extension.refresh_from_db()
        assert extension.payment_intent == f"extension_{extension.id}"

    def test_reinitializing_keeps_same_tx_ref(self, customer, booking, link_created):
        kwargs = dict(
            user=customer,
            entity_type="booking",
            entity_id=booking.id,
            amount=Decimal("10000.00"),
            callback_url="https://app.example.com/done",
        )

        first = PaymentService.initialize_payment(**kwargs)
        second = PaymentService.initialize_payment(**kwargs)

        assert first.data.payment_intent_id == second.data.payment_intent_id

    def test_amount_mismatch(self, customer, booking, flutterwave_client):
        with pytest.raises(PaymentValidationError) as exc_info:
            PaymentService.initialize_payment(
                user=customer,
                entity_type="booking",
                entity_id=booking.id,
                amount=Decimal("1.00"),
                callback_url="https://app.example.com/done",
            )

        assert exc_info.value.details == {"expected": "10000.00"}
        flutterwave_client.create_payment_link.assert_not_called()
        booking.refresh_from_db()
        assert booking.payment_intent == "booking_tx-1"

    def test_not_owner(self, other_user, booking, flutterwave_client):
        with pytest.raises(PaymentPermissionError):
            PaymentService.initialize_payment(
                user=other_user,
                entity_type="booking",
                entity_id=booking.id,
                amount=Decimal("10000.00"),
                callback_url="https://app.example.com/done",
            )

    @pytest.mark.parametrize("status", [BookingStatus.CANCELLED, BookingStatus.REJECTED])
    def test_unpayable_booking(self, customer, booking, flutterwave_client, status):
        booking.status = status
        booking.save()

        with pytest.raises(PaymentValidationError):
            PaymentService.initialize_payment(
                user=customer,
                entity_type="booking",
                entity_id=booking.id,
                amount=Decimal("10000.00"),
                callback_url="https://app.example.com/done",
            )

    def test_rejected_extension(self, customer, extension, flutterwave_client):
        extension.status = ExtensionStatus.REJECTED
        extension.save()

        with pytest.raises(PaymentValidationError):
            PaymentService.initialize_payment(
                user=customer,
                entity_type="extension",
                entity_id=extension.id,
                amount=Decimal("2500.00"),
                callback_url="https://app.example.com/done",
            )

    def test_already_paid(self, customer, booking, flutterwave_client):
        booking.payment_status = PaymentStatus.PAID
        booking.save()

        with pytest.raises(PaymentValidationError):
            PaymentService.initialize_payment(
                user=customer,
                entity_type="booking",
                entity_id=booking.id,
                amount=Decimal("10000.00"),
                callback_url="https://app.example.com/done",
            )

    @pytest.mark.parametrize("entity_id", [uuid.uuid4(), "not-a-uuid"])
    def test_unknown_entity(self, customer, flutterwave_client, entity_id):
        with pytest.raises(PaymentNotFoundError):
            PaymentService.initialize_payment(
                user=customer,
                entity_type="extension",
                entity_id=entity_id,
                amount=Decimal("1.00"),
                callback_url="https://app.example.com/done",
            )

    def test_unsupported_entity_type(self, customer, flutterwave_client):
        with pytest.raises(PaymentValidationError):
            PaymentService.initialize_payment(
                user=customer,
                entity_type="subscription",
                entity_id=uuid.uuid4(),
                amount=Decimal("1.00"),
                callback_url="https://app.example.com/done",
            )

    def test_provider_error_leaves_intent_unchanged(
        self, customer, booking, flutterwave_client
    ):
        flutterwave_client.create_payment_link.side_effect = ProviderUnknownError(
            "Bad gateway", status_code=502
        )

        with pytest.raises(ProviderUnknownError):
            PaymentService.initialize_payment(
                user=customer,
                entity_type="booking",
                entity_id=booking.id,
                amount=Decimal("10000.00"),
                callback_url="https://app.example.com/done",
            )

        booking.refresh_from_db()
        assert booking.payment_intent == "booking_tx-1"


# =============================================================================
# Status
# =============================================================================


@pytest.mark.django_db
class TestGetPaymentStatus:
    def test_owner_sees_status(self, customer, booking, successful_payment):
        result = PaymentService.get_payment_status(user=customer, tx_ref="booking_tx-1")

        data = result.data
        assert data["tx_ref"] == "booking_tx-1"
        assert data["status"] == PaymentAttemptStatus.SUCCESSFUL
        assert data["amount_charged"] == Decimal("10000.00")
        assert data["booking"] == {"id": booking.id, "status": booking.status}
        assert data["extension"] is None

    def test_extension_payment_status(self, customer, extension):
        PaymentFactory(booking=None, extension=extension, tx_ref="extension_tx-1")

        result = PaymentService.get_payment_status(user=customer, tx_ref="extension_tx-1")

        assert result.data["booking"] is None
        assert result.data["extension"] == {"id": extension.id, "status": extension.status}

    def test_non_owner(self, other_user, successful_payment):
        with pytest.raises(PaymentPermissionError):
            PaymentService.get_payment_status(user=other_user, tx_ref="booking_tx-1")

    def test_unknown_payment(self, customer):
        with pytest.raises(PaymentNotFoundError):
            PaymentService.get_payment_status(user=customer, tx_ref="missing")
