"""
Pytest fixtures for payment tests.

Provides bookings in the states the payment services care about and a
mocked Flutterwave client installed on every service through set_client().

Usage:
    def test_refund(successful_payment, flutterwave_client):
        flutterwave_client.initiate_refund.return_value = RefundResult(...)
        RefundService.initiate_refund(...)
"""

from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from bookings.models import BookingStatus
from payments.adapters import FlutterwaveClient, FlutterwaveConfig
from payments.services import (
    ChargeReconciliationService,
    PaymentService,
    PayoutService,
    RefundService,
)
from payments.state_machines import PaymentAttemptStatus
from payments.tests.factories import (
    BankDetailsFactory,
    BookingFactory,
    BookingLegFactory,
    ExtensionFactory,
    PaymentFactory,
    UserFactory,
)

SERVICES_WITH_CLIENT = (
    ChargeReconciliationService,
    PaymentService,
    PayoutService,
    RefundService,
)


# =============================================================================
# Flutterwave Client
# =============================================================================


@pytest.fixture
def flutterwave_config():
    return FlutterwaveConfig(
        secret_key="FLWSECK_TEST-abc123",
        base_url="https://api.flutterwave.test",
        webhook_url="https://app.example.com",
        timeout_seconds=5,
    )


@pytest.fixture
def flutterwave_client(flutterwave_config):
    """A MagicMock FlutterwaveClient injected into every payment service."""
    client = MagicMock(spec=FlutterwaveClient)
    client.config = flutterwave_config
    for service in SERVICES_WITH_CLIENT:
        service.set_client(client)
    yield client
    for service in SERVICES_WITH_CLIENT:
        service.set_client(None)


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def customer(db):
    return UserFactory()


@pytest.fixture
def other_user(db):
    return UserFactory()


@pytest.fixture
def staff_user(db):
    return UserFactory(is_staff=True)


@pytest.fixture
def fleet_owner(db):
    return UserFactory()


# =============================================================================
# Booking Fixtures
# =============================================================================


@pytest.fixture
def booking(customer, fleet_owner):
    """A PENDING booking whose checkout was initialized with tx_ref booking_tx-1."""
    return BookingFactory(
        user=customer,
        fleet_owner=fleet_owner,
        payment_intent="booking_tx-1",
        total_amount=Decimal("10000.00"),
    )


@pytest.fixture
def extension(booking):
    """A PENDING extension of the booking with tx_ref extension_tx-1."""
    leg = BookingLegFactory(booking=booking)
    return ExtensionFactory(
        booking_leg=leg,
        payment_intent="extension_tx-1",
        total_amount=Decimal("2500.00"),
    )


@pytest.fixture
def bank_details(fleet_owner):
    return BankDetailsFactory(user=fleet_owner, account_number="0690000031")


@pytest.fixture
def completed_booking(customer, fleet_owner, bank_details):
    """A COMPLETED booking owing 9000.00 to a fleet owner with verified bank details."""
    return BookingFactory(
        user=customer,
        fleet_owner=fleet_owner,
        status=BookingStatus.COMPLETED,
        fleet_owner_payout_amount_net=Decimal("9000.00"),
    )


# =============================================================================
# Payment Fixtures
# =============================================================================


@pytest.fixture
def successful_payment(booking):
    """A SUCCESSFUL 10000.00 charge on the customer's booking."""
    return PaymentFactory(
        booking=booking,
        tx_ref="booking_tx-1",
        flutterwave_transaction_id="555",
        status=PaymentAttemptStatus.SUCCESSFUL,
    )


@pytest.fixture
def mock_enqueue():
    """Patch NotificationService.enqueue where confirmation services call it."""
    with patch("bookings.services.NotificationService.enqueue") as mock:
        yield mock
