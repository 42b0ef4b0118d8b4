"""
Test configuration and fixtures for booking tests.

Usage:
    def test_example(booking, customer):
        assert booking.user == customer
"""

from unittest.mock import patch

import pytest

from bookings.tests.factories import (
    BookingFactory,
    BookingLegFactory,
    ExtensionFactory,
    UserFactory,
)


@pytest.fixture
def customer(db):
    return UserFactory()


@pytest.fixture
def fleet_owner(db):
    return UserFactory()


@pytest.fixture
def booking(customer, fleet_owner):
    """A PENDING booking awaiting payment."""
    return BookingFactory(
        user=customer,
        fleet_owner=fleet_owner,
        payment_intent="booking_tx-1",
    )


@pytest.fixture
def booking_leg(booking):
    return BookingLegFactory(booking=booking)


@pytest.fixture
def extension(booking_leg):
    """A PENDING extension pushing the leg's end two hours out."""
    return ExtensionFactory(booking_leg=booking_leg, payment_intent="extension_tx-1")


@pytest.fixture
def mock_enqueue():
    """Patch NotificationService.enqueue where confirmation services call it."""
    with patch("bookings.services.NotificationService.enqueue") as mock:
        yield mock
