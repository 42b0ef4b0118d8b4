"""
Booking domain models read and written by the payment core.

This module defines:
- BookingStatus / ExtensionStatus: lifecycle enums
- PaymentStatus: customer-side payment flag on bookings and extensions
- PayoutStatus: aggregate fleet-owner payout flag on bookings
- Booking, BookingLeg, Extension, BankDetails

Design Decisions:
    - payment_intent holds the provider tx_ref issued at payment
      initialization; charge reconciliation matches webhooks against it
    - Confirmation flips status with conditional updates, never via save()
    - BankDetails is one row per fleet owner; only verified rows are payable

Usage:
    from bookings.models import Booking, BookingStatus

    Booking.objects.filter(id=booking_id, status=BookingStatus.PENDING).update(
        status=BookingStatus.CONFIRMED,
        payment_status=PaymentStatus.PAID,
    )
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

# =============================================================================
# Enums
# =============================================================================


class BookingStatus(models.TextChoices):
    """
    Booking lifecycle.

    PENDING → CONFIRMED (paid) → ACTIVE → COMPLETED
    PENDING → CANCELLED / REJECTED
    """

    PENDING = "PENDING", "Pending"
    CONFIRMED = "CONFIRMED", "Confirmed"
    ACTIVE = "ACTIVE", "Active"
    COMPLETED = "COMPLETED", "Completed"
    CANCELLED = "CANCELLED", "Cancelled"
    REJECTED = "REJECTED", "Rejected"


class ExtensionStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    ACTIVE = "ACTIVE", "Active"
    CANCELLED = "CANCELLED", "Cancelled"
    REJECTED = "REJECTED", "Rejected"


class PaymentStatus(models.TextChoices):
    """Customer payment state as seen from a booking or extension."""

    UNPAID = "UNPAID", "Unpaid"
    PAID = "PAID", "Paid"
    REFUNDED = "REFUNDED", "Refunded"
    REFUND_PROCESSING = "REFUND_PROCESSING", "Refund Processing"
    REFUND_FAILED = "REFUND_FAILED", "Refund Failed"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED", "Partially Refunded"


class PayoutStatus(models.TextChoices):
    """Aggregate fleet-owner payout state for a booking."""

    PENDING = "PENDING", "Pending"
    PROCESSING = "PROCESSING", "Processing"
    PAID = "PAID", "Paid"
    FAILED = "FAILED", "Failed"


UNPAYABLE_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.REJECTED})


# =============================================================================
# Models
# =============================================================================


class Booking(UUIDPrimaryKeyMixin, BaseModel):
    """
    A customer's booking of a fleet owner's vehicle.

    Fields:
        booking_reference: Human-facing reference used in payout narrations
        user: Customer who pays for the booking
        fleet_owner: Owner who is paid out once the booking completes
        status: BookingStatus
        total_amount: Authoritative amount the customer must pay
        payment_status: PaymentStatus
        payment_intent: Provider tx_ref from payment initialization
        fleet_owner_payout_amount_net: Amount owed to the fleet owner
        overall_payout_status: PayoutStatus, kept in step with the payout row
    """

    booking_reference = models.CharField(
        max_length=64,
        unique=True,
        help_text="Human-facing booking reference",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="bookings",
        help_text="Customer who made the booking",
    )
    fleet_owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="owned_bookings",
        help_text="Fleet owner who receives the payout",
    )
    status = models.CharField(
        max_length=20,
        choices=BookingStatus.choices,
        default=BookingStatus.PENDING,
        db_index=True,
    )
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.UNPAID,
    )
    payment_intent = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Provider tx_ref issued at payment initialization",
    )
    fleet_owner_payout_amount_net = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Net amount owed to the fleet owner",
    )
    overall_payout_status = models.CharField(
        max_length=20,
        choices=PayoutStatus.choices,
        default=PayoutStatus.PENDING,
    )

    class Meta:
        db_table = "bookings_booking"
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"Booking({self.booking_reference}, {self.status})"


class BookingLeg(UUIDPrimaryKeyMixin, BaseModel):
    """One contiguous rental period of a booking; extensions push its end."""

    booking = models.ForeignKey(
        Booking,
        on_delete=models.CASCADE,
        related_name="legs",
    )
    leg_start_time = models.DateTimeField()
    leg_end_time = models.DateTimeField()

    class Meta:
        db_table = "bookings_booking_leg"
        ordering = ["leg_start_time"]


class Extension(UUIDPrimaryKeyMixin, BaseModel):
    """
    A paid extension of a booking leg.

    Becomes ACTIVE once its payment is verified, at which point the leg's
    end time advances to extension_end_time.
    """

    booking_leg = models.ForeignKey(
        BookingLeg,
        on_delete=models.CASCADE,
        related_name="extensions",
    )
    status = models.CharField(
        max_length=20,
        choices=ExtensionStatus.choices,
        default=ExtensionStatus.PENDING,
        db_index=True,
    )
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.UNPAID,
    )
    payment_intent = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Provider tx_ref issued at payment initialization",
    )
    extension_start_time = models.DateTimeField()
    extension_end_time = models.DateTimeField()

    class Meta:
        db_table = "bookings_extension"
        ordering = ["-created_at"]

    @property
    def booking(self) -> Booking:
        return self.booking_leg.booking


class BankDetails(UUIDPrimaryKeyMixin, BaseModel):
    """A fleet owner's payout bank account."""

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="bank_details",
    )
    bank_name = models.CharField(max_length=100)
    bank_code = models.CharField(max_length=20)
    account_number = models.CharField(max_length=20)
    account_name = models.CharField(max_length=150)
    is_verified = models.BooleanField(default=False)

    class Meta:
        db_table = "bookings_bank_details"
        verbose_name_plural = "bank details"
        ordering = ["-created_at"]

    @property
    def masked_account_number(self) -> str:
        return f"****{self.account_number[-4:]}"

    def __str__(self) -> str:
        return f"BankDetails({self.bank_name}, {self.masked_account_number})"
