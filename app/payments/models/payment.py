"""
Payment model: one attempt to collect money for a booking or an extension.

A Payment row is created lazily by charge reconciliation on the first
verified charge.completed webhook, keyed by the unique tx_ref. It is never
deleted.

Usage:
    from payments.models import Payment
    from payments.state_machines import PaymentAttemptStatus

    payment, created = Payment.objects.get_or_create(
        tx_ref=tx_ref,
        defaults={"booking": booking, "status": PaymentAttemptStatus.SUCCESSFUL},
    )

    # Status changes are conditional updates, never save()
    claimed = Payment.objects.filter(
        id=payment.id, status=PaymentAttemptStatus.SUCCESSFUL
    ).update(status=PaymentAttemptStatus.REFUND_PROCESSING)
"""

from __future__ import annotations

from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.state_machines import PaymentAttemptStatus


class Payment(UUIDPrimaryKeyMixin, BaseModel):
    """
    A charge attempt for exactly one of Booking or Extension.

    Fields:
        booking / extension: Owning entity; exactly one is set
        tx_ref: Our reference sent at initialization (globally unique)
        flutterwave_transaction_id: Provider transaction id (unique once set)
        flutterwave_reference: Provider flw_ref
        amount_expected: Amount the provider reported as requested
        amount_charged: Amount actually charged (null until confirmed)
        currency: ISO 4217 currency code
        status: PaymentAttemptStatus
        payment_method: Provider payment_type (card, bank transfer, ...)
        initiated_at / confirmed_at: Lifecycle timestamps
        webhook_payload: Last raw webhook data plus refund audit records
        refund_idempotency_key: Key sent on the current refund attempt;
            reused when retrying from REFUND_ERROR
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.PROTECT,
        related_name="payments",
        null=True,
        blank=True,
    )
    extension = models.ForeignKey(
        "bookings.Extension",
        on_delete=models.PROTECT,
        related_name="payments",
        null=True,
        blank=True,
    )

    # ==========================================================================
    # Provider References
    # ==========================================================================

    tx_ref = models.CharField(
        max_length=255,
        unique=True,
        help_text="Transaction reference issued at payment initialization",
    )
    flutterwave_transaction_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        unique=True,
        help_text="Flutterwave transaction id",
    )
    flutterwave_reference = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Flutterwave flw_ref",
    )

    # ==========================================================================
    # Amount & Status
    # ==========================================================================

    amount_expected = models.DecimalField(max_digits=12, decimal_places=2)
    amount_charged = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
    )
    currency = models.CharField(max_length=3, default="NGN")
    status = models.CharField(
        max_length=20,
        choices=PaymentAttemptStatus.choices,
        default=PaymentAttemptStatus.PENDING,
        db_index=True,
    )
    payment_method = models.CharField(max_length=50, blank=True)

    # ==========================================================================
    # Timestamps & Audit
    # ==========================================================================

    initiated_at = models.DateTimeField(null=True, blank=True)
    confirmed_at = models.DateTimeField(null=True, blank=True)
    webhook_payload = models.JSONField(
        default=dict,
        blank=True,
        help_text="Raw webhook data and refund audit records",
    )
    refund_idempotency_key = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Idempotency key sent with the current refund attempt",
    )

    class Meta:
        db_table = "payments_payment"
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(booking__isnull=False, extension__isnull=True)
                    | models.Q(booking__isnull=True, extension__isnull=False)
                ),
                name="payment_exactly_one_owner",
            ),
        ]

    def __str__(self) -> str:
        return f"Payment({self.tx_ref}, {self.status})"

    @property
    def owner_user_id(self):
        """Customer who owns the booking this payment belongs to."""
        if self.booking_id:
            return self.booking.user_id
        return self.extension.booking_leg.booking.user_id
