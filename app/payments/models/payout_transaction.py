"""
PayoutTransaction model for tracking transfers to fleet owners.

One row per booking (unique). A FAILED row is retried in place: the
provider reference is derived from the row id, so every attempt for the
same booking sends the same reference and Flutterwave deduplicates it.

Usage:
    from payments.models import PayoutTransaction

    payout = PayoutTransaction.objects.create(
        booking=booking,
        fleet_owner=booking.fleet_owner,
        amount_to_pay=booking.fleet_owner_payout_amount_net,
    )

    # State transitions using django-fsm
    payout.start_processing(transfer_id="12345", reference="payout_<id>")
    payout.save()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone
from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.state_machines import PayoutTransactionStatus


class PayoutTransaction(UUIDPrimaryKeyMixin, BaseModel):
    """
    A transfer of a booking's net amount to its fleet owner.

    State Flow:
        PENDING_DISBURSEMENT -> PROCESSING -> PAID_OUT
        PENDING_DISBURSEMENT/PROCESSING -> FAILED -> PENDING_DISBURSEMENT (retry)

    Webhook-driven state changes:
        transfer.completed SUCCESSFUL: PROCESSING -> PAID_OUT
        transfer.completed otherwise: PROCESSING -> FAILED

    Fields:
        fleet_owner: Recipient of the transfer
        booking: Completed booking being paid out (one row per booking)
        extension: Optional extension the payout relates to
        amount_to_pay / amount_paid: Requested and confirmed amounts
        status: Current FSM state
        payout_provider_reference: Our reference sent to Flutterwave
        provider_transfer_id: Flutterwave transfer id from initiation
        payout_method_details: Masked bank description
        initiated_at / processed_at / completed_at: Lifecycle timestamps
        notes: Failure details
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    fleet_owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payout_transactions",
    )
    booking = models.OneToOneField(
        "bookings.Booking",
        on_delete=models.PROTECT,
        related_name="payout_transaction",
    )
    extension = models.ForeignKey(
        "bookings.Extension",
        on_delete=models.PROTECT,
        related_name="payout_transactions",
        null=True,
        blank=True,
    )

    # ==========================================================================
    # Amount & Currency
    # ==========================================================================

    amount_to_pay = models.DecimalField(max_digits=12, decimal_places=2)
    amount_paid = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
    )
    currency = models.CharField(max_length=3, default="NGN")

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=PayoutTransactionStatus.PENDING_DISBURSEMENT,
        choices=PayoutTransactionStatus.choices,
        db_index=True,
        help_text="Current state of the payout (managed by FSM)",
    )

    # ==========================================================================
    # Provider Integration
    # ==========================================================================

    payout_provider_reference = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Reference sent to Flutterwave (payout_<id>)",
    )
    provider_transfer_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        help_text="Flutterwave transfer id",
    )
    payout_method_details = models.CharField(max_length=255, blank=True)

    # ==========================================================================
    # Timestamps & Notes
    # ==========================================================================

    initiated_at = models.DateTimeField(null=True, blank=True)
    processed_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)

    class Meta:
        db_table = "payments_payout_transaction"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["status", "created_at"], name="payout_status_created_idx"
            ),
        ]

    def __str__(self) -> str:
        return f"PayoutTransaction({self.id}, {self.status}, {self.amount_to_pay})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=PayoutTransactionStatus.FAILED,
        target=PayoutTransactionStatus.PENDING_DISBURSEMENT,
    )
    def reopen(self):
        """
        Reopen a failed payout for another transfer attempt.

        Transition: FAILED -> PENDING_DISBURSEMENT
        """
        self.completed_at = None

    @transition(
        field=status,
        source=PayoutTransactionStatus.PENDING_DISBURSEMENT,
        target=PayoutTransactionStatus.PROCESSING,
    )
    def start_processing(self, transfer_id: str | None, reference: str):
        """
        Flutterwave accepted the transfer.

        Transition: PENDING_DISBURSEMENT -> PROCESSING
        """
        self.provider_transfer_id = transfer_id
        self.payout_provider_reference = reference
        self.processed_at = timezone.now()
        self.notes = ""

    @transition(
        field=status,
        source=[
            PayoutTransactionStatus.PENDING_DISBURSEMENT,
            PayoutTransactionStatus.PROCESSING,
            PayoutTransactionStatus.FAILED,
        ],
        target=PayoutTransactionStatus.FAILED,
    )
    def fail(self, notes: str = ""):
        """
        Initiation was rejected or the transfer webhook reported failure.

        Transition: PENDING_DISBURSEMENT/PROCESSING/FAILED -> FAILED
        """
        if notes:
            self.notes = notes

    @transition(
        field=status,
        source=[
            PayoutTransactionStatus.PROCESSING,
            PayoutTransactionStatus.PENDING_DISBURSEMENT,
        ],
        target=PayoutTransactionStatus.PAID_OUT,
    )
    def mark_paid_out(self, amount_paid=None):
        """
        Transfer webhook reported success.

        Transition: PROCESSING/PENDING_DISBURSEMENT -> PAID_OUT
        """
        self.amount_paid = amount_paid if amount_paid is not None else self.amount_to_pay

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_final(self) -> bool:
        return self.status in (
            PayoutTransactionStatus.PAID_OUT,
            PayoutTransactionStatus.FAILED,
        )

    @property
    def is_in_flight(self) -> bool:
        return self.status in (
            PayoutTransactionStatus.PROCESSING,
            PayoutTransactionStatus.PAID_OUT,
        )
