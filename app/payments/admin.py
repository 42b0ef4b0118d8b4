"""
Payment admin configuration.

Registers Payment and PayoutTransaction with the Django admin. Financial
fields and statuses are read-only: they change only through the payment
services and webhook reconciliation.
"""

from django.contrib import admin

from payments.models import Payment, PayoutTransaction

__all__ = [
    "PaymentAdmin",
    "PayoutTransactionAdmin",
]


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    """
    Admin configuration for Payment.

    Provides visibility into charges and refund progress.
    """

    list_display = [
        "tx_ref",
        "status",
        "amount_expected",
        "amount_charged",
        "currency",
        "confirmed_at",
        "created_at",
    ]
    list_filter = ["status", "currency", "created_at"]
    search_fields = [
        "tx_ref",
        "flutterwave_transaction_id",
        "flutterwave_reference",
        "booking__booking_reference",
    ]
    readonly_fields = [
        "id",
        "booking",
        "extension",
        "tx_ref",
        "flutterwave_transaction_id",
        "flutterwave_reference",
        "amount_expected",
        "amount_charged",
        "currency",
        "status",
        "payment_method",
        "initiated_at",
        "confirmed_at",
        "refund_idempotency_key",
        "webhook_payload",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "tx_ref", "booking", "extension", "status"),
            },
        ),
        (
            "Amounts",
            {
                "fields": ("amount_expected", "amount_charged", "currency"),
            },
        ),
        (
            "Flutterwave",
            {
                "fields": (
                    "flutterwave_transaction_id",
                    "flutterwave_reference",
                    "payment_method",
                    "refund_idempotency_key",
                ),
            },
        ),
        (
            "Webhook Payload",
            {
                "fields": ("webhook_payload",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("initiated_at", "confirmed_at", "created_at", "updated_at"),
            },
        ),
    )

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(PayoutTransaction)
class PayoutTransactionAdmin(admin.ModelAdmin):
    """
    Admin configuration for PayoutTransaction.

    Notes stay editable for operators; everything else is written by
    PayoutService.
    """

    list_display = [
        "id",
        "booking",
        "fleet_owner",
        "amount_to_pay",
        "status",
        "payout_provider_reference",
        "completed_at",
    ]
    list_filter = ["status", "currency", "created_at"]
    search_fields = [
        "id",
        "payout_provider_reference",
        "provider_transfer_id",
        "booking__booking_reference",
        "fleet_owner__email",
    ]
    readonly_fields = [
        "id",
        "booking",
        "extension",
        "fleet_owner",
        "amount_to_pay",
        "amount_paid",
        "currency",
        "status",
        "payout_provider_reference",
        "provider_transfer_id",
        "payout_method_details",
        "initiated_at",
        "processed_at",
        "completed_at",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    def has_delete_permission(self, request, obj=None):
        return False
