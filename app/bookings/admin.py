"""
Booking admin configuration.

Payment and payout state on bookings is written by the payment services;
those fields are read-only here.
"""

from django.contrib import admin

from bookings.models import BankDetails, Booking, BookingLeg, Extension


class BookingLegInline(admin.TabularInline):
    model = BookingLeg
    extra = 0
    fields = ["leg_start_time", "leg_end_time"]


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    """
    Admin configuration for Booking.

    Status changes that affect money should go through the service layer.
    """

    list_display = [
        "booking_reference",
        "user",
        "fleet_owner",
        "status",
        "total_amount",
        "payment_status",
        "overall_payout_status",
        "created_at",
    ]
    list_filter = ["status", "payment_status", "overall_payout_status"]
    search_fields = ["booking_reference", "payment_intent", "user__email"]
    readonly_fields = [
        "id",
        "payment_status",
        "payment_intent",
        "overall_payout_status",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    inlines = [BookingLegInline]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "booking_reference", "user", "fleet_owner", "status"),
            },
        ),
        (
            "Payment",
            {
                "fields": ("total_amount", "payment_status", "payment_intent"),
            },
        ),
        (
            "Payout",
            {
                "fields": ("fleet_owner_payout_amount_net", "overall_payout_status"),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )


@admin.register(Extension)
class ExtensionAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "booking_leg",
        "status",
        "total_amount",
        "payment_status",
        "extension_end_time",
    ]
    list_filter = ["status", "payment_status"]
    search_fields = ["id", "payment_intent"]
    readonly_fields = [
        "id",
        "payment_status",
        "payment_intent",
        "created_at",
        "updated_at",
    ]


@admin.register(BankDetails)
class BankDetailsAdmin(admin.ModelAdmin):
    list_display = ["user", "bank_name", "masked_account_number", "is_verified"]
    list_filter = ["is_verified", "bank_name"]
    search_fields = ["user__email", "account_name"]
    readonly_fields = ["id", "created_at", "updated_at"]
