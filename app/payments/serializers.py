"""
DRF serializers for payments app.

This module provides serializers for:
- Payment initialization requests and checkout links
- Refund requests and results
- Payment status responses

Related files:
    - services/: PaymentService, RefundService
    - views.py: Payment API views
"""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from payments.services.payment_service import ENTITY_TYPES


class InitializePaymentSerializer(serializers.Serializer):
    """Request body for POST /api/v1/payments/initialize/."""

    entity_type = serializers.ChoiceField(
        choices=ENTITY_TYPES,
        help_text="What is being paid for: booking or extension",
    )
    entity_id = serializers.UUIDField(help_text="Booking or extension id")
    amount = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=Decimal("0.01"),
        help_text="Amount shown to the customer; must equal the server-side total",
    )
    callback_url = serializers.URLField(
        help_text="Where Flutterwave redirects the customer after checkout"
    )


class PaymentLinkSerializer(serializers.Serializer):
    payment_intent_id = serializers.CharField(read_only=True)
    checkout_url = serializers.URLField(read_only=True)


class RefundRequestSerializer(serializers.Serializer):
    """Request body for POST /api/v1/payments/<tx_ref>/refund/."""

    amount = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=Decimal("0.01"),
        help_text="Amount to refund, at most the charged amount",
    )
    reason = serializers.CharField(
        max_length=500,
        required=False,
        allow_blank=True,
        default="",
    )


class RefundResultSerializer(serializers.Serializer):
    """Accepted refund: the payment stays REFUND_PROCESSING until the webhook."""

    tx_ref = serializers.CharField(source="payment.tx_ref", read_only=True)
    status = serializers.CharField(source="payment.status", read_only=True)
    refund_id = serializers.CharField(read_only=True, allow_null=True)
    provider_status = serializers.CharField(read_only=True)


class OwnerStatusSerializer(serializers.Serializer):
    id = serializers.UUIDField(read_only=True)
    status = serializers.CharField(read_only=True)


class PaymentStatusSerializer(serializers.Serializer):
    tx_ref = serializers.CharField(read_only=True)
    status = serializers.CharField(read_only=True)
    amount_expected = serializers.DecimalField(
        max_digits=12, decimal_places=2, read_only=True
    )
    amount_charged = serializers.DecimalField(
        max_digits=12, decimal_places=2, read_only=True, allow_null=True
    )
    currency = serializers.CharField(read_only=True)
    confirmed_at = serializers.DateTimeField(read_only=True, allow_null=True)
    booking = OwnerStatusSerializer(read_only=True, allow_null=True)
    extension = OwnerStatusSerializer(read_only=True, allow_null=True)
