"""
Payment services for Flutterwave payments, refunds and payouts.

This module provides:
- PaymentService: Checkout initialization and payment status
- ChargeReconciliationService: Verified charge.completed handling
- RefundService: Refund claim/initiation and refund.completed handling
- PayoutService: Fleet-owner transfers and transfer.completed handling

Every service reaches Flutterwave through get_client(); tests inject a
client with set_client().

Usage:
    from payments.services import RefundService

    result = RefundService.initiate_refund(
        user=request.user,
        tx_ref="booking_123",
        amount=Decimal("5000.00"),
    )

    from payments.services import PayoutService

    result = PayoutService.initiate_payout(booking)
"""

from payments.services.payment_service import PaymentLink, PaymentService
from payments.services.payout_service import PayoutService
from payments.services.reconciliation_service import ChargeReconciliationService
from payments.services.refund_service import RefundInitiationResult, RefundService

__all__ = [
    "ChargeReconciliationService",
    "PaymentLink",
    "PaymentService",
    "PayoutService",
    "RefundInitiationResult",
    "RefundService",
]
