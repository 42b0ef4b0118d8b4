"""
Payments app for Flutterwave integration.

This app handles:
- Payment initialization (hosted checkout links)
- Charge, refund and transfer webhook reconciliation
- Refund initiation for customers and staff
- Fleet-owner payouts for completed bookings

Related apps:
    - bookings: Bookings, extensions and bank details being paid for/out
    - notifications: Confirmation e-mails after a verified payment

Usage:
    from payments.services import RefundService

    result = RefundService.initiate_refund(user, tx_ref, amount, reason)
"""
