"""
Payment domain models.

This module contains:
- Payment: One charge attempt for a booking or an extension
- PayoutTransaction: One transfer of a completed booking's net amount
  to its fleet owner
"""

from payments.models.payment import Payment
from payments.models.payout_transaction import PayoutTransaction

__all__ = [
    "Payment",
    "PayoutTransaction",
]
