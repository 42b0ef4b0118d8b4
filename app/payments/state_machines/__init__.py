"""
State machine enums for payment models.

PayoutTransaction uses django-fsm transitions; Payment uses conditional
updates keyed on these values.
"""

from payments.state_machines.states import (
    REFUNDABLE_STATUSES,
    PaymentAttemptStatus,
    PayoutTransactionStatus,
)

__all__ = [
    "PaymentAttemptStatus",
    "PayoutTransactionStatus",
    "REFUNDABLE_STATUSES",
]
