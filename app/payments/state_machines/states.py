"""
State enums for payment models.

These are Django TextChoices for database storage and admin integration.

State Machines Overview:

Payment (one charge attempt) States:
    PENDING → SUCCESSFUL / FAILED (charge reconciliation)
    SUCCESSFUL → REFUND_PROCESSING (refund claim)
    REFUND_PROCESSING → REFUNDED / PARTIALLY_REFUNDED / REFUND_FAILED (webhook)
    REFUND_PROCESSING → REFUND_FAILED (explicit provider decline)
    REFUND_PROCESSING → REFUND_ERROR (ambiguous provider failure)
    REFUND_ERROR → REFUND_PROCESSING (retry, same idempotency key)

PayoutTransaction States:
    PENDING_DISBURSEMENT → PROCESSING → PAID_OUT
    PENDING_DISBURSEMENT/PROCESSING → FAILED → PROCESSING (retry)
"""

from django.db import models


class PaymentAttemptStatus(models.TextChoices):
    """
    States for the Payment model.

    Terminal states: FAILED, REFUNDED, PARTIALLY_REFUNDED, REFUND_FAILED

    Payment.status is written only through conditional updates
    (UPDATE ... WHERE status = ...), never through save().
    """

    PENDING = "PENDING", "Pending"
    SUCCESSFUL = "SUCCESSFUL", "Successful"
    FAILED = "FAILED", "Failed"
    REFUND_PROCESSING = "REFUND_PROCESSING", "Refund Processing"
    REFUND_ERROR = "REFUND_ERROR", "Refund Error"
    REFUND_FAILED = "REFUND_FAILED", "Refund Failed"
    REFUNDED = "REFUNDED", "Refunded"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED", "Partially Refunded"


REFUNDABLE_STATUSES = (
    PaymentAttemptStatus.SUCCESSFUL,
    PaymentAttemptStatus.REFUND_ERROR,
)


class PayoutTransactionStatus(models.TextChoices):
    """
    States for the PayoutTransaction model lifecycle.

    Terminal states: PAID_OUT, REVERSED (FAILED is retryable)

    State Flow:
        PENDING_DISBURSEMENT → PROCESSING → PAID_OUT
        PENDING_DISBURSEMENT → FAILED (initiation rejected)
        PROCESSING → FAILED (transfer webhook)
        FAILED → PROCESSING (scheduled retry)
    """

    PENDING_APPROVAL = "PENDING_APPROVAL", "Pending Approval"
    PENDING_DISBURSEMENT = "PENDING_DISBURSEMENT", "Pending Disbursement"
    PROCESSING = "PROCESSING", "Processing"
    PAID_OUT = "PAID_OUT", "Paid Out"
    FAILED = "FAILED", "Failed"
    REVERSED = "REVERSED", "Reversed"


__all__ = [
    "PaymentAttemptStatus",
    "PayoutTransactionStatus",
    "REFUNDABLE_STATUSES",
]
