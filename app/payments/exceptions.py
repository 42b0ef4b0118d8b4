"""
Payment-specific exceptions for payment operations.

This module provides a hierarchy of exceptions for payment operations,
covering both payment domain errors and Flutterwave provider errors.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── PaymentNotFoundError - Payment/booking/extension lookup failures (404)
    ├── PaymentValidationError - Amount/state validation failures (400)
    ├── PaymentPermissionError - Caller does not own the entity (403)
    ├── RefundInProgressError - Another caller holds the refund attempt (409)
    └── PaymentProcessingError - Payment processing failures (502)
        └── ProviderError - Base for all Flutterwave client errors
            ├── ProviderTimeoutError - No response within the timeout (ambiguous)
            ├── ProviderNetworkError - Connection failed (ambiguous)
            ├── ProviderAuthError - 401/403 from the provider
            ├── ProviderRejectedError - Explicit business decline (terminal)
            └── ProviderUnknownError - 5xx or unparseable response (ambiguous)

The provider set is closed: callers switch on the exception type or on
is_ambiguous / is_retryable, never on message text.

Usage:
    from payments.exceptions import ProviderError, ProviderRejectedError

    try:
        client.initiate_refund(...)
    except ProviderRejectedError:
        mark_refund_failed()
    except ProviderError as e:
        if e.is_ambiguous:
            mark_refund_error()
            raise
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """
    Base exception for all payment operations.

    Each subclass also derives from the matching core error, which supplies
    the http_status the API exception handler responds with.
    """

    default_error_code: str = "PAYMENT_ERROR"


class PaymentNotFoundError(PaymentError, NotFoundError):
    """
    Raised when a payment entity cannot be found.

    Use for:
    - Payment lookup by tx_ref fails
    - Booking or Extension lookup fails
    """

    default_error_code: str = "PAYMENT_NOT_FOUND"


class PaymentValidationError(PaymentError, ValidationError):
    """
    Raised when payment validation fails.

    Use for:
    - Client amount differs from the server-side total
    - Refund amount exceeds the charged amount
    - Payment is not in a refundable state
    - Entity already paid, cancelled or rejected

    Example:
        if amount > payment.amount_charged:
            raise PaymentValidationError(
                "Refund amount exceeds charged amount",
                details={"amount": str(amount)},
            )
    """

    default_error_code: str = "PAYMENT_VALIDATION_ERROR"


class PaymentPermissionError(PaymentError, PermissionDeniedError):
    """Raised when the caller does not own the booking or extension."""

    default_error_code: str = "PAYMENT_PERMISSION_DENIED"


class RefundInProgressError(PaymentError, ConflictError):
    """
    Raised when the refund claim loses the compare-and-swap.

    Another caller moved the payment out of a refundable state between the
    read and the conditional update; the provider is not called.
    """

    default_error_code: str = "REFUND_IN_PROGRESS"


class PaymentProcessingError(PaymentError, ExternalServiceError):
    """Raised when payment processing fails at the provider boundary."""

    default_error_code: str = "PAYMENT_PROCESSING_ERROR"


# =============================================================================
# Provider (Flutterwave) Exceptions
# =============================================================================


class ProviderError(PaymentProcessingError):
    """
    Base exception for all Flutterwave client errors.

    Attributes:
        provider_code: Provider's own error code or message, if any
        status_code: HTTP status returned by the provider, if a response arrived
        response_data: Parsed response body, if any
        is_retryable: Whether retrying the same request may succeed
        is_ambiguous: Whether the provider may have acted despite the error

    Ambiguous errors must never be treated as a definite failure: the
    provider may have accepted the request before the connection dropped.
    """

    default_error_code: str = "PROVIDER_ERROR"
    is_retryable: bool = False
    is_ambiguous: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        provider_code: str | None = None,
        status_code: int | None = None,
        response_data: dict[str, Any] | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if provider_code:
            details["provider_code"] = provider_code
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, error_code=error_code, details=details)
        self.provider_code = provider_code
        self.status_code = status_code
        self.response_data = response_data or {}


class ProviderTimeoutError(ProviderError):
    """
    The request was sent but no response arrived within the timeout.

    The operation may have succeeded on Flutterwave's side; retry only with
    the same idempotency key or reference.
    """

    default_error_code: str = "PROVIDER_TIMEOUT"
    is_retryable: bool = True
    is_ambiguous: bool = True


class ProviderNetworkError(ProviderError):
    """Connection-level failure (DNS, refused, reset); no response received."""

    default_error_code: str = "PROVIDER_NETWORK_ERROR"
    is_retryable: bool = True
    is_ambiguous: bool = True


class ProviderAuthError(ProviderError):
    """
    Flutterwave rejected our credentials (401/403).

    Requires a configuration fix; retrying will not help.
    """

    default_error_code: str = "PROVIDER_AUTH_ERROR"


class ProviderRejectedError(ProviderError):
    """
    Explicit business decline from the provider.

    Raised for 4xx responses and for envelopes whose status is not
    "success" (e.g. insufficient balance, invalid account). Terminal for
    the attempt.
    """

    default_error_code: str = "PROVIDER_REJECTED"


class ProviderUnknownError(ProviderError):
    """5xx, unparseable body, or any other unexpected provider response."""

    default_error_code: str = "PROVIDER_UNKNOWN_ERROR"
    is_retryable: bool = True
    is_ambiguous: bool = True


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    # Payment domain
    "PaymentError",
    "PaymentNotFoundError",
    "PaymentValidationError",
    "PaymentPermissionError",
    "RefundInProgressError",
    "PaymentProcessingError",
    # Provider
    "ProviderError",
    "ProviderTimeoutError",
    "ProviderNetworkError",
    "ProviderAuthError",
    "ProviderRejectedError",
    "ProviderUnknownError",
]
