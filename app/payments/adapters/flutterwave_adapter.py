"""
Flutterwave v3 API adapter for payment operations.

This module provides the FlutterwaveClient class which encapsulates all
Flutterwave API interactions. All provider calls go through this client
to ensure consistent error handling, timeouts, idempotency, and
observability.

Features:
- Configured timeout on every call
- Translation of transport/HTTP failures into the closed ProviderError set
- Structured logging with timing metrics
- Idempotency header on refunds; deterministic references on transfers

Configuration (via settings, read once by FlutterwaveConfig.from_settings):
- FLUTTERWAVE_SECRET_KEY: Bearer token
- FLUTTERWAVE_BASE_URL: API root (default: https://api.flutterwave.com)
- FLUTTERWAVE_WEBHOOK_URL: Public base URL used for callback URLs
- FLUTTERWAVE_API_TIMEOUT_SECONDS: Per-call timeout (default: 30)
- PAYOUT_CURRENCY: Transfer currency (default: NGN)

Usage:
    from payments.adapters import FlutterwaveClient, FlutterwaveConfig

    client = FlutterwaveClient(FlutterwaveConfig.from_settings())
    envelope = client.verify_transaction("555")
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import httpx
from django.conf import settings

from payments.exceptions import (
    ProviderAuthError,
    ProviderNetworkError,
    ProviderRejectedError,
    ProviderTimeoutError,
    ProviderUnknownError,
)

WEBHOOK_PATH = "/api/v1/payments/webhooks/flutterwave/"


# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True)
class FlutterwaveConfig:
    """
    Connection settings for the Flutterwave API.

    Attributes:
        secret_key: Secret key sent as the Bearer token
        base_url: API root
        webhook_url: Public base URL of this service
        timeout_seconds: Per-call timeout
        currency: Currency for transfers and payment links
    """

    secret_key: str
    base_url: str = "https://api.flutterwave.com"
    webhook_url: str = "http://localhost:8000"
    timeout_seconds: float = 30.0
    currency: str = "NGN"

    @classmethod
    def from_settings(cls) -> FlutterwaveConfig:
        return cls(
            secret_key=settings.FLUTTERWAVE_SECRET_KEY,
            base_url=settings.FLUTTERWAVE_BASE_URL,
            webhook_url=settings.FLUTTERWAVE_WEBHOOK_URL,
            timeout_seconds=float(settings.FLUTTERWAVE_API_TIMEOUT_SECONDS),
            currency=settings.PAYOUT_CURRENCY,
        )

    @property
    def callback_url(self) -> str:
        """Webhook endpoint Flutterwave should call back."""
        return f"{self.webhook_url.rstrip('/')}{WEBHOOK_PATH}"


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class TransferParams:
    """
    Parameters for a bank transfer to a fleet owner.

    Attributes:
        bank_code: Flutterwave bank code (account_bank)
        account_number: Destination account number
        amount: Amount in major units
        reference: Deterministic payout reference (payout_<id>)
        booking_id: Booking being paid out
        booking_reference: Human-facing booking reference for the narration
    """

    bank_code: str
    account_number: str
    amount: Decimal
    reference: str
    booking_id: str
    booking_reference: str

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise ValueError("amount must be positive")
        if not self.reference:
            raise ValueError("reference is required")


@dataclass
class TransferResult:
    """
    Result of a transfer initiation.

    Attributes:
        id: Flutterwave transfer id
        reference: Reference echoed by the provider
        status: Provider status (NEW, PENDING, ...)
        raw_response: Full response data
    """

    id: str | None
    reference: str
    status: str
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class RefundResult:
    """
    Result of a refund initiation.

    Attributes:
        id: Flutterwave refund id
        amount_refunded: Amount the provider accepted for refund
        status: Provider status (usually "completed" or "pending")
        raw_response: Full response data
    """

    id: str | None
    amount_refunded: Decimal | None
    status: str
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class PaymentLinkParams:
    """
    Parameters for a hosted checkout link.

    Attributes:
        tx_ref: Our deterministic reference ({entity_type}_{entity_id})
        amount: Amount in major units
        redirect_url: Where Flutterwave sends the customer afterwards
        customer_email / customer_name: Checkout pre-fill
        entity_type: "booking" or "extension"
        metadata: Extra meta sent to the provider
    """

    tx_ref: str
    amount: Decimal
    redirect_url: str
    customer_email: str
    customer_name: str
    entity_type: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class PaymentLinkResult:
    tx_ref: str
    checkout_url: str


# =============================================================================
# Idempotency Key Generator
# =============================================================================


class IdempotencyKeyGenerator:
    """
    Generate references and idempotency keys sent to Flutterwave.

    Example:
        IdempotencyKeyGenerator.refund_key(payment.id)
        # "refund_550e8400-e29b-41d4-a716-446655440000_9f1c..."

        IdempotencyKeyGenerator.payout_reference(payout.id)
        # "payout_550e8400-e29b-41d4-a716-446655440000"
    """

    @staticmethod
    def refund_key(payment_id: uuid.UUID | str) -> str:
        """Fresh key for a new refund attempt on a payment."""
        return f"refund_{payment_id}_{uuid.uuid4().hex}"

    @staticmethod
    def payout_reference(payout_transaction_id: uuid.UUID | str) -> str:
        """Deterministic transfer reference; identical across retries."""
        return f"payout_{payout_transaction_id}"

    @staticmethod
    def payment_tx_ref(entity_type: str, entity_id: uuid.UUID | str) -> str:
        """Deterministic checkout reference for a booking or extension."""
        return f"{entity_type}_{entity_id}"


# =============================================================================
# Flutterwave Client
# =============================================================================


def _amount(value: Decimal) -> float:
    return float(Decimal(value).quantize(Decimal("0.01")))


def _mask(account_number: str) -> str:
    return f"****{account_number[-4:]}"


class FlutterwaveClient:
    """
    Client for Flutterwave v3 operations.

    Every method either returns a parsed result or raises one of:
        ProviderTimeoutError: No response within the timeout
        ProviderNetworkError: Connection failed before a response
        ProviderAuthError: 401/403
        ProviderRejectedError: Other 4xx, or a non-success envelope
        ProviderUnknownError: 5xx or an unparseable body

    Usage:
        client = FlutterwaveClient(FlutterwaveConfig.from_settings())
        result = client.initiate_transfer(params)
    """

    def __init__(
        self,
        config: FlutterwaveConfig,
        transport: httpx.BaseTransport | None = None,
    ):
        self.config = config
        self._http = httpx.Client(
            base_url=config.base_url,
            timeout=config.timeout_seconds,
            transport=transport,
            headers={
                "Authorization": f"Bearer {config.secret_key}",
                "Content-Type": "application/json",
            },
        )

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    def close(self) -> None:
        self._http.close()

    # =========================================================================
    # Core Operations
    # =========================================================================

    def verify_transaction(self, transaction_id: str | int) -> dict[str, Any]:
        """
        Fetch the provider's authoritative view of a transaction.

        Returns the raw envelope {status, message, data}; the caller decides
        whether it agrees with the webhook.
        """
        return self._request(
            "GET",
            f"/v3/transactions/{transaction_id}/verify",
            log_context={
                "operation": "verify_transaction",
                "transaction_id": str(transaction_id),
            },
        )

    def initiate_refund(
        self,
        transaction_id: str | int,
        amount: Decimal,
        idempotency_key: str,
        callback_url: str | None = None,
    ) -> RefundResult:
        """
        Refund (part of) a charged transaction.

        The idempotency key is sent as X-Idempotency-Key so that a retry
        with the same key is collapsed by Flutterwave.
        """
        log_context = {
            "operation": "initiate_refund",
            "transaction_id": str(transaction_id),
            "amount": str(amount),
            "idempotency_key": idempotency_key,
        }
        payload: dict[str, Any] = {"amount": _amount(amount)}
        if callback_url:
            payload["callback_url"] = callback_url

        envelope = self._request(
            "POST",
            f"/v3/transactions/{transaction_id}/refund",
            json=payload,
            headers={"X-Idempotency-Key": idempotency_key},
            log_context=log_context,
        )
        data = self._require_success(envelope, log_context, "Refund was not accepted")

        amount_refunded = data.get("amount_refunded")
        return RefundResult(
            id=str(data["id"]) if data.get("id") is not None else None,
            amount_refunded=(
                Decimal(str(amount_refunded)) if amount_refunded is not None else None
            ),
            status=str(data.get("status", "")),
            raw_response=data,
        )

    def initiate_transfer(self, params: TransferParams) -> TransferResult:
        """Send a bank transfer with a caller-chosen deterministic reference."""
        log_context = {
            "operation": "initiate_transfer",
            "reference": params.reference,
            "booking_id": params.booking_id,
            "amount": str(params.amount),
            "account_number": _mask(params.account_number),
        }
        payload = {
            "account_bank": params.bank_code,
            "account_number": params.account_number,
            "amount": _amount(params.amount),
            "narration": (
                f"Payout for booking {params.booking_reference} - {params.booking_id}"
            ),
            "currency": self.config.currency,
            "reference": params.reference,
            "callback_url": self.config.callback_url,
            "debit_currency": self.config.currency,
        }

        envelope = self._request(
            "POST", "/v3/transfers", json=payload, log_context=log_context
        )
        data = self._require_success(envelope, log_context, "Transfer was not accepted")

        return TransferResult(
            id=str(data["id"]) if data.get("id") is not None else None,
            reference=str(data.get("reference") or params.reference),
            status=str(data.get("status", "")),
            raw_response=data,
        )

    def create_payment_link(self, params: PaymentLinkParams) -> PaymentLinkResult:
        """Create a hosted checkout link for a booking or extension payment."""
        log_context = {
            "operation": "create_payment_link",
            "tx_ref": params.tx_ref,
            "amount": str(params.amount),
        }
        is_booking = params.entity_type == "booking"
        payload = {
            "tx_ref": params.tx_ref,
            "amount": _amount(params.amount),
            "currency": self.config.currency,
            "redirect_url": params.redirect_url,
            "customer": {
                "email": params.customer_email,
                "name": params.customer_name or "Customer",
            },
            "meta": {**params.metadata, "tx_ref": params.tx_ref},
            "customizations": {
                "title": "Booking Payment" if is_booking else "Extension Payment",
                "description": (
                    "Payment for car booking"
                    if is_booking
                    else "Payment for booking extension"
                ),
            },
        }

        envelope = self._request(
            "POST", "/v3/payments", json=payload, log_context=log_context
        )
        data = self._require_success(
            envelope, log_context, "Failed to create payment link"
        )
        link = data.get("link")
        if not link:
            raise ProviderRejectedError(
                "Failed to create payment link",
                provider_code="NO_LINK",
                response_data=envelope,
            )

        return PaymentLinkResult(tx_ref=params.tx_ref, checkout_url=link)

    # =========================================================================
    # Transport & Error Translation
    # =========================================================================

    def _request(
        self,
        method: str,
        path: str,
        log_context: dict[str, Any],
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        logger = self.get_logger()
        start_time = time.time()
        logger.info("Starting Flutterwave operation", extra=log_context)

        try:
            response = self._http.request(method, path, json=json, headers=headers)
        except httpx.TimeoutException as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                "Flutterwave request timed out",
                extra={**log_context, "duration_ms": duration_ms},
            )
            raise ProviderTimeoutError(
                "Flutterwave request timed out",
                provider_code="timeout",
            ) from e
        except httpx.TransportError as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                "Connection error to Flutterwave",
                extra={**log_context, "duration_ms": duration_ms},
                exc_info=True,
            )
            raise ProviderNetworkError(
                "Network error: unable to reach Flutterwave",
                provider_code="network_error",
            ) from e

        duration_ms = (time.time() - start_time) * 1000
        status_code = response.status_code
        try:
            body = response.json()
        except ValueError:
            body = None
        message = body.get("message") if isinstance(body, dict) else None

        log_context = {
            **log_context,
            "status_code": status_code,
            "duration_ms": duration_ms,
        }

        if status_code in (401, 403):
            logger.critical(
                "Flutterwave authentication failed - check secret key",
                extra=log_context,
            )
            raise ProviderAuthError(
                message or "Flutterwave authentication failed",
                status_code=status_code,
                response_data=body if isinstance(body, dict) else None,
            )

        if status_code >= 500:
            logger.error("Flutterwave server error", extra=log_context)
            raise ProviderUnknownError(
                message or f"Flutterwave server error ({status_code})",
                status_code=status_code,
                response_data=body if isinstance(body, dict) else None,
            )

        if status_code >= 400:
            logger.warning(
                "Flutterwave rejected request",
                extra={**log_context, "provider_message": message},
            )
            raise ProviderRejectedError(
                message or f"Flutterwave rejected request ({status_code})",
                status_code=status_code,
                response_data=body if isinstance(body, dict) else None,
            )

        if not isinstance(body, dict):
            logger.error("Unparseable Flutterwave response", extra=log_context)
            raise ProviderUnknownError(
                "Unparseable Flutterwave response",
                status_code=status_code,
            )

        logger.info(
            "Flutterwave operation completed",
            extra={**log_context, "provider_status": body.get("status")},
        )
        return body

    def _require_success(
        self,
        envelope: dict[str, Any],
        log_context: dict[str, Any],
        default_message: str,
    ) -> dict[str, Any]:
        data = envelope.get("data")
        if envelope.get("status") != "success" or not isinstance(data, dict):
            self.get_logger().warning(
                default_message,
                extra={**log_context, "provider_message": envelope.get("message")},
            )
            raise ProviderRejectedError(
                envelope.get("message") or default_message,
                provider_code=str(envelope.get("status") or "error"),
                response_data=envelope,
            )
        return data


# =============================================================================
# Default Client
# =============================================================================


_default_client: FlutterwaveClient | None = None
_default_client_lock = threading.Lock()


def get_flutterwave_client() -> FlutterwaveClient:
    """
    Return the process-wide client built from Django settings.

    The client holds an httpx connection pool, so it is built once and
    shared by every service in the process.
    """
    global _default_client
    if _default_client is None:
        with _default_client_lock:
            if _default_client is None:
                _default_client = FlutterwaveClient(FlutterwaveConfig.from_settings())
    return _default_client


def reset_flutterwave_client() -> None:
    """Close the shared client; the next call rebuilds it from settings."""
    global _default_client
    with _default_client_lock:
        if _default_client is not None:
            _default_client.close()
        _default_client = None
