"""
Payment adapters for external services.

All Flutterwave API calls go through FlutterwaveClient to ensure
consistent error handling, timeouts, idempotency, and observability.

Usage:
    from payments.adapters import FlutterwaveClient, FlutterwaveConfig

    client = FlutterwaveClient(FlutterwaveConfig.from_settings())
    envelope = client.verify_transaction(transaction_id)
"""

from payments.adapters.flutterwave_adapter import (
    FlutterwaveClient,
    FlutterwaveConfig,
    IdempotencyKeyGenerator,
    PaymentLinkParams,
    PaymentLinkResult,
    RefundResult,
    TransferParams,
    TransferResult,
    get_flutterwave_client,
    reset_flutterwave_client,
)

__all__ = [
    "FlutterwaveClient",
    "FlutterwaveConfig",
    "IdempotencyKeyGenerator",
    "PaymentLinkParams",
    "PaymentLinkResult",
    "RefundResult",
    "TransferParams",
    "TransferResult",
    "get_flutterwave_client",
    "reset_flutterwave_client",
]
