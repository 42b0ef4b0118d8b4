"""
Webhook handling for payment events from Flutterwave.

Webhooks are authenticated by the verif-hash header, parsed into typed
events and dispatched synchronously to the reconciliation services.

Usage:
    # In urls.py
    from payments.webhooks.views import flutterwave_webhook

    urlpatterns = [
        path("webhooks/flutterwave/", flutterwave_webhook, name="flutterwave_webhook"),
    ]
"""

from payments.webhooks.events import (
    ChargeCompletedEvent,
    MalformedWebhookError,
    RefundCompletedEvent,
    TransferCompletedEvent,
    UnknownEvent,
    parse_webhook_event,
)

__all__ = [
    "ChargeCompletedEvent",
    "MalformedWebhookError",
    "RefundCompletedEvent",
    "TransferCompletedEvent",
    "UnknownEvent",
    "parse_webhook_event",
]
