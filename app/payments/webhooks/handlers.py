"""
Webhook event handlers for Flutterwave events.

This module provides a handler registry keyed by event type. Each handler
takes the typed event and delegates to the reconciliation service that
owns the affected record.

Unknown event types are logged and acknowledged, so Flutterwave adding a
new event never produces redelivery storms.

Usage:
    from payments.webhooks.handlers import dispatch_webhook

    result = dispatch_webhook(parse_webhook_event(body))
"""

from __future__ import annotations

import logging
from typing import Callable

from core.services import ServiceResult

from payments.services import (
    ChargeReconciliationService,
    PayoutService,
    RefundService,
)
from payments.webhooks.events import (
    ChargeCompletedEvent,
    RefundCompletedEvent,
    TransferCompletedEvent,
    WebhookEvent,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event type strings to handler functions
WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}


def register_handler(event_type: str) -> Callable:
    """
    Decorator to register a webhook event handler.

    Usage:
        @register_handler("charge.completed")
        def handle_charge_completed(event: ChargeCompletedEvent) -> ServiceResult:
            ...
    """

    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        WEBHOOK_HANDLERS[event_type] = func
        logger.debug(f"Registered webhook handler for {event_type}")
        return func

    return decorator


def dispatch_webhook(event: WebhookEvent) -> ServiceResult:
    """
    Dispatch a webhook event to its handler.

    Returns:
        ServiceResult from the handler, or success if no handler is
        registered for the event type

    Raises:
        Whatever the handler raises; the view turns it into a 500 so that
        Flutterwave redelivers.
    """
    handler = WEBHOOK_HANDLERS.get(event.event_type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {event.event_type}, ignoring",
            extra={"event_type": event.event_type},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {event.event_type} to handler",
        extra={"event_type": event.event_type},
    )
    result = handler(event)

    if not result.success:
        logger.info(
            f"{event.event_type} dropped",
            extra={"event_type": event.event_type, "error_code": result.error_code},
        )
    return result


# =============================================================================
# Handlers
# =============================================================================


@register_handler(ChargeCompletedEvent.event_type)
def handle_charge_completed(event: ChargeCompletedEvent) -> ServiceResult:
    return ChargeReconciliationService.reconcile_charge(event)


@register_handler(RefundCompletedEvent.event_type)
def handle_refund_completed(event: RefundCompletedEvent) -> ServiceResult:
    return RefundService.reconcile_refund(event)


@register_handler(TransferCompletedEvent.event_type)
def handle_transfer_completed(event: TransferCompletedEvent) -> ServiceResult:
    return PayoutService.reconcile_transfer(event)
