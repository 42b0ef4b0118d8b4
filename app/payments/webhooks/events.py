"""
Typed Flutterwave webhook events.

A verified webhook body is parsed into exactly one of the event classes
below, selected by its "event" discriminant. Parsing never rejects a body
because a data field is missing: correlation fields come through as None
and each reconciliation handler applies its own field guard before it
touches the database.

Usage:
    from payments.webhooks.events import parse_webhook_event

    event = parse_webhook_event(json.loads(request.body))
    if isinstance(event, ChargeCompletedEvent):
        ...
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, ClassVar, Union

from payments.exceptions import PaymentValidationError


class MalformedWebhookError(PaymentValidationError):
    """Body is not a JSON object or has no event discriminant."""

    default_error_code: str = "MALFORMED_WEBHOOK"


# =============================================================================
# Field Coercion
# =============================================================================


def parse_amount(value: Any) -> Decimal | None:
    """
    Coerce a provider amount to Decimal.

    Returns None for missing, boolean, or non-numeric values so that a
    field guard can treat them the same as an absent field.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str) and value.strip():
        try:
            amount = Decimal(value.strip())
        except InvalidOperation:
            return None
        return amount if amount.is_finite() else None
    return None


def parse_text(value: Any) -> str | None:
    """Coerce an identifier to a non-empty string, or None."""
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None


# =============================================================================
# Event Types
# =============================================================================


@dataclass(frozen=True)
class ChargeCompletedEvent:
    """charge.completed: a customer charge reached a final state."""

    event_type: ClassVar[str] = "charge.completed"

    transaction_id: str | None
    tx_ref: str | None
    flw_ref: str | None = None
    amount: Decimal | None = None
    charged_amount: Decimal | None = None
    currency: str | None = None
    status: str | None = None
    payment_type: str | None = None
    customer_email: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_data(cls, data: dict[str, Any]) -> ChargeCompletedEvent:
        customer = data.get("customer")
        return cls(
            transaction_id=parse_text(data.get("id")),
            tx_ref=parse_text(data.get("tx_ref")),
            flw_ref=parse_text(data.get("flw_ref")),
            amount=parse_amount(data.get("amount")),
            charged_amount=parse_amount(data.get("charged_amount")),
            currency=parse_text(data.get("currency")),
            status=parse_text(data.get("status")),
            payment_type=parse_text(data.get("payment_type")),
            customer_email=(
                parse_text(customer.get("email")) if isinstance(customer, dict) else None
            ),
            data=data,
        )


@dataclass(frozen=True)
class TransferCompletedEvent:
    """transfer.completed: a payout transfer reached a final state."""

    event_type: ClassVar[str] = "transfer.completed"

    reference: str | None
    status: str | None
    transfer_id: str | None = None
    amount: Decimal | None = None
    currency: str | None = None
    bank_code: str | None = None
    account_number: str | None = None
    complete_message: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_data(cls, data: dict[str, Any]) -> TransferCompletedEvent:
        return cls(
            reference=parse_text(data.get("reference")),
            status=parse_text(data.get("status")),
            transfer_id=parse_text(data.get("id")),
            amount=parse_amount(data.get("amount")),
            currency=parse_text(data.get("currency")),
            bank_code=parse_text(data.get("bank_code")),
            account_number=parse_text(data.get("account_number")),
            complete_message=parse_text(data.get("complete_message")),
            data=data,
        )


@dataclass(frozen=True)
class RefundCompletedEvent:
    """refund.completed: a refund reached a final state."""

    event_type: ClassVar[str] = "refund.completed"

    transaction_id: str | None
    amount_refunded: Decimal | None
    status: str | None = None
    flw_ref: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_data(cls, data: dict[str, Any]) -> RefundCompletedEvent:
        return cls(
            transaction_id=parse_text(data.get("TransactionId")),
            amount_refunded=parse_amount(data.get("AmountRefunded")),
            status=parse_text(data.get("status")),
            flw_ref=parse_text(data.get("FlwRef")),
            data=data,
        )


@dataclass(frozen=True)
class UnknownEvent:
    """Any event type this service does not handle."""

    event_type: str
    data: dict[str, Any] = field(default_factory=dict)


WebhookEvent = Union[
    ChargeCompletedEvent, TransferCompletedEvent, RefundCompletedEvent, UnknownEvent
]

EVENT_TYPES: dict[str, type] = {
    ChargeCompletedEvent.event_type: ChargeCompletedEvent,
    TransferCompletedEvent.event_type: TransferCompletedEvent,
    RefundCompletedEvent.event_type: RefundCompletedEvent,
}


def parse_webhook_event(body: Any) -> WebhookEvent:
    """
    Build the typed event for a decoded webhook body.

    Raises:
        MalformedWebhookError: If the body is not an object or has no event
    """
    if not isinstance(body, dict):
        raise MalformedWebhookError("Webhook body must be a JSON object")

    event_type = parse_text(body.get("event"))
    if not event_type:
        raise MalformedWebhookError("Webhook body has no event type")

    data = body.get("data")
    if not isinstance(data, dict):
        data = {}

    event_class = EVENT_TYPES.get(event_type)
    if event_class is None:
        return UnknownEvent(event_type=event_type, data=data)
    return event_class.from_data(data)
