"""
Payment initialization and status lookup.

initialize_payment creates a Flutterwave hosted checkout for a booking or
extension and stores the deterministic tx_ref on the entity as its
payment_intent. Charge reconciliation later matches the charge.completed
webhook to the entity through that value; no Payment row exists until
then.

Usage:
    from payments.services import PaymentService

    result = PaymentService.initialize_payment(
        user=request.user,
        entity_type="booking",
        entity_id=booking.id,
        amount=Decimal("10000.00"),
        callback_url="https://app.example.com/payments/done",
    )
    checkout_url = result.data.checkout_url
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils import timezone

from bookings.models import (
    UNPAYABLE_STATUSES,
    Booking,
    Extension,
    ExtensionStatus,
    PaymentStatus,
)
from core.services import BaseService, ServiceResult

from payments.adapters import (
    FlutterwaveClient,
    IdempotencyKeyGenerator,
    PaymentLinkParams,
    get_flutterwave_client,
)
from payments.exceptions import (
    PaymentNotFoundError,
    PaymentPermissionError,
    PaymentValidationError,
)
from payments.models import Payment

ENTITY_BOOKING = "booking"
ENTITY_EXTENSION = "extension"
ENTITY_TYPES = (ENTITY_BOOKING, ENTITY_EXTENSION)


@dataclass
class PaymentLink:
    payment_intent_id: str
    checkout_url: str


class PaymentService(BaseService):
    """
    Customer-facing payment operations.

    Caller errors raise PaymentError subclasses; provider errors from
    checkout creation propagate unchanged.
    """

    _client: FlutterwaveClient | None = None

    @classmethod
    def get_client(cls) -> FlutterwaveClient:
        return cls._client or get_flutterwave_client()

    @classmethod
    def set_client(cls, client: FlutterwaveClient | None) -> None:
        """Set the Flutterwave client (for testing)."""
        cls._client = client

    # =========================================================================
    # Initialization
    # =========================================================================

    @classmethod
    def initialize_payment(
        cls,
        user,
        entity_type: str,
        entity_id,
        amount: Decimal,
        callback_url: str,
    ) -> ServiceResult[PaymentLink]:
        """
        Create a checkout link for a booking or extension.

        The amount sent by the client must equal the server-side total;
        it is never used to price the checkout.

        Raises:
            PaymentValidationError: Unknown entity type, unpayable entity,
                already paid, or amount mismatch
            PaymentNotFoundError: Entity does not exist
            PaymentPermissionError: Caller does not own the entity
            ProviderError: Checkout could not be created
        """
        logger = cls.get_logger()

        if entity_type not in ENTITY_TYPES:
            raise PaymentValidationError(
                f"Unsupported entity type: {entity_type}",
                details={"entity_type": entity_type},
            )

        entity, booking = cls._load_entity(entity_type, entity_id)

        if booking.user_id != user.id:
            raise PaymentPermissionError("You do not have permission to pay for this")

        if booking.status in UNPAYABLE_STATUSES:
            raise PaymentValidationError(
                "Booking is cancelled or rejected",
                details={"status": booking.status},
            )
        if entity_type == ENTITY_EXTENSION and entity.status in (
            ExtensionStatus.CANCELLED,
            ExtensionStatus.REJECTED,
        ):
            raise PaymentValidationError(
                "Extension is cancelled or rejected",
                details={"status": entity.status},
            )

        if entity.payment_status == PaymentStatus.PAID:
            raise PaymentValidationError(f"This {entity_type} has already been paid")

        if amount != entity.total_amount:
            logger.warning(
                "Payment amount does not match server-side total",
                extra={
                    "entity_type": entity_type,
                    "entity_id": str(entity.id),
                    "client_amount": str(amount),
                    "expected_amount": str(entity.total_amount),
                },
            )
            raise PaymentValidationError(
                "Payment amount does not match the amount due",
                details={"expected": str(entity.total_amount)},
            )

        tx_ref = IdempotencyKeyGenerator.payment_tx_ref(entity_type, entity.id)
        link = cls.get_client().create_payment_link(
            PaymentLinkParams(
                tx_ref=tx_ref,
                amount=entity.total_amount,
                redirect_url=callback_url,
                customer_email=user.email,
                customer_name=user.get_full_name() or user.get_username(),
                entity_type=entity_type,
                metadata={
                    "type": entity_type,
                    "entityId": str(entity.id),
                    "userId": str(user.id),
                },
            )
        )

        type(entity).objects.filter(id=entity.id).update(
            payment_intent=tx_ref, updated_at=timezone.now()
        )

        logger.info(
            "Payment initialized",
            extra={
                "entity_type": entity_type,
                "entity_id": str(entity.id),
                "tx_ref": tx_ref,
            },
        )
        return ServiceResult.success(
            PaymentLink(payment_intent_id=tx_ref, checkout_url=link.checkout_url)
        )

    @classmethod
    def _load_entity(cls, entity_type: str, entity_id) -> tuple[Any, Booking]:
        try:
            if entity_type == ENTITY_BOOKING:
                booking = Booking.objects.filter(id=entity_id).first()
                entity = booking
            else:
                entity = (
                    Extension.objects.select_related("booking_leg__booking")
                    .filter(id=entity_id)
                    .first()
                )
                booking = entity.booking if entity else None
        except DjangoValidationError:
            entity = None

        if entity is None:
            raise PaymentNotFoundError(
                f"{entity_type.capitalize()} not found",
                details={"entity_id": str(entity_id)},
            )
        return entity, booking

    # =========================================================================
    # Status
    # =========================================================================

    @classmethod
    def get_payment_status(cls, user, tx_ref: str) -> ServiceResult[dict]:
        """Status of a payment the caller owns."""
        payment = (
            Payment.objects.select_related("booking", "extension__booking_leg__booking")
            .filter(tx_ref=tx_ref)
            .first()
        )
        if payment is None:
            raise PaymentNotFoundError("Payment not found", details={"tx_ref": tx_ref})

        if payment.owner_user_id != user.id:
            raise PaymentPermissionError("You do not have permission to view this payment")

        owner = payment.booking or payment.extension
        return ServiceResult.success(
            {
                "tx_ref": payment.tx_ref,
                "status": payment.status,
                "amount_expected": payment.amount_expected,
                "amount_charged": payment.amount_charged,
                "currency": payment.currency,
                "confirmed_at": payment.confirmed_at,
                "booking": (
                    {"id": payment.booking.id, "status": payment.booking.status}
                    if payment.booking_id
                    else None
                ),
                "extension": (
                    {"id": owner.id, "status": owner.status}
                    if payment.extension_id
                    else None
                ),
            }
        )
