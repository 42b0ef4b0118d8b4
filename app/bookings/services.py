"""
Booking confirmation services invoked after a verified payment.

Services:
    BookingConfirmationService: PENDING booking → CONFIRMED + PAID
    ExtensionConfirmationService: PENDING extension → ACTIVE + PAID

Both are idempotent. Each guards its write on a "not yet confirmed"
predicate and branches on the affected-row count, so a replayed charge
webhook can call them any number of times without re-confirming or
re-notifying. Notifications use deterministic job ids, which makes a
duplicate enqueue collapse in NotificationService.

Usage:
    from bookings.services import BookingConfirmationService

    confirmed = BookingConfirmationService.confirm_from_payment(payment)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import transaction
from django.utils import timezone

from core.services import BaseService
from notifications.models import NotificationType
from notifications.services import NotificationService

from bookings.models import (
    Booking,
    BookingLeg,
    BookingStatus,
    Extension,
    ExtensionStatus,
    PaymentStatus,
)

if TYPE_CHECKING:
    from payments.models import Payment


class BookingConfirmationService(BaseService):
    """Confirms a booking once its payment has been verified."""

    @classmethod
    def confirm_from_payment(cls, payment: Payment) -> bool:
        """
        Confirm the payment's booking.

        Returns:
            True if this call performed the PENDING → CONFIRMED transition,
            False if there is no booking or it was not PENDING.
        """
        logger = cls.get_logger()
        booking_id = payment.booking_id

        if not booking_id:
            logger.warning(
                "Payment has no associated booking, skipping confirmation",
                extra={"payment_id": str(payment.id), "tx_ref": payment.tx_ref},
            )
            return False

        updated = Booking.objects.filter(
            id=booking_id, status=BookingStatus.PENDING
        ).update(
            status=BookingStatus.CONFIRMED,
            payment_status=PaymentStatus.PAID,
            updated_at=timezone.now(),
        )

        if updated == 0:
            logger.info(
                "Booking not found or not PENDING, skipping confirmation",
                extra={
                    "booking_id": str(booking_id),
                    "payment_id": str(payment.id),
                    "tx_ref": payment.tx_ref,
                },
            )
            return False

        booking = Booking.objects.select_related("user").get(id=booking_id)

        logger.info(
            "Booking confirmed after payment",
            extra={
                "booking_id": str(booking.id),
                "payment_id": str(payment.id),
                "tx_ref": payment.tx_ref,
            },
        )

        NotificationService.enqueue(
            job_id=f"booking-confirmed-{booking.id}",
            notification_type=NotificationType.BOOKING_CONFIRMED,
            recipient_email=booking.user.email,
            subject="Your booking is confirmed!",
            context={
                "booking_reference": booking.booking_reference,
                "total_amount": str(booking.total_amount),
            },
        )
        return True


class ExtensionConfirmationService(BaseService):
    """Activates a paid extension and pushes its leg's end time forward."""

    @classmethod
    def confirm_from_payment(cls, payment: Payment) -> bool:
        """
        Activate the payment's extension.

        An extension that is already ACTIVE is treated as confirmed: the leg
        end time is re-advanced (a no-op once applied) and the notification
        enqueue collapses onto the existing job.

        Returns:
            True only if this call performed the PENDING → ACTIVE
            transition.
        """
        logger = cls.get_logger()
        extension_id = payment.extension_id

        if not extension_id:
            logger.warning(
                "Payment has no associated extension, skipping confirmation",
                extra={"payment_id": str(payment.id), "tx_ref": payment.tx_ref},
            )
            return False

        with transaction.atomic():
            updated = Extension.objects.filter(
                id=extension_id, status=ExtensionStatus.PENDING
            ).update(
                status=ExtensionStatus.ACTIVE,
                payment_status=PaymentStatus.PAID,
                updated_at=timezone.now(),
            )

            extension = (
                Extension.objects.select_related("booking_leg__booking__user")
                .filter(id=extension_id)
                .first()
            )
            if extension is None or (
                updated == 0 and extension.status != ExtensionStatus.ACTIVE
            ):
                logger.info(
                    "Extension not found or not confirmable, skipping",
                    extra={
                        "extension_id": str(extension_id),
                        "payment_id": str(payment.id),
                    },
                )
                return False

            # Only ever moves the end forward.
            BookingLeg.objects.filter(
                id=extension.booking_leg_id,
                leg_end_time__lt=extension.extension_end_time,
            ).update(
                leg_end_time=extension.extension_end_time,
                updated_at=timezone.now(),
            )

            booking = extension.booking_leg.booking
            NotificationService.enqueue(
                job_id=f"booking-extension-confirmed-{extension.id}",
                notification_type=NotificationType.BOOKING_EXTENSION_CONFIRMED,
                recipient_email=booking.user.email,
                subject="Booking Extension Confirmed",
                context={
                    "booking_reference": booking.booking_reference,
                    "from": extension.extension_start_time.isoformat(),
                    "to": extension.extension_end_time.isoformat(),
                },
            )

        logger.info(
            "Extension confirmed after payment",
            extra={
                "extension_id": str(extension.id),
                "payment_id": str(payment.id),
                "tx_ref": payment.tx_ref,
                "transitioned": updated == 1,
            },
        )
        return updated == 1
