"""
Bookings app.

Holds the records the payment core reconciles against:
- Booking: a customer's rental, owned by a fleet owner
- BookingLeg / Extension: paid extensions of a booking's leg
- BankDetails: a fleet owner's payout destination

Booking CRUD and pricing live outside this service; this app only carries
the fields payments read and the idempotent confirmation services that run
after a verified charge.

Usage:
    from bookings.services import BookingConfirmationService

    confirmed = BookingConfirmationService.confirm_from_payment(payment)
"""
