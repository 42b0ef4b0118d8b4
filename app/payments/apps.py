"""
Payments app configuration.

This app provides Flutterwave payment processing:
- Charge, refund and transfer webhook reconciliation
- Refund initiation and fleet-owner payouts
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"

    def ready(self):
        from payments import signals  # noqa: F401
