import uuid

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("bookings", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Payment",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "tx_ref",
                    models.CharField(
                        help_text="Transaction reference issued at payment initialization",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "flutterwave_transaction_id",
                    models.CharField(
                        blank=True,
                        help_text="Flutterwave transaction id",
                        max_length=64,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "flutterwave_reference",
                    models.CharField(
                        blank=True,
                        help_text="Flutterwave flw_ref",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "amount_expected",
                    models.DecimalField(decimal_places=2, max_digits=12),
                ),
                (
                    "amount_charged",
                    models.DecimalField(
                        blank=True, decimal_places=2, max_digits=12, null=True
                    ),
                ),
                ("currency", models.CharField(default="NGN", max_length=3)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("PENDING", "Pending"),
                            ("SUCCESSFUL", "Successful"),
                            ("FAILED", "Failed"),
                            ("REFUND_PROCESSING", "Refund Processing"),
                            ("REFUND_ERROR", "Refund Error"),
                            ("REFUND_FAILED", "Refund Failed"),
                            ("REFUNDED", "Refunded"),
                            ("PARTIALLY_REFUNDED", "Partially Refunded"),
                        ],
                        db_index=True,
                        default="PENDING",
                        max_length=20,
                    ),
                ),
                ("payment_method", models.CharField(blank=True, max_length=50)),
                ("initiated_at", models.DateTimeField(blank=True, null=True)),
                ("confirmed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "webhook_payload",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Raw webhook data and refund audit records",
                    ),
                ),
                (
                    "refund_idempotency_key",
                    models.CharField(
                        blank=True,
                        help_text="Idempotency key sent with the current refund attempt",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "booking",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="bookings.booking",
                    ),
                ),
                (
                    "extension",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="bookings.extension",
                    ),
                ),
            ],
            options={
                "db_table": "payments_payment",
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(
                                ("booking__isnull", False), ("extension__isnull", True)
                            ),
                            models.Q(
                                ("booking__isnull", True), ("extension__isnull", False)
                            ),
                            _connector="OR",
                        ),
                        name="payment_exactly_one_owner",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="PayoutTransaction",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "amount_to_pay",
                    models.DecimalField(decimal_places=2, max_digits=12),
                ),
                (
                    "amount_paid",
                    models.DecimalField(
                        blank=True, decimal_places=2, max_digits=12, null=True
                    ),
                ),
                ("currency", models.CharField(default="NGN", max_length=3)),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("PENDING_APPROVAL", "Pending Approval"),
                            ("PENDING_DISBURSEMENT", "Pending Disbursement"),
                            ("PROCESSING", "Processing"),
                            ("PAID_OUT", "Paid Out"),
                            ("FAILED", "Failed"),
                            ("REVERSED", "Reversed"),
                        ],
                        db_index=True,
                        default="PENDING_DISBURSEMENT",
                        help_text="Current state of the payout (managed by FSM)",
                        max_length=50,
                    ),
                ),
                (
                    "payout_provider_reference",
                    models.CharField(
                        blank=True,
                        help_text="Reference sent to Flutterwave (payout_<id>)",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "provider_transfer_id",
                    models.CharField(
                        blank=True,
                        help_text="Flutterwave transfer id",
                        max_length=64,
                        null=True,
                    ),
                ),
                (
                    "payout_method_details",
                    models.CharField(blank=True, max_length=255),
                ),
                ("initiated_at", models.DateTimeField(blank=True, null=True)),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("notes", models.TextField(blank=True)),
                (
                    "booking",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payout_transaction",
                        to="bookings.booking",
                    ),
                ),
                (
                    "extension",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payout_transactions",
                        to="bookings.extension",
                    ),
                ),
                (
                    "fleet_owner",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payout_transactions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "payments_payout_transaction",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "created_at"],
                        name="payout_status_created_idx",
                    )
                ],
            },
        ),
    ]
