"""
Tests for the Flutterwave webhook view.

Tests cover:
- verif-hash verification before the body is read
- Payload validation
- Dispatch outcomes mapped to status codes
- End-to-end reconciliation through the view
"""

from decimal import Decimal
from unittest.mock import patch

import pytest

from core.services import ServiceResult
from payments.exceptions import ProviderTimeoutError
from payments.models import Payment, PayoutTransaction
from payments.state_machines import PayoutTransactionStatus
from payments.tests.factories import PayoutTransactionFactory
from payments.webhooks.events import ChargeCompletedEvent, UnknownEvent
from payments.webhooks.views import flutterwave_webhook


# =============================================================================
# Signature Verification Tests
# =============================================================================


class TestWebhookSignature:
    def test_missing_signature_returns_401(self, make_webhook_request, charge_completed_body):
        request = make_webhook_request(charge_completed_body, signature=None)

        with patch("payments.webhooks.views.dispatch_webhook") as dispatch:
            response = flutterwave_webhook(request)

        assert response.status_code == 401
        assert response.content == b"Invalid signature"
        dispatch.assert_not_called()

    def test_wrong_signature_returns_401(self, make_webhook_request, charge_completed_body):
        request = make_webhook_request(charge_completed_body, signature="wrong")

        with patch("payments.webhooks.views.dispatch_webhook") as dispatch:
            response = flutterwave_webhook(request)

        assert response.status_code == 401
        dispatch.assert_not_called()

    def test_unconfigured_secret_rejects_everything(self, make_webhook_request, settings):
        request = make_webhook_request({"event": "charge.completed"}, signature="")
        settings.FLUTTERWAVE_WEBHOOK_SECRET = ""

        response = flutterwave_webhook(request)

        assert response.status_code == 401

    def test_signature_checked_before_body(self, make_webhook_request):
        """A bad signature wins over a bad body."""
        request = make_webhook_request("not json", signature="wrong")

        response = flutterwave_webhook(request)

        assert response.status_code == 401

    def test_get_not_allowed(self, rf, webhook_settings):
        request = rf.get("/api/v1/payments/webhooks/flutterwave/")

        response = flutterwave_webhook(request)

        assert response.status_code == 405


# =============================================================================
# Payload Tests
# =============================================================================


class TestWebhookPayload:
    @pytest.mark.parametrize(
        "body",
        ["not json", "[1, 2]", '{"data": {}}', '{"event": ""}'],
    )
    def test_invalid_payload_returns_400(self, make_webhook_request, body):
        request = make_webhook_request(body)

        with patch("payments.webhooks.views.dispatch_webhook") as dispatch:
            response = flutterwave_webhook(request)

        assert response.status_code == 400
        assert response.content == b"Invalid payload"
        dispatch.assert_not_called()


# =============================================================================
# Dispatch Tests
# =============================================================================


class TestWebhookDispatch:
    def test_valid_event_is_dispatched(self, make_webhook_request, charge_completed_body):
        request = make_webhook_request(charge_completed_body)

        with patch(
            "payments.webhooks.views.dispatch_webhook",
            return_value=ServiceResult.success(None),
        ) as dispatch:
            response = flutterwave_webhook(request)

        assert response.status_code == 200
        event = dispatch.call_args.args[0]
        assert isinstance(event, ChargeCompletedEvent)
        assert event.tx_ref == "booking_tx-1"

    def test_dropped_event_returns_200(self, make_webhook_request, charge_completed_body):
        request = make_webhook_request(charge_completed_body)

        with patch(
            "payments.webhooks.views.dispatch_webhook",
            return_value=ServiceResult.failure("mismatch", error_code="VERIFICATION_MISMATCH"),
        ):
            response = flutterwave_webhook(request)

        assert response.status_code == 200

    def test_unknown_event_returns_200(self, make_webhook_request):
        request = make_webhook_request({"event": "subscription.cancelled", "data": {}})

        with patch(
            "payments.webhooks.views.dispatch_webhook",
            return_value=ServiceResult.success(None),
        ) as dispatch:
            response = flutterwave_webhook(request)

        assert response.status_code == 200
        assert isinstance(dispatch.call_args.args[0], UnknownEvent)

    def test_handler_error_returns_500(self, make_webhook_request, charge_completed_body):
        """Flutterwave redelivers on non-2xx, so ambiguous failures answer 500."""
        request = make_webhook_request(charge_completed_body)

        with patch(
            "payments.webhooks.views.dispatch_webhook",
            side_effect=ProviderTimeoutError("no response"),
        ):
            response = flutterwave_webhook(request)

        assert response.status_code == 500
        assert response.content == b"Processing error"


# =============================================================================
# End-to-end Tests
# =============================================================================


@pytest.mark.django_db
class TestWebhookEndToEnd:
    def test_charge_without_tx_ref_is_acknowledged_and_dropped(
        self, make_webhook_request, charge_completed_body
    ):
        del charge_completed_body["data"]["tx_ref"]
        request = make_webhook_request(charge_completed_body)

        response = flutterwave_webhook(request)

        assert response.status_code == 200
        assert not Payment.objects.exists()

    def test_transfer_completed_pays_out(self, make_webhook_request):
        payout = PayoutTransactionFactory(
            status=PayoutTransactionStatus.PROCESSING,
            payout_provider_reference="payout_ref-1",
        )
        body = {
            "event": "transfer.completed",
            "data": {
                "id": 8001,
                "reference": "payout_ref-1",
                "status": "SUCCESSFUL",
                "amount": 9000,
            },
        }

        first = flutterwave_webhook(make_webhook_request(body))
        second = flutterwave_webhook(make_webhook_request(body))

        assert first.status_code == second.status_code == 200
        payout.refresh_from_db()
        assert payout.status == PayoutTransactionStatus.PAID_OUT
        assert payout.amount_paid == Decimal("9000.00")
        assert PayoutTransaction.objects.count() == 1
