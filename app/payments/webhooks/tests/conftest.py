"""
Pytest fixtures for webhook tests.

Provides a request factory, webhook secret settings, and helpers for
building Flutterwave webhook bodies.
"""

import json

import pytest
from django.test import RequestFactory

WEBHOOK_SECRET = "flw-secret-hash"
WEBHOOK_PATH = "/api/v1/payments/webhooks/flutterwave/"


@pytest.fixture
def rf():
    """Request factory for creating test requests."""
    return RequestFactory()


@pytest.fixture
def webhook_settings(settings):
    """Configure the verif-hash secret and the HMAC comparison key."""
    settings.FLUTTERWAVE_WEBHOOK_SECRET = WEBHOOK_SECRET
    settings.WEBHOOK_HMAC_KEY = "test-hmac-key"
    return settings


@pytest.fixture
def make_webhook_request(rf, webhook_settings):
    """Build a POST to the webhook endpoint; signature defaults to the secret."""

    def _make(body, signature=WEBHOOK_SECRET):
        data = body if isinstance(body, (str, bytes)) else json.dumps(body)
        headers = {} if signature is None else {"HTTP_VERIF_HASH": signature}
        return rf.post(
            WEBHOOK_PATH,
            data=data,
            content_type="application/json",
            **headers,
        )

    return _make


@pytest.fixture
def charge_completed_body():
    return {
        "event": "charge.completed",
        "data": {
            "id": 555,
            "tx_ref": "booking_tx-1",
            "flw_ref": "FLW-MOCK-1",
            "amount": 10000,
            "charged_amount": 10000,
            "currency": "NGN",
            "status": "successful",
            "payment_type": "card",
            "customer": {"email": "customer@example.com"},
        },
    }
