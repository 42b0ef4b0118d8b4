"""
Pytest fixtures for Flutterwave adapter tests.

Requests never leave the process: the client is built on an
httpx.MockTransport whose handler is supplied per test.

Sections:
    - Configuration Fixtures
    - Mock Transport Fixtures
"""

import json

import httpx
import pytest

from payments.adapters import (
    FlutterwaveClient,
    FlutterwaveConfig,
    reset_flutterwave_client,
)


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def flutterwave_config():
    return FlutterwaveConfig(
        secret_key="FLWSECK_TEST-abc123",
        base_url="https://api.flutterwave.test",
        webhook_url="https://app.example.com",
        timeout_seconds=5,
        currency="NGN",
    )


# =============================================================================
# Mock Transport Fixtures
# =============================================================================


@pytest.fixture
def recorded_requests():
    return []


@pytest.fixture
def make_client(flutterwave_config, recorded_requests):
    """
    Build a client whose transport answers with the given handler.

    Usage:
        client = make_client(lambda request: httpx.Response(200, json={...}))
    """

    def _make(handler):
        def _record(request: httpx.Request) -> httpx.Response:
            recorded_requests.append(request)
            return handler(request)

        return FlutterwaveClient(
            flutterwave_config, transport=httpx.MockTransport(_record)
        )

    return _make


@pytest.fixture
def respond_json():
    """Handler factory returning a fixed JSON response."""

    def _respond(status_code: int, body: dict):
        return lambda request: httpx.Response(status_code, json=body)

    return _respond


def request_json(request: httpx.Request) -> dict:
    return json.loads(request.content)


@pytest.fixture
def fresh_default_client(settings):
    """Rebuild the shared client from test settings and close it afterwards."""
    settings.FLUTTERWAVE_SECRET_KEY = "sk"
    settings.FLUTTERWAVE_BASE_URL = "https://api.flutterwave.test"
    reset_flutterwave_client()
    yield
    reset_flutterwave_client()
