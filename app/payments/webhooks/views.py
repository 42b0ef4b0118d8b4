"""
Webhook endpoint view for Flutterwave.

Flutterwave authenticates webhooks by sending the configured secret hash in
the verif-hash header. The view:
1. Verifies the header before the body is parsed
2. Parses the body into a typed event
3. Dispatches it synchronously to the reconciliation handler

Status codes:
    - 200: Event handled, dropped, or of an unknown type
    - 400: Body is not JSON or has no event type
    - 401: Missing or wrong verif-hash
    - 500: A handler raised (e.g. verification call failed); Flutterwave retries

Usage:
    # In urls.py
    from payments.webhooks.views import flutterwave_webhook

    urlpatterns = [
        path("webhooks/flutterwave/", flutterwave_webhook, name="flutterwave_webhook"),
    ]
"""

from __future__ import annotations

import json
import logging

from django.conf import settings
from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from core.security import WebhookSignatureVerifier

from payments.webhooks.events import MalformedWebhookError, parse_webhook_event
from payments.webhooks.handlers import dispatch_webhook

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "verif-hash"


@csrf_exempt
@require_POST
def flutterwave_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive and process Flutterwave webhook events.

    Security:
    - verif-hash is compared with HMAC digests in constant time
    - CSRF exemption required for external webhooks
    - Only POST requests accepted

    Idempotency is the handlers' job: every reconciliation guards its writes,
    so redelivered events are acknowledged without re-applying them.
    """
    verifier = WebhookSignatureVerifier(
        secret=settings.FLUTTERWAVE_WEBHOOK_SECRET,
        hmac_key=settings.WEBHOOK_HMAC_KEY,
    )
    if not verifier.verify(request.headers.get(SIGNATURE_HEADER)):
        logger.warning(
            "Webhook signature verification failed",
            extra={"remote_addr": request.META.get("REMOTE_ADDR")},
        )
        return HttpResponse("Invalid signature", status=401)

    try:
        event = parse_webhook_event(json.loads(request.body))
    except (ValueError, MalformedWebhookError) as e:
        logger.warning("Invalid webhook payload", extra={"error": str(e)})
        return HttpResponse("Invalid payload", status=400)

    logger.info(
        f"Received Flutterwave webhook: {event.event_type}",
        extra={"event_type": event.event_type},
    )

    try:
        dispatch_webhook(event)
    except Exception as e:
        logger.error(
            f"Webhook processing failed: {type(e).__name__}",
            extra={"event_type": event.event_type},
            exc_info=True,
        )
        return HttpResponse("Processing error", status=500)

    return HttpResponse("OK", status=200)
