"""
Webhook signature verification.

Providers such as Flutterwave authenticate webhooks by echoing a shared
secret in a request header. Comparing that header directly against the
secret leaks timing (and, for unequal lengths, length) information, so both
values are first passed through HMAC-SHA256 under a server-side key and the
fixed-size digests are compared with hmac.compare_digest.

Usage:
    from core.security import WebhookSignatureVerifier

    verifier = WebhookSignatureVerifier(
        secret=settings.FLUTTERWAVE_WEBHOOK_SECRET,
        hmac_key=settings.WEBHOOK_HMAC_KEY,
    )
    if not verifier.verify(request.headers.get("verif-hash")):
        return HttpResponse("Invalid signature", status=401)
"""

from __future__ import annotations

import hashlib
import hmac

from django.core.exceptions import ImproperlyConfigured


class WebhookSignatureVerifier:
    """
    Constant-time comparison of a received token against a configured secret.

    Attributes:
        secret: The value the provider is expected to send
        hmac_key: Key used to hash both sides before comparison
    """

    def __init__(self, secret: str, hmac_key: str):
        if not hmac_key:
            raise ImproperlyConfigured("WEBHOOK_HMAC_KEY must be configured")
        self.secret = secret or ""
        self._key = hmac_key.encode("utf-8")

    def _digest(self, value: str) -> bytes:
        return hmac.new(self._key, value.encode("utf-8"), hashlib.sha256).digest()

    def verify(self, signature: str | None) -> bool:
        """
        Check a received signature header.

        Returns False for an absent or empty signature and when no secret
        is configured, without hashing anything.
        """
        if not signature or not self.secret:
            return False
        return hmac.compare_digest(self._digest(signature), self._digest(self.secret))
