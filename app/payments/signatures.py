"""
HMAC-SHA256 verification for gateway-signed data.

Two modes:
- Client confirmation: the checkout widget hands the client
  (order_id, payment_id, signature); the signature is the hex HMAC of
  "order_id|payment_id" keyed with the API key secret.
- Webhook: the X-Razorpay-Signature header is the hex HMAC of the exact raw
  request body keyed with the webhook secret.

Both compare in constant time and fail closed: a missing secret, missing
signature, or mismatch raises SignatureInvalidError.

Usage:
    from payments.signatures import SignatureVerifier

    verifier = SignatureVerifier.from_settings()
    verifier.verify_webhook_signature(request.body, request.headers.get("X-Razorpay-Signature"))
"""

from __future__ import annotations

import hashlib
import hmac
import logging

from django.conf import settings

from payments.exceptions import SignatureInvalidError

logger = logging.getLogger(__name__)


def compute_signature(secret: str, message: bytes) -> str:
    """Hex HMAC-SHA256 of message keyed with secret."""
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def signatures_match(expected: str, received: object) -> bool:
    """
    Constant-time comparison of a computed digest with untrusted input.

    Compares bytes: compare_digest refuses non-ASCII str, and a header or
    JSON field can carry any character. Unencodable characters become "?",
    which never appears in a hex digest.
    """
    received_bytes = str(received).encode("utf-8", errors="replace")
    return hmac.compare_digest(expected.encode("ascii"), received_bytes)


class SignatureVerifier:
    """
    Verifies client payment confirmations and webhook deliveries.

    Args:
        key_secret: API key secret (client confirmations)
        webhook_secret: Webhook secret (webhook deliveries)
    """

    def __init__(self, key_secret: str, webhook_secret: str) -> None:
        self._key_secret = key_secret
        self._webhook_secret = webhook_secret

    @classmethod
    def from_settings(cls) -> SignatureVerifier:
        return cls(
            key_secret=settings.RAZORPAY_KEY_SECRET,
            webhook_secret=settings.RAZORPAY_WEBHOOK_SECRET,
        )

    def verify_payment_signature(self, order_id: str, payment_id: str, signature: str) -> None:
        """
        Check a client-submitted payment confirmation.

        Raises:
            SignatureInvalidError: Missing input, unconfigured secret, or mismatch
        """
        if not self._key_secret:
            logger.error("RAZORPAY_KEY_SECRET is not configured; rejecting confirmation")
            raise SignatureInvalidError(
                "Payment signature cannot be verified",
                details={"reason": "secret_not_configured"},
            )
        if not (order_id and payment_id and signature):
            raise SignatureInvalidError(
                "Payment signature is missing",
                details={"reason": "missing_input"},
            )

        expected = compute_signature(self._key_secret, f"{order_id}|{payment_id}".encode("utf-8"))
        if not signatures_match(expected, signature):
            logger.warning(
                "Payment signature mismatch",
                extra={"order_id": order_id, "payment_id": payment_id},
            )
            raise SignatureInvalidError(
                "Payment signature is invalid",
                details={"reason": "mismatch"},
            )

    def verify_webhook_signature(self, body: bytes, signature: str | None) -> None:
        """
        Check a webhook delivery against the raw body bytes.

        The body must be exactly what was received; re-serialised JSON will
        not match.

        Raises:
            SignatureInvalidError: Missing header, unconfigured secret, or mismatch
        """
        if not self._webhook_secret:
            logger.error("RAZORPAY_WEBHOOK_SECRET is not configured; rejecting webhook")
            raise SignatureInvalidError(
                "Webhook signature cannot be verified",
                details={"reason": "secret_not_configured"},
            )
        if not signature:
            raise SignatureInvalidError(
                "Webhook signature header is missing",
                details={"reason": "missing_input"},
            )

        expected = compute_signature(self._webhook_secret, body)
        if not signatures_match(expected, signature):
            logger.warning("Webhook signature mismatch", extra={"body_length": len(body)})
            raise SignatureInvalidError(
                "Webhook signature is invalid",
                details={"reason": "mismatch"},
            )
