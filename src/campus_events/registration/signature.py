"""HMAC-SHA256 verification of payment gateway webhooks.

The gateway signs the raw request body with the shared webhook secret and
sends the hex digest in a header. Verification fails closed: a missing
header, a missing secret, or any mismatch rejects the delivery.
"""

import hashlib
import hmac
import logging

from django.core.exceptions import ImproperlyConfigured

from campus_events.registration.exceptions import InvalidSignatureError, MissingSignatureError

logger = logging.getLogger(__name__)

SIGNATURE_HEADERS: tuple[str, ...] = ("x-signature", "x-razorpay-signature")


def compute_signature(body: bytes, secret: str) -> str:
    """Return the hex HMAC-SHA256 digest of *body* keyed with *secret*."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: str | None, secret: str | None) -> None:
    """Check a webhook signature against the raw request body.

    Args:
        body: The raw request body bytes, exactly as received.
        signature: The hex digest claimed by the sender, or ``None``.
        secret: The shared webhook secret.

    Raises:
        MissingSignatureError: If no signature was supplied.
        InvalidSignatureError: If the signature does not match.
        ImproperlyConfigured: If no webhook secret is configured.
    """
    if not signature:
        raise MissingSignatureError
    if not secret:
        msg = "CAMPUS_EVENTS['razorpay']['webhook_secret'] is not configured"
        raise ImproperlyConfigured(msg)

    expected = compute_signature(body, secret)
    # Byte-for-byte: the gateway sends lowercase hex with no padding.
    if not hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8")):
        logger.warning("Rejected webhook with mismatched signature (%d byte body)", len(body))
        raise InvalidSignatureError
