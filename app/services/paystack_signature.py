"""
Paystack webhook signature verification.

Paystack signs every webhook with HMAC-SHA512 over the raw request body,
keyed by the account secret key, and sends the lowercase hex digest in the
x-paystack-signature header.
"""

import hmac
import hashlib
import logging
from typing import Union

from app.config import PaystackConfig

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-paystack-signature"

Payload = Union[bytes, str]


def compute_paystack_signature(payload: Payload, secret: str) -> str:
    """Return the lowercase hex HMAC-SHA512 of payload keyed by secret."""
    body = payload.encode("utf-8") if isinstance(payload, str) else payload
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha512).hexdigest()


def verify_paystack_signature(payload: Payload, signature: str, secret: str) -> bool:
    """
    Verify a Paystack webhook signature.

    Every failure (empty secret or signature, length mismatch, wrong types,
    digest mismatch) returns False. The digest comparison is constant-time.
    """
    if not secret or not signature:
        return False

    try:
        expected = compute_paystack_signature(payload, secret)
        if len(expected) != len(signature):
            return False
        return hmac.compare_digest(expected.encode("ascii"), signature.encode("ascii"))
    except (TypeError, ValueError, AttributeError, UnicodeError) as e:
        logger.warning(f"Paystack signature check failed on malformed input: {type(e).__name__}")
        return False


class WebhookVerifier:
    """Verifies webhook bodies against the configured Paystack secret."""

    def __init__(self, config: PaystackConfig):
        self.config = config

    @property
    def is_configured(self) -> bool:
        return bool(self.config.secret_key)

    def verify(self, payload: Payload, signature: str) -> bool:
        return verify_paystack_signature(payload, signature, self.config.secret_key)
