"""Crypto webhook authentication: HMAC-SHA512 of the raw request body."""

import hashlib
import hmac

SIGNATURE_HEADER = "x-nowpayments-sig"


def sign(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), raw_body, hashlib.sha512).hexdigest()


def verify_signature(raw_body: bytes, signature: str | None, secret: str | None) -> bool:
    """Constant-time check of ``signature`` against the body.

    Without a configured secret nothing verifies, so webhooks are refused
    rather than trusted.
    """
    if not secret or not signature:
        return False
    return hmac.compare_digest(sign(raw_body, secret), signature.strip().lower())
