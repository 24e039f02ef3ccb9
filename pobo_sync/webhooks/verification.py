"""Webhook signature verification: constant-time HMAC-SHA256.

Security contract:
- Verification uses hmac.compare_digest() (constant-time, no timing attacks)
- Verification failure -> AuthenticationError, payload is never parsed
- Signature is the lowercase hex HMAC-SHA256 of the raw body, sent in
  the X-Webhook-Signature header
- The only way to obtain a VerifiedPayload is a successful verification
"""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass

from pobo_sync.exceptions import AuthenticationError

SIGNATURE_HEADER = "x-webhook-signature"


@dataclass(frozen=True)
class VerifiedPayload:
    """Raw webhook body whose signature has been checked."""

    body: bytes


def compute_signature(body: bytes, secret: str) -> str:
    """Hex-encoded HMAC-SHA256 of ``body`` keyed with ``secret``."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: str | None, secret: str) -> VerifiedPayload:
    """Check ``signature`` against the body.

    Args:
        body: Raw request body bytes
        signature: Value of the X-Webhook-Signature header
        secret: Shared webhook secret

    Returns:
        VerifiedPayload wrapping ``body``

    Raises:
        AuthenticationError: signature missing, or not matching
    """
    if not secret:
        raise AuthenticationError("Webhook secret is not configured")
    if not signature:
        raise AuthenticationError("Missing signature")

    expected = compute_signature(body, secret)
    if not hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8")):
        raise AuthenticationError("Invalid signature")
    return VerifiedPayload(body)

