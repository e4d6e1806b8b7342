"""
Webhook signature helpers.

The gateway signs the raw request body with HMAC-SHA-256 using the shared
signing secret and sends the hex digest in `X-Zoho-Signature`.
"""

import hashlib
import hmac
from typing import Optional

SIGNATURE_HEADER = "X-Zoho-Signature"


def compute_signature(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), raw_body, hashlib.sha256).hexdigest()


def verify_signature(raw_body: bytes, signature: Optional[str], secret: str) -> bool:
    """Constant-time comparison of `signature` with the expected digest."""
    if not signature:
        return False
    expected = compute_signature(raw_body, secret)
    return hmac.compare_digest(expected, signature.strip().lower())
