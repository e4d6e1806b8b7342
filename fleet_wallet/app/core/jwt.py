"""
Access tokens.

Vendor and operator tokens are minted by the platform's identity provider
with the same secret; this service only needs to read them. Minting lives
here as well so operator tooling and the test suite can produce tokens
with the exact claim layout the guards expect:

    {"sub": "vendor-42", "role": "VENDOR", "vendor_id": 42, "exp": ...}
    {"sub": "ops-admin", "role": "ADMIN", "exp": ...}
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from fleet_wallet.app.core.config import get_settings
from fleet_wallet.app.models.enums import UserRole


def vendor_claims(vendor_id: int) -> Dict[str, Any]:
    """Claims carried by a vendor's token."""
    return {"sub": f"vendor-{vendor_id}", "role": UserRole.VENDOR.value, "vendor_id": vendor_id}


def admin_claims(subject: str) -> Dict[str, Any]:
    """Claims carried by a platform operator's token."""
    return {"sub": subject, "role": UserRole.ADMIN.value}


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Sign `data` as an access token.

    Expiry defaults to `access_token_expire_minutes`; a negative
    `expires_delta` yields an already-expired token.
    """
    settings = get_settings()
    lifetime = expires_delta if expires_delta is not None else timedelta(
        minutes=settings.access_token_expire_minutes
    )
    claims = {**data, "exp": datetime.now(timezone.utc) + lifetime}
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Verified claims, or None for a bad signature, a malformed token or an expired one."""
    settings = get_settings()
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
