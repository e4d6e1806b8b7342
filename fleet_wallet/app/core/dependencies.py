"""
Authentication and service dependencies for FastAPI.

This module provides dependencies for protecting routes with JWT
authentication and for handing request-scoped collaborators (payment
gateway) to endpoints.
"""

from typing import Optional
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from fleet_wallet.app.core.config import Settings, get_settings
from fleet_wallet.app.core.jwt import decode_access_token
from fleet_wallet.app.core.redis_client import get_redis
from fleet_wallet.app.db.session import get_db
from fleet_wallet.app.models.enums import UserRole
from fleet_wallet.app.models.vendor import Vendor
from fleet_wallet.app.services.payment_gateway import ZohoPaymentsGateway

# HTTP Bearer security scheme
security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    Returns:
        Decoded token payload containing user information

    Raises:
        HTTPException: 401 if the token is invalid, expired or lacks a role
    """
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not payload.get("sub") or not payload.get("role"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return payload


async def get_current_vendor(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Vendor:
    """
    Resolve the vendor tenant the caller acts for.

    Raises:
        HTTPException: 403 for non-vendor tokens or inactive vendors,
            401 if the vendor in the token no longer exists
    """
    if current_user.get("role") != UserRole.VENDOR.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Vendor access required"
        )

    vendor_id = current_user.get("vendor_id")
    vendor = await db.get(Vendor, vendor_id) if isinstance(vendor_id, int) else None
    if not vendor:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Vendor not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not vendor.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Vendor account is inactive",
        )

    return vendor


async def get_payment_gateway(
    request: Request,
    redis=Depends(get_redis),
    settings: Settings = Depends(get_settings),
) -> Optional[ZohoPaymentsGateway]:
    """
    The live payment gateway, or None when running in test mode.

    Live mode is chosen by configuration alone (all gateway credentials set).
    """
    if not settings.gateway_live_mode:
        return None
    return ZohoPaymentsGateway(request.app.state.http_client, redis, settings)
