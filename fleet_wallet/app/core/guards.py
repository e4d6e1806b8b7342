"""
Role guards for endpoints.

Vendor-scoped routes resolve their tenant through `get_current_vendor`;
platform-operator routes (commission credits, manual wallet entries,
reconciliation queue) are gated here.
"""

from typing import Iterable
from fastapi import Depends, HTTPException, status
from fleet_wallet.app.models.enums import UserRole
from fleet_wallet.app.core.dependencies import get_current_user


def require_role(allowed_roles: Iterable[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.put("/admin/vendors/{vendor_id}/commission-credits/{credit_date}")
        async def put_credit(current_user: dict = Depends(require_role([UserRole.ADMIN]))):
            ...

    Raises:
        HTTPException 403 if the token's role is unknown or not allowed
    """
    allowed = frozenset(allowed_roles)

    async def role_checker(current_user: dict = Depends(get_current_user)) -> dict:
        try:
            role = UserRole(current_user.get("role"))
        except ValueError:
            role = None

        if role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join(sorted(r.value for r in allowed))}"
            )
        return current_user

    return role_checker


require_admin = require_role([UserRole.ADMIN])
