"""
Audit logging service for tracking money-moving events and admin actions.

Entries are added to the caller's session and flushed, never committed here,
so an audit row commits or rolls back together with the change it describes.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from fleet_wallet.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    # Payments
    PAYMENT_INITIATED = "PAYMENT_INITIATED"
    PAYMENT_STATUS_CHANGED = "PAYMENT_STATUS_CHANGED"
    WEBHOOK_DUPLICATE = "WEBHOOK_DUPLICATE"

    # Wallet
    WALLET_CREATED = "WALLET_CREATED"
    WALLET_CREDITED = "WALLET_CREDITED"
    WALLET_DEBITED = "WALLET_DEBITED"

    # Commission
    COMMISSION_CREDIT_RECORDED = "COMMISSION_CREDIT_RECORDED"


async def log_event(
    db: AsyncSession,
    action: str,
    vendor_id: Optional[int] = None,
    actor_id: Optional[Any] = None,
    actor_role: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Add an event to the audit log.

    Args:
        db: Database session (caller commits)
        action: Action being performed (use AuditAction constants)
        vendor_id: Tenant the event concerns
        actor_id: ID of the user performing the action, None for system events
        actor_role: Role of the actor
        metadata: Additional context as JSON

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=str(actor_id) if actor_id is not None else None,
        actor_role=actor_role,
        action=action,
        vendor_id=vendor_id,
        meta_data=metadata,
    )

    db.add(audit_log)
    await db.flush()

    return audit_log
