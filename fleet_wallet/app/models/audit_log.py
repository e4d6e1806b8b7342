"""
Audit Log Database Model.

Tracks money-moving events and admin actions for reconciliation and compliance.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from fleet_wallet.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.

    Events logged:
    - PAYMENT_INITIATED / PAYMENT_STATUS_CHANGED
    - WALLET_CREDITED / WALLET_DEBITED
    - COMMISSION_CREDIT_RECORDED
    - WALLET_CREATED
    - WEBHOOK_DUPLICATE
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for gateway/system actions)
    actor_id = Column(String(64), index=True, nullable=True)
    actor_role = Column(String(32), nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # Which tenant the action concerns
    vendor_id = Column(Integer, index=True, nullable=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    # Timestamp
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', vendor_id={self.vendor_id})>"
