"""
Reconciliation Item Model.

Dead-letter records for money events whose local bookkeeping failed and
must be reconciled out-of-band.
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, Enum
from sqlalchemy.sql import func
from fleet_wallet.app.db.session import Base
import enum


class ReconciliationKind(str, enum.Enum):
    PAYMENT_PERSISTENCE_FAILED = "PAYMENT_PERSISTENCE_FAILED"  # Gateway link exists, local row does not
    WEBHOOK_CREDIT_FAILED = "WEBHOOK_CREDIT_FAILED"  # Gateway reported an outcome we could not apply
    WEBHOOK_UNMATCHED = "WEBHOOK_UNMATCHED"  # Verified webhook for a payment we have no record of


class ReconciliationStatus(str, enum.Enum):
    OPEN = "OPEN"
    RESOLVED = "RESOLVED"


class ReconciliationItem(Base):
    __tablename__ = "reconciliation_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    kind = Column(Enum(ReconciliationKind), nullable=False, index=True)
    reference = Column(String(128), nullable=True, index=True)  # Payment id or gateway id
    error_message = Column(Text, nullable=False)
    payload = Column(JSON, nullable=True)

    status = Column(Enum(ReconciliationStatus), default=ReconciliationStatus.OPEN, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<ReconciliationItem(id={self.id}, kind='{self.kind}', status='{self.status}')>"
