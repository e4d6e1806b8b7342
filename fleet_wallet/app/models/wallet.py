"""
Wallet database model.

One wallet per vendor, provisioned lazily on first access.
"""

from decimal import Decimal
from sqlalchemy import Column, Integer, Numeric, DateTime, ForeignKey
from sqlalchemy.sql import func
from fleet_wallet.app.db.session import Base


class Wallet(Base):
    """
    Wallet model.

    Running totals are denormalized from the wallet transaction ledger and
    only change together with a ledger append:
        balance == total_credited - total_debited
    """
    __tablename__ = "wallets"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    vendor_id = Column(Integer, ForeignKey('vendors.id'), nullable=False, unique=True, index=True)

    balance = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    total_credited = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    total_debited = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Wallet(id={self.id}, vendor_id={self.vendor_id}, balance={self.balance})>"
