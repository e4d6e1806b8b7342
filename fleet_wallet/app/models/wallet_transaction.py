"""
Wallet Transaction database model.

Immutable ledger entries for a vendor wallet.
"""

from sqlalchemy import Column, Integer, Numeric, String, Date, DateTime, Enum, ForeignKey
from sqlalchemy.sql import func
from fleet_wallet.app.db.session import Base
from fleet_wallet.app.models.wallet_enums import TransactionType


class WalletTransaction(Base):
    """
    Wallet Transaction model.

    Append-only. NO updates or deletions allowed.
    """
    __tablename__ = "wallet_transactions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Linkage
    wallet_id = Column(Integer, ForeignKey('wallets.id'), nullable=False, index=True)
    vendor_id = Column(Integer, ForeignKey('vendors.id'), nullable=False, index=True)
    driver_id = Column(Integer, ForeignKey('drivers.id', ondelete="SET NULL"), nullable=True, index=True)

    # Entry details
    transaction_type = Column(Enum(TransactionType), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    description = Column(String(500), nullable=False)
    reference = Column(String(255), nullable=True, index=True)
    transaction_date = Column(Date, nullable=False)

    # Timestamps (Immutable - no updated_at)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<WalletTransaction(id={self.id}, type='{self.transaction_type.value}', amount={self.amount})>"
