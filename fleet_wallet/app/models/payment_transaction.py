"""
Payment Transaction database model.

One attempt to move money through the external payment gateway.
"""

from sqlalchemy import Column, Integer, Numeric, String, Text, DateTime, Enum, ForeignKey, JSON
from sqlalchemy.sql import func
from fleet_wallet.app.db.session import Base
from fleet_wallet.app.models.wallet_enums import PaymentStatus


class PaymentTransaction(Base):
    """
    Payment Transaction model.

    `id` doubles as the reference id sent to the gateway, so a webhook can
    find the row even when the gateway's own ids differ.

    Lifecycle: PENDING -> SUCCESS | FAILED | CANCELLED, exactly once.
    """
    __tablename__ = "payment_transactions"

    id = Column(String(36), primary_key=True)
    vendor_id = Column(Integer, ForeignKey('vendors.id'), nullable=False, index=True)

    # Financials (major units)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="INR")

    # Gateway
    payment_gateway = Column(String(32), nullable=False)
    gateway_transaction_id = Column(String(128), nullable=True, index=True)
    gateway_payment_id = Column(String(128), nullable=True, index=True)
    payment_url = Column(Text, nullable=True)
    gateway_metadata = Column(JSON, nullable=True)

    status = Column(Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False, index=True)
    description = Column(String(500), nullable=True)

    # Set once, when the success credit is posted
    wallet_transaction_id = Column(Integer, ForeignKey('wallet_transactions.id'), nullable=True, unique=True)

    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<PaymentTransaction(id={self.id}, status='{self.status.value}', amount={self.amount})>"
