"""
Commission Credit database model.

Admin-entered daily commission allocation per vendor. One row per
(vendor, date); corrections update the row in place.
"""

from sqlalchemy import Column, Integer, Numeric, String, Text, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from fleet_wallet.app.db.session import Base


class CommissionCredit(Base):
    __tablename__ = "commission_credits"
    __table_args__ = (
        UniqueConstraint("vendor_id", "credit_date", name="uq_commission_credit_vendor_date"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    vendor_id = Column(Integer, ForeignKey('vendors.id'), nullable=False, index=True)

    # Vendor-local calendar date
    credit_date = Column(Date, nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    notes = Column(Text, nullable=True)
    created_by = Column(String(64), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<CommissionCredit(vendor_id={self.vendor_id}, date={self.credit_date}, amount={self.amount})>"
