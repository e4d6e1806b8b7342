"""
Driver database model.

Drivers belong to exactly one vendor. Trip-completion records point at
drivers by id only.
"""

from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey
from sqlalchemy.sql import func
from fleet_wallet.app.db.session import Base
from fleet_wallet.app.models.wallet_enums import DriverStatus


class Driver(Base):
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    vendor_id = Column(Integer, ForeignKey('vendors.id', ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(32), nullable=False)
    license_number = Column(String(64), nullable=False)
    status = Column(Enum(DriverStatus), default=DriverStatus.ACTIVE, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Driver(id={self.id}, vendor_id={self.vendor_id}, status='{self.status.value}')>"
