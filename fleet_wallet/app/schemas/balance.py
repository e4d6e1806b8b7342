"""
Balance and Payout Schemas.
"""

from pydantic import BaseModel
import datetime as dt
from decimal import Decimal
from typing import Dict, List


class BalanceResponse(BaseModel):
    """allocated - deducted for one vendor-local day."""
    date: dt.date
    allocated: Decimal
    deducted: Decimal
    balance: Decimal

    class Config:
        from_attributes = True


class BalanceSeriesResponse(BaseModel):
    vendor_id: int
    start: dt.date
    end: dt.date
    days: List[BalanceResponse]


class PayoutResponse(BaseModel):
    """Per-driver payouts owed for one vendor-local day."""
    date: dt.date
    per_driver: Dict[int, Decimal]
    total: Decimal

    class Config:
        from_attributes = True
