"""
Commission Credit Schemas.
"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from fleet_wallet.app.models.reconciliation_item import ReconciliationKind, ReconciliationStatus


class CommissionCreditUpsert(BaseModel):
    """Schema for recording (or replacing) a day's commission credit."""
    amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    notes: Optional[str] = Field(None, max_length=2000)


class CommissionCreditResponse(BaseModel):
    """Schema for displaying a commission credit."""
    id: int
    vendor_id: int
    credit_date: date
    amount: Decimal
    notes: Optional[str]
    created_by: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ReconciliationItemResponse(BaseModel):
    """Schema for an open reconciliation item."""
    id: int
    kind: ReconciliationKind
    reference: Optional[str]
    error_message: str
    payload: Optional[dict]
    status: ReconciliationStatus
    created_at: datetime

    class Config:
        from_attributes = True
