"""
Wallet Schemas.

Money fields are Decimals and serialize as strings ("1500.00").
"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from fleet_wallet.app.models.wallet_enums import TransactionType


class WalletResponse(BaseModel):
    """Schema for displaying a wallet."""
    id: int
    vendor_id: int
    balance: Decimal
    total_credited: Decimal
    total_debited: Decimal
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class WalletTransactionCreate(BaseModel):
    """Schema for a manual wallet posting."""
    transaction_type: TransactionType
    amount: Decimal = Field(..., max_digits=12, decimal_places=2)
    description: str = Field(..., min_length=1, max_length=500)
    driver_id: Optional[int] = None
    reference: Optional[str] = Field(None, max_length=128)
    transaction_date: Optional[date] = None


class WalletTransactionResponse(BaseModel):
    """Schema for displaying a ledger entry."""
    id: int
    wallet_id: int
    vendor_id: int
    driver_id: Optional[int]
    transaction_type: TransactionType
    amount: Decimal
    description: str
    reference: Optional[str]
    transaction_date: date
    created_at: datetime

    class Config:
        from_attributes = True


class WalletReconciliationResponse(BaseModel):
    wallet_id: int
    ledger_credited: Decimal
    ledger_debited: Decimal
    ledger_balance: Decimal
    stored_credited: Decimal
    stored_debited: Decimal
    stored_balance: Decimal
    transaction_count: int
    is_consistent: bool

    class Config:
        from_attributes = True
