"""
Payment Schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional
from fleet_wallet.app.models.wallet_enums import PaymentStatus


class PaymentInitiateRequest(BaseModel):
    """Schema for starting a wallet top-up."""
    amount: Decimal = Field(..., max_digits=12, decimal_places=2)
    description: Optional[str] = Field(None, max_length=500)


class PaymentInitiateResponse(BaseModel):
    payment_id: str
    status: PaymentStatus
    amount: Decimal
    currency: str
    payment_url: Optional[str]
    message: str

    class Config:
        from_attributes = True


class PaymentTransactionResponse(BaseModel):
    """Schema for displaying a payment transaction."""
    id: str
    vendor_id: int
    amount: Decimal
    currency: str
    payment_gateway: str
    gateway_payment_id: Optional[str]
    payment_url: Optional[str]
    status: PaymentStatus
    description: Optional[str]
    wallet_transaction_id: Optional[int]
    completed_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class WebhookAckResponse(BaseModel):
    """Acknowledgement returned to the gateway."""
    success: bool = True
    payment_id: str
    status: PaymentStatus
    duplicate: bool = False
