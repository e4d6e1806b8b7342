"""
Payment API Endpoints.

Vendor top-ups through the payment gateway, and the gateway's webhook.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleet_wallet.app.core.config import Settings, get_settings
from fleet_wallet.app.core.dependencies import get_current_user, get_current_vendor, get_payment_gateway
from fleet_wallet.app.db.session import get_db, get_session_factory
from fleet_wallet.app.domain.payments.payment_service import PaymentService
from fleet_wallet.app.domain.payments.signatures import SIGNATURE_HEADER
from fleet_wallet.app.domain.payments.webhook_handler import WebhookHandler
from fleet_wallet.app.models.vendor import Vendor
from fleet_wallet.app.models.wallet_enums import PaymentStatus
from fleet_wallet.app.schemas.payment import (
    PaymentInitiateRequest, PaymentInitiateResponse, PaymentTransactionResponse, WebhookAckResponse
)
from fleet_wallet.app.services.payment_gateway import ZohoPaymentsGateway

router = APIRouter(prefix="/vendor/payments", tags=["Vendor - Payments"])
webhook_router = APIRouter(prefix="/payments", tags=["Payments - Webhook"])


@router.post("", response_model=PaymentInitiateResponse, status_code=status.HTTP_201_CREATED)
async def initiate_payment(
    request_data: PaymentInitiateRequest,
    vendor: Vendor = Depends(get_current_vendor),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
    gateway: Optional[ZohoPaymentsGateway] = Depends(get_payment_gateway),
):
    """
    Start a wallet top-up.

    Live mode returns a pending payment with a hosted payment URL; test mode
    credits the wallet immediately.
    """
    return await PaymentService.initiate_payment(
        db,
        session_factory,
        settings,
        gateway,
        vendor_id=vendor.id,
        amount=request_data.amount,
        description=request_data.description,
        actor_id=current_user.get("sub"),
    )


@router.get("", response_model=List[PaymentTransactionResponse])
async def list_payments(
    status_filter: Optional[PaymentStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    vendor: Vendor = Depends(get_current_vendor),
    db: AsyncSession = Depends(get_db),
):
    return await PaymentService.list_payments(db, vendor.id, status=status_filter, limit=limit, offset=offset)


@router.get("/{payment_id}", response_model=PaymentTransactionResponse)
async def get_payment(
    payment_id: str,
    vendor: Vendor = Depends(get_current_vendor),
    db: AsyncSession = Depends(get_db),
):
    """Poll a payment's status."""
    return await PaymentService.get_payment(db, vendor.id, payment_id)


@webhook_router.post("/webhook", response_model=WebhookAckResponse)
async def payment_webhook(
    request: Request,
    signature: Optional[str] = Header(None, alias=SIGNATURE_HEADER),
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
):
    """
    Gateway status notification.

    Authenticated by HMAC signature over the raw body, not by bearer token.
    Replays of an already-applied outcome are acknowledged with
    `duplicate: true`.
    """
    raw_body = await request.body()
    handler = WebhookHandler(db, session_factory, settings)
    result = await handler.handle(raw_body, signature)
    return WebhookAckResponse(
        payment_id=result.payment_id,
        status=result.status,
        duplicate=result.duplicate,
    )
