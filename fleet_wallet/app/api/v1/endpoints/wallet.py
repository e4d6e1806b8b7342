"""
Wallet API Endpoints.

Vendors read their own wallet and record debits against it. Money only
enters a vendor wallet through a completed payment or an admin posting.
"""

from typing import List

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_wallet.app.core.config import Settings, get_settings
from fleet_wallet.app.core.dependencies import get_current_user, get_current_vendor
from fleet_wallet.app.core.exceptions import (
    InsufficientPermissionsError, InvalidRequestError, PersistenceFailedError
)
from fleet_wallet.app.core.guards import require_admin
from fleet_wallet.app.db.session import get_db
from fleet_wallet.app.domain.money import local_today
from fleet_wallet.app.domain.wallet.wallet_ledger import WalletLedger
from fleet_wallet.app.models.driver import Driver
from fleet_wallet.app.models.vendor import Vendor
from fleet_wallet.app.models.wallet_enums import TransactionType
from fleet_wallet.app.schemas.wallet import (
    WalletResponse, WalletTransactionCreate, WalletTransactionResponse, WalletReconciliationResponse
)
from fleet_wallet.app.services.audit import log_event, AuditAction

router = APIRouter(prefix="/vendor/wallet", tags=["Vendor - Wallet"])
admin_router = APIRouter(prefix="/admin/vendors/{vendor_id}/wallet", tags=["Admin - Wallet"])


async def post_transaction(
    db: AsyncSession,
    vendor_id: int,
    posting: WalletTransactionCreate,
    current_user: dict,
    settings: Settings,
):
    """Append a manual posting and commit it with its audit entry."""
    if posting.driver_id is not None:
        driver = await db.get(Driver, posting.driver_id)
        if not driver or driver.vendor_id != vendor_id:
            raise InvalidRequestError(
                "Driver does not belong to this vendor",
                details={"driver_id": posting.driver_id},
            )

    wallet = await WalletLedger.get_or_create_wallet(db, vendor_id)
    try:
        entry = await WalletLedger.append_transaction(
            db,
            wallet_id=wallet.id,
            vendor_id=vendor_id,
            transaction_type=posting.transaction_type,
            amount=posting.amount,
            description=posting.description,
            driver_id=posting.driver_id,
            reference=posting.reference,
            transaction_date=posting.transaction_date or local_today(settings.vendor_utc_offset_minutes),
        )
        action = (
            AuditAction.WALLET_CREDITED
            if posting.transaction_type is TransactionType.CREDIT
            else AuditAction.WALLET_DEBITED
        )
        await log_event(
            db,
            action,
            vendor_id=vendor_id,
            actor_id=current_user.get("sub"),
            actor_role=current_user.get("role"),
            metadata={"wallet_transaction_id": entry.id, "amount": str(entry.amount)},
        )
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise PersistenceFailedError("Wallet posting could not be recorded") from e

    await db.refresh(entry)

    return entry


@router.get("", response_model=WalletResponse)
async def get_wallet(
    vendor: Vendor = Depends(get_current_vendor),
    db: AsyncSession = Depends(get_db),
):
    """Vendor's wallet, created on first access."""
    return await WalletLedger.get_or_create_wallet(db, vendor.id)


@router.get("/transactions", response_model=List[WalletTransactionResponse])
async def list_wallet_transactions(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    vendor: Vendor = Depends(get_current_vendor),
    db: AsyncSession = Depends(get_db),
):
    """Ledger entries, newest first."""
    wallet = await WalletLedger.get_or_create_wallet(db, vendor.id)
    return await WalletLedger.list_transactions(db, wallet.id, limit=limit, offset=offset)


@router.post("/transactions", response_model=WalletTransactionResponse, status_code=status.HTTP_201_CREATED)
async def create_wallet_transaction(
    posting: WalletTransactionCreate,
    vendor: Vendor = Depends(get_current_vendor),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Manual debit on the vendor's own wallet.

    Credits are refused with 403: vendors top up through `POST /vendor/payments`.
    """
    if posting.transaction_type is not TransactionType.DEBIT:
        raise InsufficientPermissionsError(
            "Vendors cannot credit their own wallet; use a payment instead",
            details={"transaction_type": posting.transaction_type.value},
        )
    return await post_transaction(db, vendor.id, posting, current_user, settings)


@router.get("/reconciliation", response_model=WalletReconciliationResponse)
async def reconcile_wallet(
    vendor: Vendor = Depends(get_current_vendor),
    db: AsyncSession = Depends(get_db),
):
    """Compare the wallet's stored totals with a full ledger scan."""
    wallet = await WalletLedger.get_or_create_wallet(db, vendor.id)
    reconciliation = await WalletLedger.reconcile_wallet(db, wallet.id)
    return WalletReconciliationResponse.model_validate(reconciliation)


@admin_router.get("", response_model=WalletResponse)
async def admin_get_wallet(
    vendor_id: int = Path(..., gt=0),
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await WalletLedger.get_or_create_wallet(db, vendor_id)


@admin_router.post("/transactions", response_model=WalletTransactionResponse, status_code=status.HTTP_201_CREATED)
async def admin_create_wallet_transaction(
    posting: WalletTransactionCreate,
    vendor_id: int = Path(..., gt=0),
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Manual credit or debit on any vendor's wallet."""
    return await post_transaction(db, vendor_id, posting, current_user, settings)
