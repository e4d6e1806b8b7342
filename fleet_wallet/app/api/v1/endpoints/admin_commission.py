"""
Admin Commission API Endpoints.

Daily commission credits per vendor and the reconciliation queue.
"""

from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_wallet.app.core.guards import require_admin
from fleet_wallet.app.db.session import get_db
from fleet_wallet.app.domain.wallet.commission_ledger import CommissionLedger
from fleet_wallet.app.schemas.commission import (
    CommissionCreditUpsert, CommissionCreditResponse, ReconciliationItemResponse
)
from fleet_wallet.app.services.reconciliation_queue import list_open_items

router = APIRouter(prefix="/admin", tags=["Admin - Commission"])


@router.put("/vendors/{vendor_id}/commission-credits/{credit_date}", response_model=CommissionCreditResponse)
async def put_commission_credit(
    credit: CommissionCreditUpsert,
    vendor_id: int = Path(..., gt=0),
    credit_date: date = Path(...),
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Record the vendor's commission credit for a day.

    Replaces any existing credit for the same day.
    """
    return await CommissionLedger.record_credit(
        db,
        vendor_id=vendor_id,
        credit_date=credit_date,
        amount=credit.amount,
        notes=credit.notes,
        created_by=current_user.get("sub"),
    )


@router.get("/vendors/{vendor_id}/commission-credits", response_model=List[CommissionCreditResponse])
async def list_commission_credits(
    vendor_id: int = Path(..., gt=0),
    start: date = Query(...),
    end: date = Query(...),
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await CommissionLedger.list_credits(db, vendor_id, start, end)


@router.get("/reconciliation-items", response_model=List[ReconciliationItemResponse])
async def list_reconciliation_items(
    limit: int = Query(100, ge=1, le=500),
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Open items needing manual reconciliation, oldest first."""
    return await list_open_items(db, limit=limit)
