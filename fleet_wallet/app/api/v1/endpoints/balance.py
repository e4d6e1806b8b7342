"""
Vendor Balance API Endpoints.

Read-only daily reconciliation views computed live from commission credits
and trip-completion payouts.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import async_sessionmaker

from fleet_wallet.app.core.config import Settings, get_settings
from fleet_wallet.app.core.dependencies import get_current_vendor
from fleet_wallet.app.db.session import get_session_factory
from fleet_wallet.app.domain.money import local_today
from fleet_wallet.app.domain.wallet.balance_aggregator import BalanceAggregator
from fleet_wallet.app.models.vendor import Vendor
from fleet_wallet.app.schemas.balance import BalanceResponse, BalanceSeriesResponse, PayoutResponse

router = APIRouter(prefix="/vendor", tags=["Vendor - Balance"])


def get_balance_aggregator(
    session_factory: async_sessionmaker = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
) -> BalanceAggregator:
    return BalanceAggregator(session_factory, settings.vendor_utc_offset_minutes)


@router.get("/balance", response_model=BalanceResponse)
async def get_balance(
    day: Optional[date] = Query(None, alias="date", description="Vendor-local date, defaults to today"),
    vendor: Vendor = Depends(get_current_vendor),
    aggregator: BalanceAggregator = Depends(get_balance_aggregator),
):
    """
    Allocated commission minus driver payouts for one day.
    """
    local_date = day or local_today(aggregator.utc_offset_minutes)
    return await aggregator.compute_balance(vendor.id, local_date)


@router.get("/balance/series", response_model=BalanceSeriesResponse)
async def get_balance_series(
    start: date = Query(...),
    end: date = Query(...),
    vendor: Vendor = Depends(get_current_vendor),
    aggregator: BalanceAggregator = Depends(get_balance_aggregator),
    settings: Settings = Depends(get_settings),
):
    """
    Per-day balances for [start, end]. Days are independent.
    """
    days = await aggregator.compute_balance_series(
        vendor.id, start, end, max_days=settings.balance_series_max_days
    )
    return BalanceSeriesResponse(
        vendor_id=vendor.id,
        start=start,
        end=end,
        days=[BalanceResponse.model_validate(day) for day in days],
    )


@router.get("/payouts", response_model=PayoutResponse)
async def get_payouts(
    day: Optional[date] = Query(None, alias="date", description="Vendor-local date, defaults to today"),
    vendor: Vendor = Depends(get_current_vendor),
    aggregator: BalanceAggregator = Depends(get_balance_aggregator),
):
    """
    Payouts owed to each of the vendor's drivers for one day.
    """
    local_date = day or local_today(aggregator.utc_offset_minutes)
    return await aggregator.compute_payouts(vendor.id, local_date)
