"""
Vendor Balance Aggregator (Domain Logic).

balance(vendor, day) = allocated - deducted
    allocated: the vendor's commission credit for that local day, else 0
    deducted:  payouts owed to the vendor's drivers for trips completed
               inside that local day, computed live from trip sources

Nothing carries over between days; a series is the same computation
repeated per day.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleet_wallet.app.core.exceptions import InvalidRequestError, VendorNotFoundError
from fleet_wallet.app.domain.money import ZERO, local_day_window
from fleet_wallet.app.domain.wallet.commission_ledger import CommissionLedger
from fleet_wallet.app.domain.wallet.payout_summarizer import TripPayoutSummarizer
from fleet_wallet.app.models.driver import Driver
from fleet_wallet.app.models.vendor import Vendor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DailyBalance:
    date: date
    allocated: Decimal
    deducted: Decimal
    balance: Decimal


@dataclass(frozen=True)
class DailyPayouts:
    date: date
    per_driver: Dict[int, Decimal]
    total: Decimal


class BalanceAggregator:

    def __init__(
        self,
        session_factory: async_sessionmaker,
        utc_offset_minutes: int,
        summarizer: Optional[TripPayoutSummarizer] = None,
    ):
        self.session_factory = session_factory
        self.utc_offset_minutes = utc_offset_minutes
        self.summarizer = summarizer or TripPayoutSummarizer(session_factory)

    async def _driver_ids(self, db: AsyncSession, vendor_id: int) -> list[int]:
        vendor = await db.get(Vendor, vendor_id)
        if not vendor:
            raise VendorNotFoundError(vendor_id)
        result = await db.execute(select(Driver.id).where(Driver.vendor_id == vendor_id))
        return list(result.scalars().all())

    async def compute_payouts(self, vendor_id: int, local_date: date) -> DailyPayouts:
        """Per-driver payouts for the vendor's drivers on a local day."""
        async with self.session_factory() as db:
            driver_ids = await self._driver_ids(db, vendor_id)
        window_start, window_end = local_day_window(local_date, self.utc_offset_minutes)
        summary = await self.summarizer.sum_payouts(driver_ids, window_start, window_end)
        return DailyPayouts(date=local_date, per_driver=summary.per_driver, total=summary.total)

    async def compute_balance(self, vendor_id: int, local_date: date) -> DailyBalance:
        """
        Raises:
            VendorNotFoundError: vendor does not exist
            TripSourceUnavailableError: any trip source could not be read
        """
        async with self.session_factory() as db:
            driver_ids = await self._driver_ids(db, vendor_id)
            credit = await CommissionLedger.get_credit(db, vendor_id, local_date)

        window_start, window_end = local_day_window(local_date, self.utc_offset_minutes)
        summary = await self.summarizer.sum_payouts(driver_ids, window_start, window_end)

        allocated = credit.amount if credit else ZERO
        return DailyBalance(
            date=local_date,
            allocated=allocated,
            deducted=summary.total,
            balance=allocated - summary.total,
        )

    async def compute_balance_series(
        self,
        vendor_id: int,
        start_date: date,
        end_date: date,
        max_days: int,
    ) -> list[DailyBalance]:
        """
        One DailyBalance per local day in [start_date, end_date], ascending.

        Raises:
            InvalidRequestError: start after end, or range longer than max_days
        """
        if start_date > end_date:
            raise InvalidRequestError(
                "start must not be after end",
                details={"start": start_date.isoformat(), "end": end_date.isoformat()},
            )
        days = (end_date - start_date).days + 1
        if days > max_days:
            raise InvalidRequestError(
                f"Date range exceeds {max_days} days",
                details={"days": days, "max_days": max_days},
            )

        return [
            await self.compute_balance(vendor_id, start_date + timedelta(days=offset))
            for offset in range(days)
        ]
