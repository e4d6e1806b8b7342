"""
Trip Payout Summarizer (Domain Logic).

Sums the payouts owed to a set of drivers across every trip-completion
source within a UTC window. Sources are read concurrently, each on its own
session; if any source fails the whole summary fails and the remaining
reads are cancelled. A partial total would understate deductions and
overstate a vendor's balance.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, Optional, Type

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from fleet_wallet.app.core.exceptions import InvalidRequestError, TripSourceUnavailableError
from fleet_wallet.app.domain.money import ZERO, to_decimal
from fleet_wallet.app.models.trip_completion import TRIP_COMPLETION_SOURCES, TripCompletionMixin

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PayoutSummary:
    """Per-driver payout totals; every requested driver has an entry."""
    per_driver: Dict[int, Decimal]
    total: Decimal


class TripPayoutSummarizer:

    def __init__(
        self,
        session_factory: async_sessionmaker,
        sources: Optional[Dict[str, Type[TripCompletionMixin]]] = None,
    ):
        self.session_factory = session_factory
        self.sources = sources if sources is not None else TRIP_COMPLETION_SOURCES

    async def sum_payouts(
        self,
        driver_ids: Iterable[int],
        window_start: datetime,
        window_end: datetime,
    ) -> PayoutSummary:
        """
        Payouts for `driver_ids` with completion time in
        [window_start, window_end] (both inclusive, UTC).

        Raises:
            InvalidRequestError: window_start after window_end
            TripSourceUnavailableError: any source could not be read
        """
        if window_start > window_end:
            raise InvalidRequestError("Window start must not be after window end")

        driver_ids = set(driver_ids)
        if not driver_ids:
            return PayoutSummary(per_driver={}, total=ZERO)

        tasks = [
            asyncio.create_task(self._sum_source(name, model, driver_ids, window_start, window_end))
            for name, model in self.sources.items()
        ]
        try:
            source_rows = await asyncio.gather(*tasks)
        except BaseException:
            # Siblings are cancelled and awaited so their sessions close first
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        per_driver = {driver_id: ZERO for driver_id in driver_ids}
        for rows in source_rows:
            for driver_id, owed in rows.items():
                per_driver[driver_id] += owed

        return PayoutSummary(per_driver=per_driver, total=sum(per_driver.values(), ZERO))

    async def _sum_source(
        self,
        name: str,
        model: Type[TripCompletionMixin],
        driver_ids: set,
        window_start: datetime,
        window_end: datetime,
    ) -> Dict[int, Decimal]:
        query = (
            select(model.driver_id, func.sum(model.total_amount_owed))
            .where(
                model.driver_id.in_(sorted(driver_ids)),
                model.completed_at >= window_start,
                model.completed_at <= window_end,
            )
            .group_by(model.driver_id)
        )
        try:
            async with self.session_factory() as session:
                result = await session.execute(query)
                rows = result.all()
        except SQLAlchemyError as e:
            logger.error("Trip source '%s' unavailable: %s", name, e)
            raise TripSourceUnavailableError(name) from e

        # SUM over only-NULL rows is NULL; to_decimal maps it to zero
        return {driver_id: to_decimal(owed) for driver_id, owed in rows}
