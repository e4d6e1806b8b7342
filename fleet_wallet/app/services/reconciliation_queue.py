"""
Reconciliation queue.

Captures events where money moved (or the gateway reported that it did)
but local bookkeeping could not follow. Items are written on a fresh
session, because the request's own transaction has just been rolled back.
"""

import logging
from typing import Optional, Dict, Any
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleet_wallet.app.models.reconciliation_item import (
    ReconciliationItem, ReconciliationKind, ReconciliationStatus
)

logger = logging.getLogger(__name__)


async def enqueue_reconciliation(
    session_factory: async_sessionmaker,
    kind: ReconciliationKind,
    reference: Optional[str],
    error_message: str,
    payload: Optional[Dict[str, Any]] = None,
) -> Optional[ReconciliationItem]:
    """
    Record an item for out-of-band reconciliation.

    Returns None when the store itself is unreachable; the error log line
    emitted here is then the only trace and must be alerted on.
    """
    logger.error(
        "Reconciliation required: %s reference=%s error=%s",
        kind.value, reference, error_message,
        extra={"reconciliation_required": True, "reference": reference},
    )
    try:
        async with session_factory() as session:
            item = ReconciliationItem(
                kind=kind,
                reference=reference,
                error_message=error_message,
                payload=payload,
                status=ReconciliationStatus.OPEN,
            )
            session.add(item)
            await session.commit()
            return item
    except SQLAlchemyError:
        logger.exception("Could not record reconciliation item for %s", reference)
        return None


async def list_open_items(db: AsyncSession, limit: int = 100) -> list[ReconciliationItem]:
    """Open reconciliation items, oldest first."""
    result = await db.execute(
        select(ReconciliationItem)
        .where(ReconciliationItem.status == ReconciliationStatus.OPEN)
        .order_by(ReconciliationItem.created_at, ReconciliationItem.id)
        .limit(limit)
    )
    return list(result.scalars().all())
