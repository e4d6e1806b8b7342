"""
Commission Credit Ledger (Domain Logic).

Admin-entered daily allocations, one per (vendor, local date). Recording a
credit for a date that already has one replaces it; the table never holds
two rows for the same pair.
"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_wallet.app.core.exceptions import (
    InvalidAmountError, InvalidRequestError, PersistenceFailedError, VendorNotFoundError
)
from fleet_wallet.app.domain.money import to_decimal
from fleet_wallet.app.models.commission_credit import CommissionCredit
from fleet_wallet.app.models.vendor import Vendor
from fleet_wallet.app.services.audit import AuditAction, log_event

logger = logging.getLogger(__name__)

# A concurrent insert for the same (vendor, date) can win once; retry as update
MAX_UPSERT_ATTEMPTS = 2


class CommissionLedger:

    @staticmethod
    async def get_credit(db: AsyncSession, vendor_id: int, credit_date: date) -> Optional[CommissionCredit]:
        result = await db.execute(
            select(CommissionCredit)
            .where(
                CommissionCredit.vendor_id == vendor_id,
                CommissionCredit.credit_date == credit_date,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def list_credits(
        db: AsyncSession,
        vendor_id: int,
        start_date: date,
        end_date: date,
    ) -> list[CommissionCredit]:
        """Credits in [start_date, end_date], oldest first."""
        if start_date > end_date:
            raise InvalidRequestError("start must not be after end")
        result = await db.execute(
            select(CommissionCredit)
            .where(
                CommissionCredit.vendor_id == vendor_id,
                CommissionCredit.credit_date >= start_date,
                CommissionCredit.credit_date <= end_date,
            )
            .order_by(CommissionCredit.credit_date)
        )
        return list(result.scalars().all())

    @staticmethod
    async def record_credit(
        db: AsyncSession,
        vendor_id: int,
        credit_date: date,
        amount,
        notes: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> CommissionCredit:
        """
        Create or replace the vendor's commission credit for `credit_date`.

        Commits on success.

        Raises:
            InvalidAmountError: amount < 0
            VendorNotFoundError: vendor does not exist
            PersistenceFailedError: the row could not be written
        """
        amount = to_decimal(amount)
        if amount < 0:
            raise InvalidAmountError(amount, message="Commission credit cannot be negative")

        vendor = await db.get(Vendor, vendor_id)
        if not vendor:
            raise VendorNotFoundError(vendor_id)

        for attempt in range(1, MAX_UPSERT_ATTEMPTS + 1):
            credit = await CommissionLedger.get_credit(db, vendor_id, credit_date)
            previous_amount = credit.amount if credit else None
            if credit:
                credit.amount = amount
                credit.notes = notes
                credit.created_by = created_by
            else:
                credit = CommissionCredit(
                    vendor_id=vendor_id,
                    credit_date=credit_date,
                    amount=amount,
                    notes=notes,
                    created_by=created_by,
                )
                db.add(credit)

            try:
                await log_event(
                    db,
                    AuditAction.COMMISSION_CREDIT_RECORDED,
                    vendor_id=vendor_id,
                    actor_id=created_by,
                    metadata={
                        "credit_date": credit_date.isoformat(),
                        "amount": str(amount),
                        "previous_amount": str(previous_amount) if previous_amount is not None else None,
                    },
                )
                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                if attempt == MAX_UPSERT_ATTEMPTS:
                    raise PersistenceFailedError(
                        "Could not record commission credit",
                        details={"vendor_id": vendor_id, "credit_date": credit_date.isoformat()},
                    ) from e
                logger.info(
                    "Concurrent commission credit for vendor %s on %s, retrying as update",
                    vendor_id, credit_date,
                )
                continue

            await db.refresh(credit)
            logger.info("Recorded commission credit %s for vendor %s on %s", amount, vendor_id, credit_date)
            return credit
