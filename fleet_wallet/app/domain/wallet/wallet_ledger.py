"""
Wallet Transaction Ledger (Domain Logic).

Append-only ledger of wallet credits/debits. Every append updates the
wallet's running totals in the same database transaction, with a single
SQL expression update so concurrent appends never lose an increment.

Methods flush but never commit; the caller owns the transaction boundary.
The exception is `get_or_create_wallet`, which provisions and commits.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update, func, desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_wallet.app.core.exceptions import (
    InvalidAmountError, ResourceNotFoundError, VendorNotFoundError, WalletNotFoundError
)
from fleet_wallet.app.domain.money import ZERO, to_decimal, utc_now
from fleet_wallet.app.models.vendor import Vendor
from fleet_wallet.app.models.wallet import Wallet
from fleet_wallet.app.models.wallet_transaction import WalletTransaction
from fleet_wallet.app.models.wallet_enums import TransactionType
from fleet_wallet.app.services.audit import AuditAction, log_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WalletReconciliation:
    """Ledger-derived totals next to the wallet's stored totals."""
    wallet_id: int
    ledger_credited: Decimal
    ledger_debited: Decimal
    ledger_balance: Decimal
    stored_credited: Decimal
    stored_debited: Decimal
    stored_balance: Decimal
    transaction_count: int

    @property
    def is_consistent(self) -> bool:
        return (
            self.ledger_credited == self.stored_credited
            and self.ledger_debited == self.stored_debited
            and self.ledger_balance == self.stored_balance
            and self.stored_balance == self.stored_credited - self.stored_debited
        )


class WalletLedger:

    @staticmethod
    async def get_wallet(db: AsyncSession, vendor_id: int) -> Optional[Wallet]:
        """Fetch the vendor's wallet with fresh totals, or None."""
        result = await db.execute(
            select(Wallet)
            .where(Wallet.vendor_id == vendor_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_or_create_wallet(db: AsyncSession, vendor_id: int) -> Wallet:
        """
        Return the vendor's wallet, provisioning it on first access.

        The new wallet is committed immediately. Call this before any other
        write in the session: a lost creation race rolls the session back.

        Raises:
            VendorNotFoundError: vendor does not exist
        """
        wallet = await WalletLedger.get_wallet(db, vendor_id)
        if wallet:
            return wallet

        vendor = await db.get(Vendor, vendor_id)
        if not vendor:
            raise VendorNotFoundError(vendor_id)

        wallet = Wallet(
            vendor_id=vendor_id,
            balance=ZERO,
            total_credited=ZERO,
            total_debited=ZERO,
        )
        db.add(wallet)
        try:
            await db.flush()
            await log_event(
                db, AuditAction.WALLET_CREATED, vendor_id=vendor_id, metadata={"wallet_id": wallet.id}
            )
            await db.commit()
        except IntegrityError:
            # Another request provisioned it first (unique vendor_id)
            await db.rollback()
            wallet = await WalletLedger.get_wallet(db, vendor_id)
            if wallet is None:
                raise
            return wallet

        await db.refresh(wallet)
        logger.info("Provisioned wallet %s for vendor %s", wallet.id, vendor_id)
        return wallet

    @staticmethod
    async def append_transaction(
        db: AsyncSession,
        wallet_id: int,
        vendor_id: int,
        transaction_type: TransactionType,
        amount,
        description: str,
        driver_id: Optional[int] = None,
        reference: Optional[str] = None,
        transaction_date: Optional[date] = None,
    ) -> WalletTransaction:
        """
        Append a ledger entry and apply it to the wallet totals.

        Credit: total_credited += amount, balance += amount
        Debit:  total_debited  += amount, balance -= amount

        Both writes are flushed in the caller's transaction; they commit or
        roll back together.

        Raises:
            InvalidAmountError: amount <= 0
            WalletNotFoundError: no wallet `wallet_id` owned by `vendor_id`
        """
        amount = to_decimal(amount)
        if amount <= 0:
            raise InvalidAmountError(amount)
        transaction_type = TransactionType(transaction_type)

        if transaction_type is TransactionType.CREDIT:
            totals = {
                "balance": Wallet.balance + amount,
                "total_credited": Wallet.total_credited + amount,
            }
        else:
            totals = {
                "balance": Wallet.balance - amount,
                "total_debited": Wallet.total_debited + amount,
            }

        result = await db.execute(
            update(Wallet)
            .where(Wallet.id == wallet_id, Wallet.vendor_id == vendor_id)
            .values(**totals, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise WalletNotFoundError(vendor_id)

        entry = WalletTransaction(
            wallet_id=wallet_id,
            vendor_id=vendor_id,
            driver_id=driver_id,
            transaction_type=transaction_type,
            amount=amount,
            description=description,
            reference=reference,
            transaction_date=transaction_date or utc_now().date(),
        )
        db.add(entry)
        await db.flush()

        logger.info(
            "Wallet %s %s %s (entry %s, reference=%s)",
            wallet_id, transaction_type.value, amount, entry.id, reference,
        )
        return entry

    @staticmethod
    async def list_transactions(
        db: AsyncSession,
        wallet_id: int,
        limit: int = 50,
        offset: int = 0,
    ) -> list[WalletTransaction]:
        """Ledger entries, newest first."""
        result = await db.execute(
            select(WalletTransaction)
            .where(WalletTransaction.wallet_id == wallet_id)
            .order_by(desc(WalletTransaction.created_at), desc(WalletTransaction.id))
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    @staticmethod
    async def reconcile_wallet(db: AsyncSession, wallet_id: int) -> WalletReconciliation:
        """Recompute the wallet's totals from a full ledger scan."""
        result = await db.execute(
            select(Wallet)
            .where(Wallet.id == wallet_id)
            .execution_options(populate_existing=True)
        )
        wallet = result.scalar_one_or_none()
        if wallet is None:
            raise ResourceNotFoundError("Wallet", wallet_id, error_code="ERR_NOT_FOUND_003")

        result = await db.execute(
            select(
                WalletTransaction.transaction_type,
                func.sum(WalletTransaction.amount),
                func.count(WalletTransaction.id),
            )
            .where(WalletTransaction.wallet_id == wallet.id)
            .group_by(WalletTransaction.transaction_type)
        )
        sums = {TransactionType.CREDIT: ZERO, TransactionType.DEBIT: ZERO}
        count = 0
        for transaction_type, total, rows in result.all():
            sums[TransactionType(transaction_type)] = to_decimal(total)
            count += rows

        reconciliation = WalletReconciliation(
            wallet_id=wallet.id,
            ledger_credited=sums[TransactionType.CREDIT],
            ledger_debited=sums[TransactionType.DEBIT],
            ledger_balance=sums[TransactionType.CREDIT] - sums[TransactionType.DEBIT],
            stored_credited=to_decimal(wallet.total_credited),
            stored_debited=to_decimal(wallet.total_debited),
            stored_balance=to_decimal(wallet.balance),
            transaction_count=count,
        )
        if not reconciliation.is_consistent:
            logger.error("Wallet %s totals drifted from its ledger: %s", wallet.id, reconciliation)
        return reconciliation
