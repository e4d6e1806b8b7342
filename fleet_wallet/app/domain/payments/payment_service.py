"""
Payment Initiation (Domain Logic).

Starts a wallet top-up. In live mode a hosted payment link is created at
the gateway and a pending transaction is recorded; the wallet is credited
later by the webhook. In test mode the payment succeeds immediately and the
wallet credit is written in the same database transaction.
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleet_wallet.app.core.config import Settings
from fleet_wallet.app.core.exceptions import (
    InvalidAmountError, PersistenceFailedError, ResourceNotFoundError, VendorNotFoundError
)
from fleet_wallet.app.domain.money import local_today, to_decimal, utc_now
from fleet_wallet.app.domain.wallet.wallet_ledger import WalletLedger
from fleet_wallet.app.models.payment_transaction import PaymentTransaction
from fleet_wallet.app.models.reconciliation_item import ReconciliationKind
from fleet_wallet.app.models.vendor import Vendor
from fleet_wallet.app.models.wallet_enums import PaymentStatus, TransactionType
from fleet_wallet.app.services.audit import AuditAction, log_event
from fleet_wallet.app.services.payment_gateway import ZohoPaymentsGateway
from fleet_wallet.app.services.reconciliation_queue import enqueue_reconciliation

logger = logging.getLogger(__name__)

TEST_GATEWAY = "test"
DEFAULT_DESCRIPTION = "Wallet recharge"

PENDING_MESSAGE = "Payment link created. Your wallet balance will update once the payment completes."
CREDITED_MESSAGE = "Payment successful. Your wallet has been credited."


@dataclass(frozen=True)
class PaymentInitiation:
    payment_id: str
    status: PaymentStatus
    amount: Decimal
    currency: str
    payment_url: Optional[str]
    message: str


def credit_description(description: Optional[str], gateway_payment_id: Optional[str]) -> str:
    """Ledger text for a payment credit; names the gateway payment id."""
    return f"{description or DEFAULT_DESCRIPTION} (Payment ID: {gateway_payment_id})"


class PaymentService:

    @staticmethod
    async def initiate_payment(
        db: AsyncSession,
        session_factory: async_sessionmaker,
        settings: Settings,
        gateway: Optional[ZohoPaymentsGateway],
        vendor_id: int,
        amount,
        description: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> PaymentInitiation:
        """
        Start a wallet top-up for `vendor_id`.

        `gateway` is None in test mode.

        Raises:
            InvalidAmountError: amount <= 0
            VendorNotFoundError: vendor does not exist
            GatewayAuthFailedError / GatewayRequestFailedError: live mode only
            PersistenceFailedError: local write failed; in live mode the
                gateway link already exists and reconciliation is required
        """
        amount = to_decimal(amount)
        if amount <= 0:
            raise InvalidAmountError(amount)

        vendor = await db.get(Vendor, vendor_id)
        if not vendor:
            raise VendorNotFoundError(vendor_id)

        wallet = await WalletLedger.get_or_create_wallet(db, vendor_id)
        payment_id = str(uuid.uuid4())
        description = description or DEFAULT_DESCRIPTION

        if gateway is None:
            return await PaymentService._complete_test_payment(
                db, settings, wallet.id, vendor_id, payment_id, amount, description, actor_id
            )

        link = await gateway.create_payment_link(payment_id, amount, description)

        transaction = PaymentTransaction(
            id=payment_id,
            vendor_id=vendor_id,
            amount=amount,
            currency=settings.payment_currency,
            payment_gateway=gateway.name,
            gateway_transaction_id=link.link_id,
            gateway_payment_id=link.link_id,
            payment_url=link.url,
            gateway_metadata=link.raw,
            status=PaymentStatus.PENDING,
            description=description,
        )
        db.add(transaction)
        try:
            await log_event(
                db,
                AuditAction.PAYMENT_INITIATED,
                vendor_id=vendor_id,
                actor_id=actor_id,
                metadata={"payment_id": payment_id, "amount": str(amount), "mode": "live"},
            )
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            await enqueue_reconciliation(
                session_factory,
                ReconciliationKind.PAYMENT_PERSISTENCE_FAILED,
                reference=payment_id,
                error_message=str(e),
                payload={
                    "vendor_id": vendor_id,
                    "amount": str(amount),
                    "gateway_link_id": link.link_id,
                    "payment_url": link.url,
                },
            )
            raise PersistenceFailedError(
                "Payment link was created but could not be recorded",
                reconciliation_required=True,
                details={"payment_id": payment_id, "gateway_link_id": link.link_id},
            ) from e

        logger.info("Initiated payment %s for vendor %s (%s)", payment_id, vendor_id, amount)
        return PaymentInitiation(
            payment_id=payment_id,
            status=PaymentStatus.PENDING,
            amount=amount,
            currency=settings.payment_currency,
            payment_url=link.url,
            message=PENDING_MESSAGE,
        )

    @staticmethod
    async def _complete_test_payment(
        db: AsyncSession,
        settings: Settings,
        wallet_id: int,
        vendor_id: int,
        payment_id: str,
        amount,
        description: str,
        actor_id: Optional[str],
    ) -> PaymentInitiation:
        gateway_payment_id = f"test_{payment_id}"
        transaction = PaymentTransaction(
            id=payment_id,
            vendor_id=vendor_id,
            amount=amount,
            currency=settings.payment_currency,
            payment_gateway=TEST_GATEWAY,
            gateway_transaction_id=gateway_payment_id,
            gateway_payment_id=gateway_payment_id,
            gateway_metadata={"mode": TEST_GATEWAY},
            status=PaymentStatus.SUCCESS,
            description=description,
            completed_at=utc_now(),
        )
        db.add(transaction)
        try:
            await db.flush()
            entry = await WalletLedger.append_transaction(
                db,
                wallet_id=wallet_id,
                vendor_id=vendor_id,
                transaction_type=TransactionType.CREDIT,
                amount=amount,
                description=credit_description(description, gateway_payment_id),
                reference=gateway_payment_id,
                transaction_date=local_today(settings.vendor_utc_offset_minutes),
            )
            transaction.wallet_transaction_id = entry.id
            await log_event(
                db,
                AuditAction.PAYMENT_INITIATED,
                vendor_id=vendor_id,
                actor_id=actor_id,
                metadata={"payment_id": payment_id, "amount": str(amount), "mode": TEST_GATEWAY},
            )
            await log_event(
                db,
                AuditAction.WALLET_CREDITED,
                vendor_id=vendor_id,
                metadata={"payment_id": payment_id, "wallet_transaction_id": entry.id},
            )
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Test payment %s for vendor %s not recorded: %s", payment_id, vendor_id, e)
            raise PersistenceFailedError(
                "Test payment could not be recorded", details={"payment_id": payment_id}
            ) from e

        logger.info("Test-mode payment %s credited %s to vendor %s", payment_id, amount, vendor_id)
        return PaymentInitiation(
            payment_id=payment_id,
            status=PaymentStatus.SUCCESS,
            amount=amount,
            currency=settings.payment_currency,
            payment_url=None,
            message=CREDITED_MESSAGE,
        )

    @staticmethod
    async def get_payment(db: AsyncSession, vendor_id: int, payment_id: str) -> PaymentTransaction:
        """
        Raises:
            ResourceNotFoundError: no such payment for this vendor
        """
        result = await db.execute(
            select(PaymentTransaction)
            .where(
                PaymentTransaction.id == payment_id,
                PaymentTransaction.vendor_id == vendor_id,
            )
            .execution_options(populate_existing=True)
        )
        payment = result.scalar_one_or_none()
        if not payment:
            raise ResourceNotFoundError("Payment", payment_id, error_code="ERR_NOT_FOUND_004")
        return payment

    @staticmethod
    async def list_payments(
        db: AsyncSession,
        vendor_id: int,
        status: Optional[PaymentStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[PaymentTransaction]:
        """Vendor's payments, newest first."""
        query = select(PaymentTransaction).where(PaymentTransaction.vendor_id == vendor_id)
        if status:
            query = query.where(PaymentTransaction.status == status)
        query = (
            query.order_by(desc(PaymentTransaction.created_at), desc(PaymentTransaction.id))
            .limit(limit)
            .offset(offset)
        )
        result = await db.execute(query)
        return list(result.scalars().all())
