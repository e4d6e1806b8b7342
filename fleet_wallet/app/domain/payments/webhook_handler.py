"""
Payment Webhook Handler (Domain Logic).

Applies gateway status notifications to payment transactions.

State machine:
    PENDING -> SUCCESS | FAILED | CANCELLED   (terminal, no exits)

Deliveries are at-least-once, unordered and possibly concurrent. The
transition is a compare-and-set update guarded by `status = 'pending'`;
whoever loses the race sees zero rows updated and acknowledges the
delivery as a duplicate without crediting.

Transition, wallet credit, link and audit row commit as one database
transaction. Any failure rolls all of it back so a gateway retry can
complete the work.
"""

import json
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleet_wallet.app.core.config import Settings
from fleet_wallet.app.core.exceptions import (
    AppException, InvalidAmountError, InvalidSignatureError, MalformedWebhookError,
    PersistenceFailedError, TransactionNotFoundError, WalletNotFoundError,
    WebhookConfigurationError,
)
from fleet_wallet.app.domain.money import local_today, minor_to_major, utc_now
from fleet_wallet.app.domain.payments.payment_service import credit_description
from fleet_wallet.app.domain.payments.signatures import verify_signature
from fleet_wallet.app.domain.wallet.wallet_ledger import WalletLedger
from fleet_wallet.app.models.payment_transaction import PaymentTransaction
from fleet_wallet.app.models.reconciliation_item import ReconciliationKind
from fleet_wallet.app.models.wallet_enums import PaymentStatus, TransactionType
from fleet_wallet.app.services.audit import AuditAction, log_event
from fleet_wallet.app.services.reconciliation_queue import enqueue_reconciliation

logger = logging.getLogger(__name__)

# Gateway status text (lower-cased) -> our status; anything else stays pending
GATEWAY_STATUS_MAP = {
    "authorized": PaymentStatus.SUCCESS,
    "captured": PaymentStatus.SUCCESS,
    "success": PaymentStatus.SUCCESS,
    "failed": PaymentStatus.FAILED,
    "cancelled": PaymentStatus.CANCELLED,
    "canceled": PaymentStatus.CANCELLED,
}


def map_gateway_status(raw_status: Optional[str]) -> PaymentStatus:
    if not raw_status:
        return PaymentStatus.PENDING
    return GATEWAY_STATUS_MAP.get(str(raw_status).strip().lower(), PaymentStatus.PENDING)


@dataclass(frozen=True)
class WebhookEvent:
    gateway_payment_id: Optional[str]
    reference_id: Optional[str]
    status: Optional[str]
    amount: Optional[Decimal]  # major units, None when the gateway sent none
    payload: Dict[str, Any]


@dataclass(frozen=True)
class WebhookResult:
    payment_id: str
    status: PaymentStatus
    duplicate: bool = False


def _first_present(*values: Any) -> Optional[Any]:
    for value in values:
        if value not in (None, ""):
            return value
    return None


def parse_webhook_body(raw_body: bytes) -> WebhookEvent:
    """
    Extract the fields we use, preferring `payment.*` over top-level keys.

    Raises:
        MalformedWebhookError: unparseable body, non-object body, bad amount,
            or neither a payment id nor a reference id
    """
    try:
        payload = json.loads(raw_body)
    except ValueError:
        raise MalformedWebhookError("Webhook body is not valid JSON")
    if not isinstance(payload, dict):
        raise MalformedWebhookError("Webhook body must be a JSON object")

    payment = payload.get("payment")
    if not isinstance(payment, dict):
        payment = {}

    gateway_payment_id = _first_present(
        payment.get("payment_id"), payload.get("payment_id"),
        payment.get("id"), payload.get("id"),
    )
    reference_id = _first_present(payment.get("reference_id"), payload.get("reference_id"))
    raw_status = _first_present(payment.get("status"), payload.get("status"))
    raw_amount = _first_present(payment.get("amount"), payload.get("amount"))

    if gateway_payment_id is None and reference_id is None:
        raise MalformedWebhookError("Webhook is missing payment identifiers")

    amount = None
    if raw_amount is not None:
        try:
            amount = minor_to_major(raw_amount)
        except (InvalidOperation, ValueError, InvalidAmountError):
            raise MalformedWebhookError("Webhook amount is not a number")

    return WebhookEvent(
        gateway_payment_id=str(gateway_payment_id) if gateway_payment_id is not None else None,
        reference_id=str(reference_id) if reference_id is not None else None,
        status=str(raw_status) if raw_status is not None else None,
        amount=amount,
        payload=payload,
    )


class WebhookHandler:
    """
    Usage:
        handler = WebhookHandler(db, session_factory, settings)
        result = await handler.handle(raw_body, request.headers.get(SIGNATURE_HEADER))
    """

    def __init__(self, db: AsyncSession, session_factory: async_sessionmaker, settings: Settings):
        self.db = db
        self.session_factory = session_factory
        self.settings = settings

    async def handle(self, raw_body: bytes, signature: Optional[str]) -> WebhookResult:
        """
        Raises:
            InvalidSignatureError: signature header missing or wrong
            WebhookConfigurationError: verification required, no secret set
            MalformedWebhookError: see parse_webhook_body
            TransactionNotFoundError: no transaction matches the identifiers
            WalletNotFoundError: success for a vendor without a wallet
            PersistenceFailedError: the update could not be committed
        """
        self.verify(raw_body, signature)
        event = parse_webhook_body(raw_body)
        transaction, matched_by_reference = await self._resolve(event)

        if transaction.status.is_terminal:
            logger.info(
                "Duplicate webhook for payment %s already %s",
                transaction.id, transaction.status.value,
            )
            await self._record_duplicate(transaction, transaction.status, event)
            return WebhookResult(transaction.id, transaction.status, duplicate=True)

        new_status = map_gateway_status(event.status)
        record_gateway_id = matched_by_reference and event.gateway_payment_id is not None

        try:
            applied = await self._apply(transaction, event, new_status, record_gateway_id)
        except AppException as e:
            # Wallet missing or unusable amount; the payment stays pending
            await self.db.rollback()
            await enqueue_reconciliation(
                self.session_factory,
                ReconciliationKind.WEBHOOK_CREDIT_FAILED,
                reference=transaction.id,
                error_message=e.message,
                payload=event.payload,
            )
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            await enqueue_reconciliation(
                self.session_factory,
                ReconciliationKind.WEBHOOK_CREDIT_FAILED,
                reference=transaction.id,
                error_message=str(e),
                payload=event.payload,
            )
            raise PersistenceFailedError(
                "Webhook could not be applied",
                details={"payment_id": transaction.id},
            ) from e

        if not applied:
            current = await self._current_status(transaction.id)
            logger.info("Lost transition race for payment %s, now %s", transaction.id, current.value)
            if current.is_terminal:
                await self._record_duplicate(transaction, current, event)
            return WebhookResult(transaction.id, current, duplicate=current.is_terminal)

        if new_status is PaymentStatus.PENDING:
            logger.info(
                "Webhook status '%s' for payment %s not recognized; left pending",
                event.status, transaction.id,
            )
        else:
            logger.info("Payment %s transitioned to %s", transaction.id, new_status.value)
        return WebhookResult(transaction.id, new_status)

    async def _apply(
        self,
        transaction: PaymentTransaction,
        event: WebhookEvent,
        new_status: PaymentStatus,
        record_gateway_id: bool,
    ) -> bool:
        """
        Transition, credit, link and audit, committed together.

        Returns False (after rolling back) when another delivery moved the
        payment first.
        """
        if not await self._compare_and_set(transaction, event, new_status, record_gateway_id):
            await self.db.rollback()
            return False

        if new_status is not PaymentStatus.PENDING:
            if new_status is PaymentStatus.SUCCESS:
                await self._credit_wallet(transaction, event)

            await log_event(
                self.db,
                AuditAction.PAYMENT_STATUS_CHANGED,
                vendor_id=transaction.vendor_id,
                actor_role="GATEWAY",
                metadata={
                    "payment_id": transaction.id,
                    "from": PaymentStatus.PENDING.value,
                    "to": new_status.value,
                    "gateway_status": event.status,
                },
            )
        await self.db.commit()
        return True

    def verify(self, raw_body: bytes, signature: Optional[str]) -> None:
        if self.settings.webhook_signature_verification_disabled:
            logger.warning("Webhook signature verification is disabled")
            return
        if not self.settings.webhook_signing_secret:
            logger.error("Webhook received but no signing secret is configured")
            raise WebhookConfigurationError()
        if not signature:
            raise InvalidSignatureError("Missing webhook signature")
        if not verify_signature(raw_body, signature, self.settings.webhook_signing_secret):
            logger.warning("Rejected webhook with invalid signature")
            raise InvalidSignatureError()

    async def _resolve(self, event: WebhookEvent) -> Tuple[PaymentTransaction, bool]:
        """Find the transaction by reference id, then by gateway payment id."""
        if event.reference_id:
            transaction = await self._load(PaymentTransaction.id == event.reference_id)
            if transaction:
                return transaction, True

        if event.gateway_payment_id:
            transaction = await self._load(PaymentTransaction.gateway_payment_id == event.gateway_payment_id)
            if transaction:
                return transaction, False

        logger.warning(
            "Webhook matches no payment (reference_id=%s, payment_id=%s)",
            event.reference_id, event.gateway_payment_id,
        )
        await enqueue_reconciliation(
            self.session_factory,
            ReconciliationKind.WEBHOOK_UNMATCHED,
            reference=event.reference_id or event.gateway_payment_id,
            error_message="No payment transaction matches webhook identifiers",
            payload=event.payload,
        )
        raise TransactionNotFoundError(event.reference_id, event.gateway_payment_id)

    async def _load(self, criterion) -> Optional[PaymentTransaction]:
        result = await self.db.execute(
            select(PaymentTransaction)
            .where(criterion)
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _record_duplicate(
        self,
        transaction: PaymentTransaction,
        status: PaymentStatus,
        event: WebhookEvent,
    ) -> None:
        """Keep a re-delivery's payload in the audit log; the payment row is left as is."""
        try:
            await log_event(
                self.db,
                AuditAction.WEBHOOK_DUPLICATE,
                vendor_id=transaction.vendor_id,
                actor_role="GATEWAY",
                metadata={
                    "payment_id": transaction.id,
                    "status": status.value,
                    "gateway_status": event.status,
                    "payload": event.payload,
                },
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceFailedError(
                "Duplicate webhook could not be recorded",
                details={"payment_id": transaction.id},
            ) from e

    async def _current_status(self, payment_id: str) -> PaymentStatus:
        result = await self.db.execute(
            select(PaymentTransaction.status).where(PaymentTransaction.id == payment_id)
        )
        return result.scalar_one()

    async def _compare_and_set(
        self,
        transaction: PaymentTransaction,
        event: WebhookEvent,
        new_status: PaymentStatus,
        record_gateway_id: bool,
    ) -> bool:
        """
        UPDATE ... WHERE id = :id AND status = 'pending'.

        Returns False when the row is no longer pending.
        """
        now = utc_now()
        values = {
            "status": new_status,
            "gateway_metadata": event.payload,
            "updated_at": now,
        }
        if new_status is PaymentStatus.SUCCESS:
            values["completed_at"] = now
        if record_gateway_id:
            values["gateway_payment_id"] = event.gateway_payment_id

        result = await self.db.execute(
            update(PaymentTransaction)
            .where(
                PaymentTransaction.id == transaction.id,
                PaymentTransaction.status == PaymentStatus.PENDING,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _credit_wallet(self, transaction: PaymentTransaction, event: WebhookEvent) -> None:
        wallet = await WalletLedger.get_wallet(self.db, transaction.vendor_id)
        if wallet is None:
            logger.error(
                "Payment %s succeeded but vendor %s has no wallet",
                transaction.id, transaction.vendor_id,
            )
            raise WalletNotFoundError(transaction.vendor_id)

        amount = event.amount if event.amount is not None else transaction.amount
        if amount != transaction.amount:
            logger.warning(
                "Payment %s: gateway amount %s differs from requested %s; crediting gateway amount",
                transaction.id, amount, transaction.amount,
            )

        gateway_payment_id = event.gateway_payment_id or transaction.gateway_payment_id
        entry = await WalletLedger.append_transaction(
            self.db,
            wallet_id=wallet.id,
            vendor_id=transaction.vendor_id,
            transaction_type=TransactionType.CREDIT,
            amount=amount,
            description=credit_description(transaction.description, gateway_payment_id),
            reference=gateway_payment_id,
            transaction_date=local_today(self.settings.vendor_utc_offset_minutes),
        )
        await self.db.execute(
            update(PaymentTransaction)
            .where(PaymentTransaction.id == transaction.id)
            .values(wallet_transaction_id=entry.id)
            .execution_options(synchronize_session=False)
        )
        await log_event(
            self.db,
            AuditAction.WALLET_CREDITED,
            vendor_id=transaction.vendor_id,
            actor_role="GATEWAY",
            metadata={"payment_id": transaction.id, "wallet_transaction_id": entry.id, "amount": str(amount)},
        )
