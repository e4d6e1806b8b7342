"""
Payment initiation tests.

Test mode credits immediately; live mode only records a pending payment
and leaves crediting to the webhook.
"""

import pytest
from decimal import Decimal
from sqlalchemy import select, func
from sqlalchemy.exc import OperationalError

from fleet_wallet.app.main import app
from fleet_wallet.app.core.dependencies import get_payment_gateway
from fleet_wallet.app.core.exceptions import (
    GatewayRequestFailedError, InvalidAmountError, PersistenceFailedError, VendorNotFoundError
)
from fleet_wallet.app.domain.payments.payment_service import PaymentService
from fleet_wallet.app.domain.wallet.wallet_ledger import WalletLedger
from fleet_wallet.app.models.payment_transaction import PaymentTransaction
from fleet_wallet.app.models.reconciliation_item import ReconciliationItem, ReconciliationKind
from fleet_wallet.app.models.wallet_enums import PaymentStatus, TransactionType
from fleet_wallet.app.models.wallet_transaction import WalletTransaction
from fleet_wallet.app.services.payment_gateway import PaymentLink


class FakeGateway:
    name = "zoho"

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    async def create_payment_link(self, reference_id, amount, description):
        self.calls.append((reference_id, amount, description))
        if self.error:
            raise self.error
        return PaymentLink(
            link_id="plink_123",
            url="https://payments.zoho.in/checkout/plink_123",
            raw={"payment_links": {"payment_link_id": "plink_123"}},
        )


async def test_test_mode_credits_immediately(session_factory, db_session, vendor, test_settings):
    """Amount 2000 in test mode: success, one credit of 2000, totals up by 2000."""
    result = await PaymentService.initiate_payment(
        db_session, session_factory, test_settings, None, vendor.id, "2000.00", "Top-up"
    )

    assert result.status is PaymentStatus.SUCCESS
    assert result.payment_url is None
    assert isinstance(result.amount, Decimal)
    assert result.amount == Decimal("2000.00")

    async with session_factory() as fresh:
        payment = await fresh.get(PaymentTransaction, result.payment_id)
        wallet = await WalletLedger.get_wallet(fresh, vendor.id)
        entries = (await fresh.execute(select(WalletTransaction))).scalars().all()

    assert payment.status is PaymentStatus.SUCCESS
    assert payment.payment_gateway == "test"
    assert payment.completed_at is not None
    assert len(entries) == 1
    assert entries[0].transaction_type is TransactionType.CREDIT
    assert entries[0].amount == Decimal("2000.00")
    assert payment.wallet_transaction_id == entries[0].id
    assert payment.gateway_payment_id in entries[0].description
    assert wallet.total_credited == Decimal("2000.00")
    assert wallet.balance == Decimal("2000.00")


async def test_live_mode_records_pending_without_credit(session_factory, db_session, vendor, test_settings):
    gateway = FakeGateway()

    result = await PaymentService.initiate_payment(
        db_session, session_factory, test_settings, gateway, vendor.id, "1500.00"
    )

    assert result.status is PaymentStatus.PENDING
    assert result.payment_url == "https://payments.zoho.in/checkout/plink_123"
    assert gateway.calls[0][0] == result.payment_id
    assert gateway.calls[0][1] == Decimal("1500.00")

    async with session_factory() as fresh:
        payment = await fresh.get(PaymentTransaction, result.payment_id)
        credits = await fresh.scalar(select(func.count(WalletTransaction.id)))
        wallet = await WalletLedger.get_wallet(fresh, vendor.id)

    assert payment.status is PaymentStatus.PENDING
    assert payment.gateway_payment_id == "plink_123"
    assert credits == 0
    # Wallet is provisioned up front so the webhook can credit it
    assert wallet is not None
    assert wallet.balance == Decimal("0.00")


@pytest.mark.parametrize("amount", ["0", "-5"])
async def test_non_positive_amount(session_factory, db_session, vendor, test_settings, amount):
    with pytest.raises(InvalidAmountError):
        await PaymentService.initiate_payment(
            db_session, session_factory, test_settings, None, vendor.id, amount
        )


async def test_unknown_vendor(session_factory, db_session, test_settings):
    with pytest.raises(VendorNotFoundError):
        await PaymentService.initiate_payment(
            db_session, session_factory, test_settings, None, 777, "10.00"
        )


async def test_gateway_failure_records_nothing(session_factory, db_session, vendor, test_settings):
    gateway = FakeGateway(error=GatewayRequestFailedError(details={"status_code": 500}))

    with pytest.raises(GatewayRequestFailedError):
        await PaymentService.initiate_payment(
            db_session, session_factory, test_settings, gateway, vendor.id, "10.00"
        )

    count = await db_session.scalar(select(func.count(PaymentTransaction.id)))
    assert count == 0


async def test_persistence_failure_after_link_is_queued_for_reconciliation(
    session_factory, db_session, vendor, test_settings, mocker
):
    gateway = FakeGateway()
    await WalletLedger.get_or_create_wallet(db_session, vendor.id)
    mocker.patch.object(
        db_session, "commit",
        side_effect=OperationalError("INSERT INTO payment_transactions", {}, Exception("disk I/O error")),
    )

    with pytest.raises(PersistenceFailedError) as exc_info:
        await PaymentService.initiate_payment(
            db_session, session_factory, test_settings, gateway, vendor.id, "10.00"
        )

    assert exc_info.value.reconciliation_required is True
    async with session_factory() as fresh:
        items = (await fresh.execute(select(ReconciliationItem))).scalars().all()
        payments = await fresh.scalar(select(func.count(PaymentTransaction.id)))

    assert payments == 0
    assert len(items) == 1
    assert items[0].kind is ReconciliationKind.PAYMENT_PERSISTENCE_FAILED
    assert items[0].payload["gateway_link_id"] == "plink_123"


async def test_initiate_endpoint_test_mode(client, vendor, vendor_headers):
    response = await client.post(
        "/v1/vendor/payments", json={"amount": "2000.00"}, headers=vendor_headers
    )

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "success"
    assert "credited" in body["message"]

    response = await client.get("/v1/vendor/wallet", headers=vendor_headers)
    assert Decimal(response.json()["balance"]) == Decimal("2000.00")


async def test_initiate_endpoint_live_mode(client, vendor, vendor_headers):
    app.dependency_overrides[get_payment_gateway] = lambda: FakeGateway()

    response = await client.post(
        "/v1/vendor/payments", json={"amount": "1500.00", "description": "Top-up"}, headers=vendor_headers
    )

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "pending"
    assert body["payment_url"].endswith("plink_123")

    response = await client.get(f"/v1/vendor/payments/{body['payment_id']}", headers=vendor_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "pending"

    response = await client.get("/v1/vendor/payments", params={"status": "pending"}, headers=vendor_headers)
    assert [p["id"] for p in response.json()] == [body["payment_id"]]


async def test_initiate_endpoint_rejects_zero(client, vendor, vendor_headers):
    response = await client.post("/v1/vendor/payments", json={"amount": "0"}, headers=vendor_headers)

    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_BAD_REQUEST_002"


async def test_payment_of_another_vendor_is_hidden(client, db_session, session_factory, other_vendor, vendor, vendor_headers, test_settings):
    result = await PaymentService.initiate_payment(
        db_session, session_factory, test_settings, None, other_vendor.id, "10.00"
    )

    response = await client.get(f"/v1/vendor/payments/{result.payment_id}", headers=vendor_headers)

    assert response.status_code == 404


async def test_initiate_requires_authentication(client):
    response = await client.post("/v1/vendor/payments", json={"amount": "10.00"})

    assert response.status_code in (401, 403)
