"""
Authentication and tenant isolation tests.
"""

import pytest
from datetime import timedelta

from fleet_wallet.app.core.jwt import create_access_token, decode_access_token, vendor_claims


def test_token_roundtrip():
    token = create_access_token(vendor_claims(7))

    payload = decode_access_token(token)

    assert payload["vendor_id"] == 7
    assert payload["role"] == "VENDOR"
    assert "exp" in payload


def test_expired_token_is_rejected():
    token = create_access_token({"sub": "vendor-7", "role": "VENDOR"}, expires_delta=timedelta(seconds=-5))

    assert decode_access_token(token) is None


@pytest.mark.asyncio
async def test_garbage_token_gets_401(client):
    response = await client.get("/v1/vendor/wallet", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401
    assert response.json()["error_code"] == "ERR_UNAUTHORIZED"


@pytest.mark.asyncio
async def test_token_for_deleted_vendor_gets_401(client):
    token = create_access_token(vendor_claims(999))

    response = await client.get("/v1/vendor/wallet", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_inactive_vendor_gets_403(client, db_session, vendor, vendor_headers):
    vendor.is_active = False
    db_session.add(vendor)
    await db_session.commit()

    response = await client.get("/v1/vendor/wallet", headers=vendor_headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_vendor_only_sees_own_wallet(client, vendor, other_vendor, vendor_headers, admin_headers):
    await client.post(
        f"/v1/admin/vendors/{other_vendor.id}/wallet/transactions",
        json={"transaction_type": "credit", "amount": "900.00", "description": "Other tenant"},
        headers=admin_headers,
    )

    response = await client.get("/v1/vendor/wallet", headers=vendor_headers)

    assert response.json()["vendor_id"] == vendor.id
    assert response.json()["balance"] in ("0.00", "0")


@pytest.mark.asyncio
async def test_vendor_cannot_use_admin_wallet_routes(client, other_vendor, vendor_headers):
    response = await client.post(
        f"/v1/admin/vendors/{other_vendor.id}/wallet/transactions",
        json={"transaction_type": "credit", "amount": "900.00", "description": "Self-service"},
        headers=vendor_headers,
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_health_is_public(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.headers["X-Correlation-ID"]


@pytest.mark.asyncio
async def test_caller_correlation_id_is_echoed(client):
    response = await client.get("/health", headers={"X-Correlation-ID": "req-abc-123"})

    assert response.headers["X-Correlation-ID"] == "req-abc-123"
