"""
Zoho Payments gateway client tests (httpx.MockTransport, no network).
"""

import json
import pytest
import httpx
import redis.asyncio as redis
from decimal import Decimal

from fleet_wallet.app.core.exceptions import GatewayAuthFailedError, GatewayRequestFailedError
from fleet_wallet.app.services.payment_gateway import ZohoPaymentsGateway


@pytest.fixture
def live_settings(test_settings):
    test_settings.zoho_client_id = "client-id"
    test_settings.zoho_client_secret = "client-secret"
    test_settings.zoho_refresh_token = "refresh-token"
    test_settings.zoho_account_id = "60000001"
    test_settings.payment_return_url = "https://app.example.test/wallet"
    return test_settings


class GatewayStub:
    """Scripted responses for the token and payment-link endpoints."""

    def __init__(self, token_responses=None, link_response=None):
        self.token_responses = list(token_responses or [httpx.Response(200, json={"access_token": "tok-1", "expires_in": 3600})])
        self.link_response = link_response or httpx.Response(
            201,
            json={"code": 0, "payment_links": {"payment_link_id": "plink_42", "url": "https://pay.example/plink_42"}},
        )
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/oauth/v2/token":
            response = self.token_responses.pop(0) if len(self.token_responses) > 1 else self.token_responses[0]
            if isinstance(response, Exception):
                raise response
            return response
        return self.link_response

    def paths(self):
        return [request.url.path for request in self.requests]


def make_gateway(stub, settings, cache):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(stub))
    return ZohoPaymentsGateway(http_client, cache, settings)


def test_live_mode_needs_every_credential(test_settings, live_settings):
    assert live_settings.gateway_live_mode is True
    live_settings.zoho_account_id = None
    assert live_settings.gateway_live_mode is False


async def test_create_payment_link(live_settings, mock_redis):
    stub = GatewayStub()
    gateway = make_gateway(stub, live_settings, mock_redis)

    link = await gateway.create_payment_link("ref-1", Decimal("1500.00"), "Wallet recharge")

    assert link.link_id == "plink_42"
    assert link.url == "https://pay.example/plink_42"
    link_request = stub.requests[-1]
    assert link_request.url.path == "/api/v1/paymentlinks"
    assert link_request.url.params["account_id"] == "60000001"
    assert link_request.headers["Authorization"] == "Zoho-oauthtoken tok-1"
    body = json.loads(link_request.content)
    assert body == {
        "amount": "1500.00",
        "currency": "INR",
        "description": "Wallet recharge",
        "reference_id": "ref-1",
        "return_url": "https://app.example.test/wallet",
    }


async def test_token_is_cached_until_shortly_before_expiry(live_settings, mock_redis):
    stub = GatewayStub()
    gateway = make_gateway(stub, live_settings, mock_redis)

    await gateway.create_payment_link("ref-1", Decimal("1.00"), "a")
    await gateway.create_payment_link("ref-2", Decimal("2.00"), "b")

    assert stub.paths().count("/oauth/v2/token") == 1
    assert mock_redis.expiries[live_settings.gateway_token_cache_key] == 3540


async def test_token_refresh_retries_then_succeeds(live_settings, mock_redis):
    stub = GatewayStub(token_responses=[
        httpx.ConnectError("connection refused"),
        httpx.Response(200, json={"error": "invalid_code"}),
        httpx.Response(200, json={"access_token": "tok-3", "expires_in": 3600}),
    ])
    gateway = make_gateway(stub, live_settings, mock_redis)

    token = await gateway.get_access_token()

    assert token == "tok-3"
    assert stub.paths().count("/oauth/v2/token") == 3


async def test_token_refresh_exhaustion(live_settings, mock_redis):
    stub = GatewayStub(token_responses=[httpx.Response(500, text="unavailable")])
    gateway = make_gateway(stub, live_settings, mock_redis)

    with pytest.raises(GatewayAuthFailedError) as exc_info:
        await gateway.create_payment_link("ref-1", Decimal("1.00"), "a")

    assert exc_info.value.details["attempts"] == 3
    assert stub.paths() == ["/oauth/v2/token"] * 3


async def test_link_rejection(live_settings, mock_redis):
    stub = GatewayStub(link_response=httpx.Response(400, json={"code": 1001, "message": "Invalid amount"}))
    gateway = make_gateway(stub, live_settings, mock_redis)

    with pytest.raises(GatewayRequestFailedError) as exc_info:
        await gateway.create_payment_link("ref-1", Decimal("1.00"), "a")

    assert exc_info.value.details["status_code"] == 400
    assert exc_info.value.status_code == 502


async def test_unauthorized_link_drops_cached_token(live_settings, mock_redis):
    stub = GatewayStub(link_response=httpx.Response(401, json={"message": "Invalid token"}))
    gateway = make_gateway(stub, live_settings, mock_redis)

    with pytest.raises(GatewayRequestFailedError):
        await gateway.create_payment_link("ref-1", Decimal("1.00"), "a")

    assert live_settings.gateway_token_cache_key not in mock_redis.store


async def test_link_response_fallback_fields(live_settings, mock_redis):
    stub = GatewayStub(link_response=httpx.Response(
        200, json={"payment_id": "pay_77", "payment_url": "https://pay.example/pay_77"}
    ))
    gateway = make_gateway(stub, live_settings, mock_redis)

    link = await gateway.create_payment_link("ref-1", Decimal("1.00"), "a")

    assert link.link_id == "pay_77"
    assert link.url == "https://pay.example/pay_77"


async def test_link_without_url_is_an_error(live_settings, mock_redis):
    stub = GatewayStub(link_response=httpx.Response(200, json={"payment_links": {"payment_link_id": "x"}}))
    gateway = make_gateway(stub, live_settings, mock_redis)

    with pytest.raises(GatewayRequestFailedError):
        await gateway.create_payment_link("ref-1", Decimal("1.00"), "a")


async def test_cache_outage_falls_back_to_refresh(live_settings, mocker):
    cache = mocker.MagicMock()
    cache.get = mocker.AsyncMock(side_effect=redis.ConnectionError("redis down"))
    cache.set = mocker.AsyncMock(side_effect=redis.ConnectionError("redis down"))
    stub = GatewayStub()
    gateway = make_gateway(stub, live_settings, cache)

    link = await gateway.create_payment_link("ref-1", Decimal("1.00"), "a")

    assert link.link_id == "plink_42"


async def test_payment_link_amount_is_exact(live_settings, mock_redis):
    stub = GatewayStub()
    gateway = make_gateway(stub, live_settings, mock_redis)

    await gateway.create_payment_link("ref-1", Decimal("1234567.1"), "Wallet recharge")
    await gateway.create_payment_link("ref-2", Decimal("0.3"), "Wallet recharge")

    amounts = [json.loads(r.content)["amount"] for r in stub.requests if r.url.path.endswith("/paymentlinks")]
    assert amounts == ["1234567.10", "0.30"]
