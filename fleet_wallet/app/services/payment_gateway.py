"""
Zoho Payments gateway client.

Handles OAuth access-token refresh (cached in Redis until shortly before
expiry) and payment-link creation. All HTTP goes through the shared
`httpx.AsyncClient` owned by the application lifespan.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

import httpx
import redis.asyncio as redis

from fleet_wallet.app.core.config import Settings
from fleet_wallet.app.core.exceptions import GatewayAuthFailedError, GatewayRequestFailedError
from fleet_wallet.app.core.reliability import RetryExhaustedError, retry_with_linear_backoff
from fleet_wallet.app.domain.money import to_decimal

logger = logging.getLogger(__name__)

# Refresh this many seconds before the gateway says the token expires
TOKEN_EXPIRY_MARGIN_SECONDS = 60
DEFAULT_TOKEN_LIFETIME_SECONDS = 3600


class TokenRefreshRejected(Exception):
    """The token endpoint answered but did not hand out a token."""


@dataclass(frozen=True)
class PaymentLink:
    link_id: Optional[str]
    url: str
    raw: Dict[str, Any] = field(default_factory=dict)


class ZohoPaymentsGateway:
    """
    Thin async client for the Zoho Payments API.

    Usage:
        gateway = ZohoPaymentsGateway(http_client, redis_client, settings)
        link = await gateway.create_payment_link(payment_id, Decimal("1500.00"), "Wallet recharge")
    """

    name = "zoho"

    def __init__(self, http_client: httpx.AsyncClient, token_cache: Optional[redis.Redis], settings: Settings):
        self.http_client = http_client
        self.token_cache = token_cache
        self.settings = settings

    async def get_access_token(self) -> str:
        """
        Cached access token, refreshed on miss.

        Raises:
            GatewayAuthFailedError: every refresh attempt failed
        """
        cached = await self._read_cached_token()
        if cached:
            return cached

        try:
            token, expires_in = await retry_with_linear_backoff(
                self._refresh_access_token,
                attempts=self.settings.gateway_token_refresh_attempts,
                backoff_seconds=self.settings.gateway_token_refresh_backoff_seconds,
                retry_on=(httpx.HTTPError, TokenRefreshRejected),
                operation="Gateway token refresh",
            )
        except RetryExhaustedError as e:
            logger.error("Gateway token refresh exhausted: %s", e.last_error)
            raise GatewayAuthFailedError(
                details={"attempts": e.attempts, "error": str(e.last_error)}
            ) from e

        await self._cache_token(token, expires_in)
        return token

    async def _refresh_access_token(self) -> Tuple[str, int]:
        response = await self.http_client.post(
            f"{self.settings.zoho_accounts_url}/oauth/v2/token",
            data={
                "refresh_token": self.settings.zoho_refresh_token,
                "client_id": self.settings.zoho_client_id,
                "client_secret": self.settings.zoho_client_secret,
                "grant_type": "refresh_token",
            },
        )
        if response.status_code >= 400:
            raise TokenRefreshRejected(f"token endpoint returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError:
            raise TokenRefreshRejected("token endpoint returned a non-JSON body")

        token = data.get("access_token")
        if not token:
            raise TokenRefreshRejected(data.get("error") or "no access_token in response")

        try:
            expires_in = int(data.get("expires_in", DEFAULT_TOKEN_LIFETIME_SECONDS))
        except (TypeError, ValueError):
            expires_in = DEFAULT_TOKEN_LIFETIME_SECONDS
        return token, expires_in

    async def _read_cached_token(self) -> Optional[str]:
        if self.token_cache is None:
            return None
        try:
            token = await self.token_cache.get(self.settings.gateway_token_cache_key)
        except redis.RedisError as e:
            logger.warning("Token cache read failed, refreshing instead: %s", e)
            return None
        if isinstance(token, bytes):
            token = token.decode()
        return token

    async def _cache_token(self, token: str, expires_in: int) -> None:
        if self.token_cache is None:
            return
        ttl = max(expires_in - TOKEN_EXPIRY_MARGIN_SECONDS, 1)
        try:
            await self.token_cache.set(self.settings.gateway_token_cache_key, token, ex=ttl)
        except redis.RedisError as e:
            logger.warning("Token cache write failed: %s", e)

    async def _invalidate_token(self) -> None:
        if self.token_cache is None:
            return
        try:
            await self.token_cache.delete(self.settings.gateway_token_cache_key)
        except redis.RedisError as e:
            logger.warning("Token cache invalidation failed: %s", e)

    async def create_payment_link(self, reference_id: str, amount: Decimal, description: str) -> PaymentLink:
        """
        Create a hosted payment link for `amount` (major units).

        The amount is sent as a two-decimal string so no binary float
        rounding reaches the gateway.

        `reference_id` is our payment id; the gateway echoes it back in
        webhooks.

        Raises:
            GatewayAuthFailedError: no access token could be obtained
            GatewayRequestFailedError: gateway unreachable or returned non-2xx
        """
        token = await self.get_access_token()

        payload = {
            "amount": str(to_decimal(amount)),
            "currency": self.settings.payment_currency,
            "description": description,
            "reference_id": reference_id,
        }
        if self.settings.payment_return_url:
            payload["return_url"] = self.settings.payment_return_url

        try:
            response = await self.http_client.post(
                f"{self.settings.zoho_api_url}/paymentlinks",
                params={"account_id": self.settings.zoho_account_id},
                headers={"Authorization": f"Zoho-oauthtoken {token}"},
                json=payload,
            )
        except httpx.HTTPError as e:
            logger.error("Payment link request for %s failed: %s", reference_id, e)
            raise GatewayRequestFailedError(
                "Payment gateway is unreachable", details={"error": str(e)}
            ) from e

        if not response.is_success:
            if response.status_code == 401:
                # Token revoked early; next call refreshes
                await self._invalidate_token()
            logger.error(
                "Payment link request for %s rejected: HTTP %s %s",
                reference_id, response.status_code, response.text[:500],
            )
            raise GatewayRequestFailedError(
                details={"status_code": response.status_code, "body": response.text[:500]}
            )

        try:
            data = response.json()
        except ValueError as e:
            raise GatewayRequestFailedError("Payment gateway returned a non-JSON body") from e

        link = data.get("payment_links") or data.get("payment_link") or data
        link_id = link.get("payment_link_id") or link.get("payment_id") or link.get("id")
        url = link.get("url") or link.get("payment_url")
        if not url:
            raise GatewayRequestFailedError(
                "Payment gateway response has no payment URL", details={"body": data}
            )

        logger.info("Created payment link %s for %s", link_id, reference_id)
        return PaymentLink(link_id=str(link_id) if link_id is not None else None, url=url, raw=data)
