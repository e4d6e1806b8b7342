"""
FastAPI Application Entry Point.

This is the main application file for the Fleet Wallet Backend.
"""

from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError

from fleet_wallet.app.core.config import settings
from fleet_wallet.app.api.v1.router import router as api_v1_router
from fleet_wallet.app.db.session import Base, create_engine_from_settings, create_session_factory
from fleet_wallet.app.core.redis_client import create_redis_client, ping_redis
from fleet_wallet.app.core.observability import ObservabilityMiddleware, configure_logging, logger
from fleet_wallet.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from fleet_wallet.app.models.vendor import Vendor
from fleet_wallet.app.models.driver import Driver
from fleet_wallet.app.models.trip_completion import TRIP_COMPLETION_SOURCES
from fleet_wallet.app.models.commission_credit import CommissionCredit
from fleet_wallet.app.models.wallet import Wallet
from fleet_wallet.app.models.wallet_transaction import WalletTransaction
from fleet_wallet.app.models.payment_transaction import PaymentTransaction
from fleet_wallet.app.models.audit_log import AuditLog
from fleet_wallet.app.models.reconciliation_item import ReconciliationItem


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Builds the database engine, session factory, Redis client and the
       shared gateway HTTP client, and stores them on `app.state`.
    2. Creates database tables on startup.
    3. Disposes of everything on shutdown.
    """
    configure_logging(settings.log_level)

    engine = create_engine_from_settings(settings)
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.redis = create_redis_client(settings)
    app.state.http_client = httpx.AsyncClient(timeout=settings.gateway_timeout_seconds)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info(
        "Started %s (gateway mode: %s)",
        settings.app_name, "live" if settings.gateway_live_mode else "test",
    )
    if settings.webhook_signature_verification_disabled:
        logger.warning("Webhook signature verification is DISABLED")

    try:
        yield
    finally:
        await app.state.http_client.aclose()
        await app.state.redis.aclose()
        await engine.dispose()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Vendor wallet, daily commission reconciliation and payment gateway webhooks",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """
    Health check endpoint.

    Returns:
        dict: Status and application information
    """
    redis_client = getattr(request.app.state, "redis", None)
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "gateway_mode": "live" if settings.gateway_live_mode else "test",
        "redis": await ping_redis(redis_client) if redis_client is not None else False,
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")
