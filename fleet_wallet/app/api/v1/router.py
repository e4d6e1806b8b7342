"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from fleet_wallet.app.api.v1.endpoints import admin_commission, balance, payments, wallet

router = APIRouter()

# Vendor endpoints
router.include_router(balance.router)
router.include_router(wallet.router)
router.include_router(payments.router)

# Admin endpoints
router.include_router(admin_commission.router)
router.include_router(wallet.admin_router)

# Gateway webhook (signature-authenticated)
router.include_router(payments.webhook_router)
