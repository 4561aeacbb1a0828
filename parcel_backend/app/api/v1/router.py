"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from parcel_backend.app.api.v1.endpoints import orders, webhooks, tracking, payments, dispatch

router = APIRouter()

# Booking and order lookup
router.include_router(orders.router)

# Provider callbacks
router.include_router(webhooks.router)
router.include_router(payments.router)

# Customer tracking
router.include_router(tracking.router)

# Dispatch retry
router.include_router(dispatch.router)
