"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from chargepal.app.api.v1.endpoints import analytics, records, state, sync, vehicles

router = APIRouter()

# Ledger
router.include_router(vehicles.router)
router.include_router(records.router)
router.include_router(state.router)

# Remote sync
router.include_router(sync.router)

# Dashboard
router.include_router(analytics.router)
