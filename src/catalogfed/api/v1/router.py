"""API v1 Router — Federated search, price window and health endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from catalogfed.api.v1.endpoints.health import router as health_router
from catalogfed.api.v1.endpoints.prices import router as prices_router
from catalogfed.api.v1.endpoints.search import router as search_router

router = APIRouter(tags=["v1"])
router.include_router(search_router)
router.include_router(prices_router)
router.include_router(health_router)
