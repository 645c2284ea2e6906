"""Health check endpoints — Service and backend health monitoring."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from catalogfed import __version__
from catalogfed.api.deps import get_engine
from catalogfed.backends.base.backend import BackendHealth
from catalogfed.core.engine import CatalogEngine

router = APIRouter()


class HealthResponse(BaseModel):
    """Service health check response."""

    status: str = Field(description="Health status (e.g. 'healthy')")
    version: str = Field(description="catalogfed version")
    service: str = Field(description="Service name ('catalogfed')")
    backend_kind: str = Field(description="Configured backend implementation")
    active_backends: list[str] = Field(description="Currently active backend names")
    cached_results: int = Field(description="Entries currently held by the result cache")


class BackendHealthResponse(BaseModel):
    """Per-backend health check response."""

    backends: dict[str, BackendHealth] = Field(description="Map of backend name to its health status")


@router.get("/health", response_model=HealthResponse, summary="Service Health Check")
async def health_check(engine: CatalogEngine = Depends(get_engine)) -> HealthResponse:
    return HealthResponse(
        status="healthy",
        version=__version__,
        service="catalogfed",
        backend_kind=engine.settings.backend.kind,
        active_backends=engine.backend_registry.active_backends,
        cached_results=len(engine.cache),
    )


@router.get("/health/backends", response_model=BackendHealthResponse, summary="Backend Health Check")
async def backend_health(engine: CatalogEngine = Depends(get_engine)) -> BackendHealthResponse:
    return BackendHealthResponse(backends=await engine.health())
