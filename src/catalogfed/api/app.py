"""FastAPI application factory and lifecycle management.

Run with any ASGI server, e.g.::

    uvicorn catalogfed.api.app:create_app --factory --port 8080
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from catalogfed import __version__
from catalogfed.api.deps import set_engine
from catalogfed.api.v1.router import router as v1_router
from catalogfed.config.settings import Settings
from catalogfed.core.engine import CatalogEngine
from catalogfed.observability.logging import setup_logging

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Application settings. If None, loads ``catalogfed-config.yaml``
            when present, otherwise the environment.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        yaml_path = Path("catalogfed-config.yaml")
        if yaml_path.exists():
            settings = Settings.from_yaml(yaml_path)
        else:
            settings = Settings()

    setup_logging(settings.observability)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Manage application lifecycle (startup/shutdown)."""
        logger.info("Starting catalogfed v%s (backend=%s)", __version__, settings.backend.kind)

        engine = CatalogEngine(settings)
        await engine.initialize()
        set_engine(engine)

        app.state.settings = settings
        app.state.engine = engine

        yield

        logger.info("Shutting down catalogfed...")
        await engine.shutdown()
        set_engine(None)
        logger.info("catalogfed shutdown complete")

    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        description=(
            "Federated search across catalog collections and concurrency-safe "
            "price window updates on top of a managed search backend."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(v1_router, prefix="/v1")

    return app
