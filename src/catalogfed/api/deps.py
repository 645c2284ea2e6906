"""API dependencies — Dependency injection for FastAPI endpoints."""

from __future__ import annotations

from catalogfed.core.engine import CatalogEngine

# Global engine instance (set during application lifespan)
_engine: CatalogEngine | None = None


def set_engine(engine: CatalogEngine | None) -> None:
    """Set the global engine instance (called during app lifespan)."""
    global _engine
    _engine = engine


def get_engine() -> CatalogEngine:
    """Get the global catalogfed engine instance.

    Raises:
        RuntimeError: If the engine is not initialized.
    """
    if _engine is None:
        raise RuntimeError("catalogfed engine not initialized. Is the server running?")
    return _engine
