"""Backend Registry — Manages registration and retrieval of document backends.

The registry maps backend names to classes and keeps the initialized
instances, so the engine can build its backend from configuration and
health-check or shut down everything it started.
"""

from __future__ import annotations

import logging
from typing import Any

from catalogfed.backends.base.backend import BackendHealth, DocumentBackend

logger = logging.getLogger(__name__)


class BackendNotFoundError(Exception):
    """Raised when a requested backend is not registered or not initialized."""


class BackendRegistry:
    """Registry for managing document backend instances.

    Example:
        >>> registry = BackendRegistry()
        >>> registry.register("opensearch", OpenSearchBackend)
        >>> await registry.initialize_backend("opensearch", hosts=[...])
        >>> backend = registry.get("opensearch")
    """

    def __init__(self) -> None:
        self._classes: dict[str, type[DocumentBackend]] = {}
        self._instances: dict[str, DocumentBackend] = {}

    def register(self, name: str, backend_class: type[DocumentBackend]) -> None:
        """Register a backend class under ``name``."""
        if name in self._classes:
            logger.warning("Overwriting existing backend registration: %s", name)
        self._classes[name] = backend_class
        logger.info("Registered backend: %s", name)

    def add_instance(self, name: str, backend: DocumentBackend) -> None:
        """Track an already-initialized backend instance."""
        self._instances[name] = backend

    async def initialize_backend(self, name: str, **kwargs: Any) -> DocumentBackend:
        """Create and initialize a backend instance.

        Args:
            name: The registered backend name.
            **kwargs: Configuration parameters passed to the backend constructor.

        Returns:
            The initialized backend instance.

        Raises:
            BackendNotFoundError: If no backend is registered under this name.
        """
        if name not in self._classes:
            raise BackendNotFoundError(
                f"No backend registered with name '{name}'. "
                f"Available backends: {list(self._classes.keys())}"
            )

        backend = self._classes[name](**kwargs)
        await backend.initialize()
        self._instances[name] = backend
        logger.info("Initialized backend: %s", name)
        return backend

    def get(self, name: str) -> DocumentBackend:
        """Get an initialized backend instance by name.

        Raises:
            BackendNotFoundError: If the backend is not initialized.
        """
        if name not in self._instances:
            raise BackendNotFoundError(
                f"Backend '{name}' is not initialized. Call initialize_backend() first."
            )
        return self._instances[name]

    def get_default(self) -> DocumentBackend:
        """Get the first initialized backend.

        Raises:
            BackendNotFoundError: If no backends are initialized.
        """
        if not self._instances:
            raise BackendNotFoundError("No backends are initialized.")
        return next(iter(self._instances.values()))

    async def health_check_all(self) -> dict[str, BackendHealth]:
        """Run health checks on all initialized backends."""
        results: dict[str, BackendHealth] = {}
        for name, backend in self._instances.items():
            try:
                results[name] = await backend.health_check()
            except Exception as e:
                results[name] = BackendHealth(status="unhealthy", message=str(e))
        return results

    async def shutdown_all(self) -> None:
        """Gracefully shut down all initialized backends."""
        for name, backend in self._instances.items():
            try:
                await backend.shutdown()
                logger.info("Shut down backend: %s", name)
            except Exception:
                logger.warning("Error shutting down backend: %s", name, exc_info=True)
        self._instances.clear()

    @property
    def registered_backends(self) -> list[str]:
        """List all registered backend names."""
        return list(self._classes.keys())

    @property
    def active_backends(self) -> list[str]:
        """List all initialized backend names."""
        return list(self._instances.keys())
