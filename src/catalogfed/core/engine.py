"""Catalog Engine — Caller-facing entry point of catalogfed.

The engine wires the configured backend into the three core components:

  cached_federated_search → [ResultCache] → (miss) → [FederationCoordinator] → backend.search × N
  federated_search        →                          [FederationCoordinator] → backend.search × N
  update_price_window     → [PriceWindowUpdater] → backend.get_document / backend.conditional_put

Cached results are not invalidated by updates; a write becomes visible to
cached queries within the cache TTL.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from catalogfed.backends.base.backend import BackendHealth, DocumentBackend
from catalogfed.backends.base.registry import BackendRegistry
from catalogfed.backends.memory.backend import InMemoryBackend
from catalogfed.backends.opensearch.backend import OpenSearchBackend
from catalogfed.cache.result_cache import ResultCache, federation_key
from catalogfed.core.federation import FederationCoordinator, normalize_collections
from catalogfed.core.updater import PriceWindowUpdater
from catalogfed.models.price import PriceWindow, UpdateResult
from catalogfed.models.query import FederatedQuery, FederationMode
from catalogfed.models.result import FederatedResult

if TYPE_CHECKING:
    from catalogfed.config.settings import Settings

logger = logging.getLogger(__name__)

_BACKEND_CLASSES: dict[str, type[DocumentBackend]] = {
    "opensearch": OpenSearchBackend,
    "memory": InMemoryBackend,
}


class CatalogEngine:
    """Federated search and price window updates over one document backend.

    Attributes:
        settings: Application configuration.
        backend_registry: Registry holding the active backend.
        cache: TTL cache for federated results.
    """

    def __init__(self, settings: Settings, backend: DocumentBackend | None = None) -> None:
        self.settings = settings
        self.backend_registry = BackendRegistry()
        for name, backend_class in _BACKEND_CLASSES.items():
            self.backend_registry.register(name, backend_class)
        self.cache = ResultCache(
            default_ttl=settings.cache.ttl_seconds,
            max_entries=settings.cache.max_entries,
        )
        self._coordinator: FederationCoordinator | None = None
        self._updater: PriceWindowUpdater | None = None
        if backend is not None:
            self.backend_registry.add_instance(backend.name, backend)
            self._bind(backend)

    async def initialize(self) -> None:
        """Create and connect the configured backend unless one was injected."""
        if self._coordinator is None:
            cfg = self.settings.backend
            kwargs: dict[str, Any] = {}
            if cfg.kind == "opensearch":
                kwargs = {
                    "hosts": cfg.hosts,
                    "username": cfg.username,
                    "password": cfg.password,
                    "verify_certs": cfg.verify_certs,
                    "timeout": cfg.timeout_seconds,
                    "refresh": cfg.refresh,
                }
            kwargs.update(cfg.extra)
            backend = await self.backend_registry.initialize_backend(cfg.kind, **kwargs)
            self._bind(backend)
        logger.info("catalogfed engine initialized")

    async def shutdown(self) -> None:
        """Shut down the backend and drop cached results."""
        await self.backend_registry.shutdown_all()
        self.cache.clear()
        self._coordinator = None
        self._updater = None
        logger.info("catalogfed engine shut down")

    def _bind(self, backend: DocumentBackend) -> None:
        fed = self.settings.federation
        upd = self.settings.update
        self._coordinator = FederationCoordinator(
            backend,
            default_mode=fed.default_mode,
            deadline_seconds=fed.deadline_seconds,
            max_concurrency=fed.max_concurrency,
        )
        self._updater = PriceWindowUpdater(
            backend,
            max_attempts=upd.max_attempts,
            backoff_base_seconds=upd.backoff_base_seconds,
            backoff_cap_seconds=upd.backoff_cap_seconds,
            backoff_jitter=upd.backoff_jitter,
            deadline_seconds=upd.deadline_seconds,
            field=upd.price_windows_field,
        )

    @property
    def coordinator(self) -> FederationCoordinator:
        if self._coordinator is None:
            raise RuntimeError("catalogfed engine not initialized. Call initialize() first.")
        return self._coordinator

    @property
    def updater(self) -> PriceWindowUpdater:
        if self._updater is None:
            raise RuntimeError("catalogfed engine not initialized. Call initialize() first.")
        return self._updater

    # ──────────────────────────────────────────────────────────────────────
    # Federated search
    # ──────────────────────────────────────────────────────────────────────

    async def federated_search(
        self,
        query: FederatedQuery,
        collections: Iterable[str],
        mode: FederationMode | str | None = None,
        deadline: float | None = None,
    ) -> FederatedResult:
        """Run ``query`` against every collection and merge the results (uncached)."""
        return await self.coordinator.federated_search(query, collections, mode=mode, deadline=deadline)

    async def cached_federated_search(
        self,
        query: FederatedQuery,
        collections: Iterable[str],
        ttl: float | None = None,
        mode: FederationMode | str | None = None,
        deadline: float | None = None,
    ) -> FederatedResult:
        """Like ``federated_search``, memoized for ``ttl`` seconds.

        Identical queries over the same collection set (in any order) share
        one entry.  Partial best-effort results are returned but never cached.
        """
        names = normalize_collections(collections)
        resolved_mode = FederationMode(mode) if mode is not None else self.coordinator.default_mode
        if not self.settings.cache.enabled:
            return await self.federated_search(query, names, mode=resolved_mode, deadline=deadline)

        return await self.cache.get_or_call(
            federation_key(query, names, resolved_mode),
            lambda: self.federated_search(query, names, mode=resolved_mode, deadline=deadline),
            ttl=ttl,
            should_cache=lambda result: not result.partial,
        )

    # ──────────────────────────────────────────────────────────────────────
    # Updates
    # ──────────────────────────────────────────────────────────────────────

    async def update_price_window(
        self,
        collection: str,
        document_id: str,
        new_window: PriceWindow | Mapping[str, Any],
        max_attempts: int | None = None,
    ) -> UpdateResult:
        """Upsert a price window into a product with optimistic concurrency."""
        return await self.updater.update_price_window(collection, document_id, new_window, max_attempts=max_attempts)

    # ──────────────────────────────────────────────────────────────────────
    # Health
    # ──────────────────────────────────────────────────────────────────────

    async def health(self) -> dict[str, BackendHealth]:
        """Health of every active backend."""
        return await self.backend_registry.health_check_all()
