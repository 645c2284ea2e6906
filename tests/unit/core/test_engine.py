"""Tests for the CatalogEngine entry point and its result caching."""

from __future__ import annotations

import pytest

from catalogfed.backends.base.exceptions import BackendUnavailableError
from catalogfed.backends.memory.backend import InMemoryBackend
from catalogfed.cache.result_cache import ResultCache
from catalogfed.config.settings import Settings
from catalogfed.core.engine import CatalogEngine
from catalogfed.models.price import UpdateAction
from catalogfed.models.query import FederatedQuery, FederationMode


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def engine(settings: Settings, stub_backend, clock: FakeClock) -> CatalogEngine:
    engine = CatalogEngine(settings, backend=stub_backend)
    engine.cache = ResultCache(default_ttl=30.0, clock=clock)
    return engine


@pytest.fixture
def query() -> FederatedQuery:
    return FederatedQuery(body={"query": {"match_all": {}}})


# ══════════════════════════════════════════════════════════════════════════════
# Lifecycle
# ══════════════════════════════════════════════════════════════════════════════


class TestEngineLifecycle:
    async def test_initialize_builds_configured_backend(self, settings: Settings) -> None:
        engine = CatalogEngine(settings)
        await engine.initialize()

        assert engine.backend_registry.active_backends == ["memory"]
        assert isinstance(engine.backend_registry.get("memory"), InMemoryBackend)
        health = await engine.health()
        assert health["memory"].status == "healthy"

        await engine.shutdown()
        assert engine.backend_registry.active_backends == []

    async def test_uninitialized_engine_raises(self, settings: Settings, query: FederatedQuery) -> None:
        engine = CatalogEngine(settings)
        with pytest.raises(RuntimeError, match="not initialized"):
            await engine.federated_search(query, ["products-de"])
        with pytest.raises(RuntimeError, match="not initialized"):
            await engine.update_price_window("products-de", "x", {"billingReferenceId": "1"})

    async def test_injected_backend_is_used(self, engine: CatalogEngine, stub_backend) -> None:
        await engine.initialize()
        assert engine.backend_registry.active_backends == ["stub"]
        assert engine.coordinator.backend is stub_backend

    async def test_settings_flow_into_components(self, stub_backend) -> None:
        settings = Settings(
            _env_file=None,  # type: ignore[call-arg]
            backend={"kind": "memory"},
            federation={"default_mode": "best_effort", "max_concurrency": 3},
            update={"max_attempts": 9, "price_windows_field": "prices"},
        )
        engine = CatalogEngine(settings, backend=stub_backend)

        assert engine.coordinator.default_mode is FederationMode.BEST_EFFORT
        assert engine.coordinator.max_concurrency == 3
        assert engine.updater.max_attempts == 9
        assert engine.updater.field == "prices"


# ══════════════════════════════════════════════════════════════════════════════
# Cached federated search
# ══════════════════════════════════════════════════════════════════════════════


class TestCachedFederatedSearch:
    async def test_repeat_within_ttl_served_from_cache(
        self, engine: CatalogEngine, stub_backend, make_results, query
    ) -> None:
        stub_backend.responses = {"products-de": make_results(1.0), "products-at": make_results(2.0)}

        first = await engine.cached_federated_search(query, ["products-de", "products-at"], ttl=30)
        second = await engine.cached_federated_search(query, ["products-de", "products-at"], ttl=30)

        assert first == second
        assert sorted(stub_backend.calls) == ["products-at", "products-de"]

    async def test_expired_entry_recomputed(
        self, engine: CatalogEngine, stub_backend, make_results, query, clock: FakeClock
    ) -> None:
        stub_backend.responses = {"products-de": make_results(1.0)}

        await engine.cached_federated_search(query, ["products-de"], ttl=30)
        clock.advance(31)
        await engine.cached_federated_search(query, ["products-de"], ttl=30)

        assert stub_backend.calls == ["products-de", "products-de"]

    async def test_collection_order_does_not_matter(
        self, engine: CatalogEngine, stub_backend, make_results, query
    ) -> None:
        stub_backend.responses = {"a": make_results(1.0), "b": make_results(1.0)}

        await engine.cached_federated_search(query, ["a", "b"])
        await engine.cached_federated_search(query, ["b", "a", "a"])

        assert len(stub_backend.calls) == 2

    async def test_different_query_is_a_different_entry(
        self, engine: CatalogEngine, stub_backend, make_results, query
    ) -> None:
        stub_backend.responses = {"a": make_results(1.0)}

        await engine.cached_federated_search(query, ["a"])
        await engine.cached_federated_search(FederatedQuery(body={"query": {"term": {"type": "BOLTON"}}}), ["a"])
        await engine.cached_federated_search(query, ["a"], mode=FederationMode.BEST_EFFORT)

        assert len(stub_backend.calls) == 3

    async def test_partial_results_not_cached(
        self, engine: CatalogEngine, stub_backend, make_results, query
    ) -> None:
        stub_backend.responses = {"ok": make_results(1.0), "bad": BackendUnavailableError("down")}

        first = await engine.cached_federated_search(query, ["ok", "bad"], mode="best_effort")
        await engine.cached_federated_search(query, ["ok", "bad"], mode="best_effort")

        assert first.partial is True
        assert stub_backend.calls.count("ok") == 2
        assert len(engine.cache) == 0

    async def test_zero_ttl_bypasses_cache(self, engine: CatalogEngine, stub_backend, make_results, query) -> None:
        stub_backend.responses = {"a": make_results(1.0)}

        await engine.cached_federated_search(query, ["a"], ttl=0)
        await engine.cached_federated_search(query, ["a"], ttl=0)

        assert len(stub_backend.calls) == 2

    async def test_disabled_cache(self, settings: Settings, stub_backend, make_results, query) -> None:
        settings.cache.enabled = False
        engine = CatalogEngine(settings, backend=stub_backend)
        stub_backend.responses = {"a": make_results(1.0)}

        await engine.cached_federated_search(query, ["a"])
        await engine.cached_federated_search(query, ["a"])

        assert len(stub_backend.calls) == 2
        assert len(engine.cache) == 0

    async def test_uncached_search_always_hits_backend(
        self, engine: CatalogEngine, stub_backend, make_results, query
    ) -> None:
        stub_backend.responses = {"a": make_results(1.0)}

        await engine.federated_search(query, ["a"])
        await engine.federated_search(query, ["a"])

        assert len(stub_backend.calls) == 2

    async def test_shutdown_clears_cache(self, engine: CatalogEngine, stub_backend, make_results, query) -> None:
        stub_backend.responses = {"a": make_results(1.0)}
        await engine.cached_federated_search(query, ["a"])
        assert len(engine.cache) == 1

        await engine.shutdown()

        assert len(engine.cache) == 0


# ══════════════════════════════════════════════════════════════════════════════
# Updates through the engine
# ══════════════════════════════════════════════════════════════════════════════


class TestEngineUpdates:
    async def test_update_visible_to_uncached_search(
        self, settings: Settings, memory_backend: InMemoryBackend
    ) -> None:
        engine = CatalogEngine(settings, backend=memory_backend)
        ids_query = FederatedQuery(body={"query": {"ids": {"values": ["BOLTON-TRUTV-TCM"]}}})

        result = await engine.update_price_window(
            "products-de",
            "BOLTON-TRUTV-TCM",
            {"billingReferenceId": "2", "startDate": "2024-04-02", "endDate": "2050-12-31"},
        )
        found = await engine.federated_search(ids_query, ["products-de"])

        assert result.action is UpdateAction.APPENDED
        windows = found.hits[0].source["priceWindows"]
        assert [w["billingReferenceId"] for w in windows] == ["1", "2"]
