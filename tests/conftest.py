"""Shared test fixtures and configuration."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from catalogfed.backends.base.backend import BackendHealth, DocumentBackend, RawHit, RawResults
from catalogfed.backends.memory.backend import InMemoryBackend
from catalogfed.config.settings import Settings
from catalogfed.models.document import ConcurrencyToken, VersionedDocument
from catalogfed.models.query import FederatedQuery

PRODUCT_ID = "BOLTON-TRUTV-TCM"
PRODUCTS = "products-de"


@pytest.fixture
def settings() -> Settings:
    """Create a test Settings instance backed by the in-memory store."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        debug=True,
        backend={"kind": "memory"},
        update={"backoff_base_seconds": 0.0, "backoff_cap_seconds": 0.0},
        observability={"log_format": "console"},
    )


@pytest.fixture
def product_source() -> dict[str, Any]:
    """A bundle product with one existing price window."""
    return {
        "name": "TruTV + TCM Bolt-on",
        "type": "BOLTON",
        "priceWindows": [
            {
                "billingReferenceId": "1",
                "startDate": "2024-02-07",
                "endDate": "2050-12-31",
                "amount": 4.99,
                "currency": "EUR",
            }
        ],
    }


@pytest.fixture
async def memory_backend(product_source: dict[str, Any]) -> InMemoryBackend:
    """In-memory backend seeded with the sample product."""
    backend = InMemoryBackend()
    await backend.initialize()
    await backend.put_document(PRODUCTS, PRODUCT_ID, product_source)
    return backend


class StubBackend(DocumentBackend):
    """Scriptable backend for federation tests.

    ``responses`` maps a collection to the ``RawResults`` (or exception) its
    search returns; ``delays`` holds per-collection latencies in seconds.
    """

    def __init__(self) -> None:
        self.responses: dict[str, RawResults | BaseException] = {}
        self.delays: dict[str, float] = {}
        self.calls: list[str] = []
        self.cancelled: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def name(self) -> str:
        return "stub"

    async def initialize(self) -> None:
        pass

    async def shutdown(self) -> None:
        pass

    async def search(self, collection: str, query: FederatedQuery) -> RawResults:
        self.calls.append(collection)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(collection, 0))
        except asyncio.CancelledError:
            self.cancelled.append(collection)
            raise
        finally:
            self.in_flight -= 1
        response = self.responses[collection]
        if isinstance(response, BaseException):
            raise response
        return response

    async def get_document(self, collection: str, doc_id: str) -> VersionedDocument:
        raise NotImplementedError

    async def conditional_put(
        self,
        collection: str,
        doc_id: str,
        document: dict[str, Any],
        token: ConcurrencyToken,
    ) -> ConcurrencyToken:
        raise NotImplementedError

    async def collection_exists(self, collection: str) -> bool:
        return collection in self.responses

    async def create_collection(self, collection: str, schema: dict[str, Any] | None = None) -> None:
        raise NotImplementedError

    async def health_check(self) -> BackendHealth:
        return BackendHealth(status="healthy")


def _make_results(*scores: float, total: int | None = None, took_ms: int = 5, prefix: str = "doc") -> RawResults:
    """Backend results whose hits carry ``scores`` in backend rank order."""
    return RawResults(
        total_hits=len(scores) if total is None else total,
        hits=[RawHit(id=f"{prefix}-{i}", score=s, source={"rank": i}) for i, s in enumerate(scores)],
        took_ms=took_ms,
    )


@pytest.fixture
def stub_backend() -> StubBackend:
    return StubBackend()


@pytest.fixture
def make_results():
    """Factory fixture for scripted backend results."""
    return _make_results
