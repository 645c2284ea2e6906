"""Tests for the price window endpoint PUT /v1/collections/{c}/products/{id}/price-windows."""

from __future__ import annotations

import asyncio
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from catalogfed.api.app import create_app
from catalogfed.api.deps import set_engine
from catalogfed.backends.base.exceptions import BackendUnavailableError
from catalogfed.backends.memory.backend import InMemoryBackend
from catalogfed.config.settings import Settings
from catalogfed.core.engine import CatalogEngine
from catalogfed.core.exceptions import InvalidArgumentError, UpdateConflictError

URL = "/v1/collections/products-de/products/BOLTON-TRUTV-TCM/price-windows"

# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def backend(product_source: dict[str, Any]) -> InMemoryBackend:
    backend = InMemoryBackend()
    asyncio.run(backend.put_document("products-de", "BOLTON-TRUTV-TCM", product_source))
    return backend


@pytest.fixture
def engine(settings: Settings, backend: InMemoryBackend) -> CatalogEngine:
    return CatalogEngine(settings, backend=backend)


@pytest.fixture
def client(settings: Settings, engine: CatalogEngine) -> TestClient:
    app = create_app(settings)
    set_engine(engine)
    yield TestClient(app)
    set_engine(None)


# ══════════════════════════════════════════════════════════════════════════════
# PUT price-windows
# ══════════════════════════════════════════════════════════════════════════════


class TestUpsertPriceWindow:
    def test_append_then_replace(self, client: TestClient) -> None:
        first = client.put(
            URL,
            json={"billingReferenceId": "2", "startDate": "2024-04-02", "endDate": "2050-12-31"},
        )
        second = client.put(URL, json={"billingReferenceId": "2", "amount": 9.99})

        assert first.status_code == 200
        assert first.json()["action"] == "appended"
        assert first.json()["index"] == 1
        assert second.status_code == 200
        assert second.json()["action"] == "replaced"
        assert second.json()["index"] == 1
        assert second.json()["window_count"] == 2

    def test_stored_document(self, client: TestClient, backend: InMemoryBackend) -> None:
        client.put(URL, json={"billingReferenceId": "1", "amount": 5.49, "channel": "web"})

        doc = asyncio.run(backend.get_document("products-de", "BOLTON-TRUTV-TCM"))
        assert doc.source["priceWindows"] == [{"billingReferenceId": "1", "amount": 5.49, "channel": "web"}]

    def test_unknown_product_is_404(self, client: TestClient) -> None:
        resp = client.put(
            "/v1/collections/products-de/products/NOPE/price-windows", json={"billingReferenceId": "1"}
        )
        assert resp.status_code == 404

    def test_invalid_body_is_422(self, client: TestClient) -> None:
        resp = client.put(URL, json={"billingReferenceId": "1", "startDate": "2025-02-01", "endDate": "2025-01-01"})
        assert resp.status_code == 422

    def test_attempt_budget_validated(self, client: TestClient) -> None:
        resp = client.put(URL, params={"max_attempts": 0}, json={"billingReferenceId": "1"})
        assert resp.status_code == 422

    def test_attempt_budget_forwarded(self, client: TestClient, engine: CatalogEngine) -> None:
        with patch.object(engine, "update_price_window", new_callable=AsyncMock) as m:
            m.side_effect = UpdateConflictError("products-de", "BOLTON-TRUTV-TCM", 2)
            resp = client.put(URL, params={"max_attempts": 2}, json={"billingReferenceId": "1"})

        assert resp.status_code == 409
        assert m.call_args.kwargs["max_attempts"] == 2

    def test_invalid_argument_is_400(self, client: TestClient, engine: CatalogEngine) -> None:
        error = InvalidArgumentError("Document field 'priceWindows' is not a list of price windows")
        with patch.object(engine, "update_price_window", new_callable=AsyncMock, side_effect=error):
            resp = client.put(URL, json={"billingReferenceId": "1"})
        assert resp.status_code == 400

    def test_backend_unavailable_is_503(self, client: TestClient, engine: CatalogEngine) -> None:
        error = BackendUnavailableError("cluster red")
        with patch.object(engine, "update_price_window", new_callable=AsyncMock, side_effect=error):
            resp = client.put(URL, json={"billingReferenceId": "1"})
        assert resp.status_code == 503
