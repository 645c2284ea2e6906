"""Integration test fixtures — A Docker-based OpenSearch cluster with sample products.

Expects OpenSearch to be running, e.g.:
    docker run -d -p 9201:9200 -e discovery.type=single-node \
        -e DISABLE_SECURITY_PLUGIN=true opensearchproject/opensearch:2

Seed data is loaded into the product indices on first use.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

import httpx
import pytest

OPENSEARCH_HOST = "http://localhost:9201"

PRODUCT_MAPPING: dict[str, Any] = {
    "mappings": {
        "properties": {
            "name": {"type": "text"},
            "type": {"type": "keyword"},
            "popularity": {"type": "integer"},
            "priceWindows": {
                "type": "nested",
                "properties": {
                    "billingReferenceId": {"type": "keyword"},
                    "startDate": {"type": "date"},
                    "endDate": {"type": "date"},
                    "startTimestamp": {"type": "long"},
                    "endTimestamp": {"type": "long"},
                    "amount": {"type": "double"},
                    "currency": {"type": "keyword"},
                },
            },
        }
    }
}

MOCK_PRODUCTS: dict[str, list[dict[str, Any]]] = {
    "it-products-de": [
        {
            "id": "BOLTON-TRUTV-TCM",
            "name": "TruTV + TCM Bolt-on",
            "type": "BOLTON",
            "popularity": 7,
            "priceWindows": [
                {"billingReferenceId": "1", "startDate": "2024-02-07", "endDate": "2050-12-31", "amount": 4.99}
            ],
        },
        {"id": "BASE-M", "name": "Base package M", "type": "BASE", "popularity": 9, "priceWindows": []},
    ],
    "it-products-at": [
        {"id": "BOLTON-HBO", "name": "HBO Bolt-on", "type": "BOLTON", "popularity": 4, "priceWindows": []},
    ],
}


def _wait_for_service(url: str, timeout: float = 120.0) -> bool:
    """Block until *url* returns HTTP 200, or timeout."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        try:
            r = httpx.get(url, timeout=30)
            if r.status_code == 200:
                return True
        except httpx.HTTPError:
            pass
        time.sleep(2)
    return False


async def _seed_opensearch(host: str = OPENSEARCH_HOST) -> None:
    async with httpx.AsyncClient(base_url=host, timeout=30) as client:
        for index, products in MOCK_PRODUCTS.items():
            await client.delete(f"/{index}", params={"ignore_unavailable": "true"})
            resp = await client.put(f"/{index}", json=PRODUCT_MAPPING)
            resp.raise_for_status()

            for product in products:
                doc = {k: v for k, v in product.items() if k != "id"}
                resp = await client.put(f"/{index}/_doc/{product['id']}", json=doc)
                resp.raise_for_status()

            await client.post(f"/{index}/_refresh")


@pytest.fixture
def opensearch_ready():
    """Ensure OpenSearch is running and freshly seeded."""
    if not _wait_for_service(OPENSEARCH_HOST, timeout=10.0):
        pytest.skip(f"OpenSearch not available at {OPENSEARCH_HOST}")
    asyncio.run(_seed_opensearch())
    return OPENSEARCH_HOST
