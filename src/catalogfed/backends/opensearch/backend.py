"""OpenSearch backend — Federated search and optimistic writes on OpenSearch (v2+).

Uses ``opensearch-py`` (async).  Optimistic concurrency relies on the
``if_seq_no`` / ``if_primary_term`` preconditions of the index API: the
cluster rejects a write with HTTP 409 when the document moved on since it
was read, which is surfaced as ``VersionConflictError``.

The async client needs ``aiohttp``::

    pip install "opensearch-py[async]"
"""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime
from typing import Any

from opensearchpy.exceptions import (
    ConflictError,
    ConnectionTimeout,
    NotFoundError,
    TransportError,
)
from opensearchpy.exceptions import ConnectionError as TransportConnectionError

from catalogfed.backends.base.backend import BackendHealth, DocumentBackend, RawHit, RawResults
from catalogfed.backends.base.exceptions import (
    BackendError,
    BackendTimeoutError,
    BackendUnavailableError,
    CollectionNotFoundError,
    ConfigurationError,
    DocumentNotFoundError,
    QueryError,
    VersionConflictError,
)
from catalogfed.models.document import ConcurrencyToken, VersionedDocument
from catalogfed.models.query import FederatedQuery

logger = logging.getLogger(__name__)

_UNAVAILABLE_STATUSES = {429, 502, 503, 504}


class OpenSearchBackend(DocumentBackend):
    """Document backend for OpenSearch (v2+).

    Args:
        hosts: List of OpenSearch node URLs.
        username: Optional HTTP basic-auth username.
        password: Optional HTTP basic-auth password.
        verify_certs: Whether to verify TLS certificates.
        timeout: Per-request timeout in seconds.
        refresh: Refresh policy for writes (``"false"``, ``"true"``, ``"wait_for"``).
        **kwargs: Additional keyword arguments forwarded to ``AsyncOpenSearch``.
    """

    def __init__(
        self,
        hosts: list[str] | None = None,
        username: str | None = None,
        password: str | None = None,
        verify_certs: bool = True,
        timeout: float = 10.0,
        refresh: str = "false",
        **kwargs: Any,
    ) -> None:
        self._hosts = hosts or ["https://localhost:9200"]
        self._username = username
        self._password = password
        self._verify_certs = verify_certs
        self._timeout = timeout
        self._refresh = refresh
        self._extra_kwargs = kwargs
        self._client: Any = None

    @property
    def name(self) -> str:
        return "opensearch"

    async def initialize(self) -> None:
        """Create and verify the ``AsyncOpenSearch`` client."""
        try:
            from opensearchpy import AsyncOpenSearch
        except ImportError as e:
            raise ConfigurationError(
                "The async OpenSearch client requires aiohttp.  Install with: pip install 'opensearch-py[async]'"
            ) from e

        client_kwargs: dict[str, Any] = {
            "hosts": self._hosts,
            "verify_certs": self._verify_certs,
            "ssl_show_warn": False,
            "timeout": self._timeout,
        }
        if self._username and self._password:
            client_kwargs["http_auth"] = (self._username, self._password)

        client_kwargs.update(self._extra_kwargs)

        self._client = AsyncOpenSearch(**client_kwargs)
        try:
            info = await self._client.info()
        except TransportError as e:
            raise BackendUnavailableError(f"Failed to connect to OpenSearch: {e}") from e
        version = info.get("version", {}).get("number", "unknown")
        cluster = info.get("cluster_name", "unknown")
        logger.info("Connected to OpenSearch cluster: %s (v%s)", cluster, version)

    async def shutdown(self) -> None:
        """Close the OpenSearch client."""
        if self._client:
            await self._client.close()
            self._client = None

    # ── Search ───────────────────────────────────────────────────────────

    async def search(self, collection: str, query: FederatedQuery) -> RawResults:
        """Execute ``query`` against one index."""
        client = self._require_client()

        start = time.monotonic()
        try:
            response = await client.search(index=collection, body=query.request_body())
        except TransportError as e:
            raise self._translate(e, collection) from e
        took_ms = int((time.monotonic() - start) * 1000)

        hits = response.get("hits", {})
        total = hits.get("total", 0)
        if isinstance(total, dict):
            total = total.get("value", 0)

        return RawResults(
            total_hits=total,
            hits=[
                RawHit(id=str(h.get("_id", "")), score=h.get("_score") or 0.0, source=h.get("_source", {}))
                for h in hits.get("hits", [])
            ],
            metadata={"took_os_ms": response.get("took", 0), "timed_out": response.get("timed_out", False)},
            took_ms=response.get("took", took_ms),
        )

    # ── Documents ────────────────────────────────────────────────────────

    async def get_document(self, collection: str, doc_id: str) -> VersionedDocument:
        """Read a document with its ``_seq_no`` / ``_primary_term``."""
        client = self._require_client()
        try:
            response = await client.get(index=collection, id=doc_id)
        except TransportError as e:
            raise self._translate(e, collection, doc_id) from e

        if not response.get("found", True):
            raise DocumentNotFoundError(collection, doc_id)

        return VersionedDocument(
            id=doc_id,
            collection=collection,
            source=response.get("_source", {}),
            token=ConcurrencyToken(seq_no=response["_seq_no"], primary_term=response["_primary_term"]),
        )

    async def conditional_put(
        self,
        collection: str,
        doc_id: str,
        document: dict[str, Any],
        token: ConcurrencyToken,
    ) -> ConcurrencyToken:
        """Index ``document`` guarded by ``if_seq_no`` / ``if_primary_term``."""
        client = self._require_client()
        try:
            response = await client.index(
                index=collection,
                id=doc_id,
                body=document,
                if_seq_no=token.seq_no,
                if_primary_term=token.primary_term,
                refresh=self._refresh,
            )
        except TransportError as e:
            raise self._translate(e, collection, doc_id) from e

        return ConcurrencyToken(seq_no=response["_seq_no"], primary_term=response["_primary_term"])

    # ── Collections ──────────────────────────────────────────────────────

    async def collection_exists(self, collection: str) -> bool:
        client = self._require_client()
        try:
            return bool(await client.indices.exists(index=collection))
        except TransportError as e:
            raise self._translate(e, collection) from e

    async def create_collection(self, collection: str, schema: dict[str, Any] | None = None) -> None:
        client = self._require_client()
        try:
            await client.indices.create(index=collection, body=schema or {})
        except TransportError as e:
            raise self._translate(e, collection) from e
        logger.info("Created OpenSearch index: %s", collection)

    # ── Health ───────────────────────────────────────────────────────────

    async def health_check(self) -> BackendHealth:
        """Check OpenSearch cluster health."""
        if not self._client:
            return BackendHealth(status="unhealthy", message="Client not initialized")

        try:
            start = time.monotonic()
            health = await self._client.cluster.health()
            latency_ms = int((time.monotonic() - start) * 1000)

            status_map = {"green": "healthy", "yellow": "degraded", "red": "unhealthy"}

            return BackendHealth(
                status=status_map.get(health.get("status", "red"), "unhealthy"),
                latency_ms=latency_ms,
                last_check=datetime.now(UTC).isoformat(),
                message=f"Cluster: {health.get('cluster_name')}, Nodes: {health.get('number_of_nodes')}",
            )
        except Exception as e:
            return BackendHealth(status="unhealthy", message=str(e))

    # ── Helpers ──────────────────────────────────────────────────────────

    def _require_client(self) -> Any:
        if not self._client:
            raise BackendUnavailableError("OpenSearch client not initialized.")
        return self._client

    @staticmethod
    def _translate(exc: TransportError, collection: str, doc_id: str | None = None) -> BackendError:
        """Map an ``opensearch-py`` transport error onto the backend error taxonomy."""
        if isinstance(exc, ConnectionTimeout):
            return BackendTimeoutError(f"OpenSearch request on '{collection}' timed out: {exc}")
        if isinstance(exc, TransportConnectionError):
            return BackendUnavailableError(f"OpenSearch unreachable: {exc}")
        if isinstance(exc, ConflictError) and doc_id is not None:
            return VersionConflictError(collection, doc_id)
        if isinstance(exc, NotFoundError):
            if doc_id is None or exc.error == "index_not_found_exception":
                return CollectionNotFoundError(collection)
            return DocumentNotFoundError(collection, doc_id)
        if isinstance(exc.status_code, int) and exc.status_code in _UNAVAILABLE_STATUSES:
            return BackendUnavailableError(f"OpenSearch returned {exc.status_code}: {exc.error}")
        return QueryError(f"OpenSearch request on '{collection}' failed: {exc}")
