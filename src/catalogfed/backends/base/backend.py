"""Base document backend — Abstract interface for document store connectors.

Every store must implement this interface to be driven by catalogfed.
The backend is responsible for:
  1. Executing a query against one collection
  2. Reading a document together with its concurrency token
  3. Writing a document only if its token is still current
  4. Checking and provisioning collections
  5. Reporting health status

The core never talks to a store any other way, so any conforming backend
(a real cluster client or an in-process double) is interchangeable.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

from catalogfed.models.document import ConcurrencyToken, VersionedDocument
from catalogfed.models.query import FederatedQuery


class BackendHealth(BaseModel):
    """Health status of a document backend."""

    status: str = Field(description="Health status: healthy, degraded, unhealthy")
    latency_ms: int = Field(default=0, description="Latency of last health check in ms")
    last_check: str | None = Field(default=None, description="ISO timestamp of last health check")
    message: str | None = Field(default=None, description="Additional health message")


class RawHit(BaseModel):
    """A single hit as returned by one collection, without provenance."""

    id: str = Field(description="Document identifier")
    score: float = Field(default=0.0, description="Backend relevance score")
    source: dict[str, Any] = Field(default_factory=dict, description="Document body")


class RawResults(BaseModel):
    """Search results of one collection before federation."""

    total_hits: int = Field(default=0, description="Total number of matching documents")
    hits: list[RawHit] = Field(default_factory=list, description="Returned hits in backend rank order")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Backend-specific metadata")
    took_ms: int = Field(default=0, description="Backend query execution time in ms")


class DocumentBackend(ABC):
    """Abstract base class for document store backends.

    All backends must implement:
      - search(): Execute a query against one collection
      - get_document(): Read a document and its concurrency token
      - conditional_put(): Write a document guarded by a concurrency token
      - collection_exists() / create_collection(): Collection provisioning
      - health_check(): Report backend health status

    Backends must be safe to call concurrently from one event loop.
    Connection pooling and configuration are handled during initialization.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique backend name (e.g., 'opensearch', 'memory')."""

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the backend (connections, pools, etc.)."""

    @abstractmethod
    async def shutdown(self) -> None:
        """Close connections and release resources."""

    @abstractmethod
    async def search(self, collection: str, query: FederatedQuery) -> RawResults:
        """Execute a query against a single collection.

        Args:
            collection: The collection (index) name.
            query: The query, passed unmodified.

        Returns:
            Raw results of this collection.

        Raises:
            BackendUnavailableError: If the backend cannot be reached.
            BackendTimeoutError: If the call times out.
            CollectionNotFoundError: If the collection does not exist.
            QueryError: If the backend rejects the query.
        """

    @abstractmethod
    async def get_document(self, collection: str, doc_id: str) -> VersionedDocument:
        """Read a document together with the token of its current revision.

        Raises:
            DocumentNotFoundError: If the document does not exist.
        """

    @abstractmethod
    async def conditional_put(
        self,
        collection: str,
        doc_id: str,
        document: dict[str, Any],
        token: ConcurrencyToken,
    ) -> ConcurrencyToken:
        """Replace a document only if ``token`` still identifies its current revision.

        The comparison and the write must be atomic on the backend side.

        Returns:
            The token of the newly written revision.

        Raises:
            VersionConflictError: If the document changed since ``token`` was read.
            DocumentNotFoundError: If the document no longer exists.
            BackendUnavailableError: If the backend cannot be reached.
        """

    @abstractmethod
    async def collection_exists(self, collection: str) -> bool:
        """Return True if the collection exists."""

    @abstractmethod
    async def create_collection(self, collection: str, schema: dict[str, Any] | None = None) -> None:
        """Create a collection with an optional backend-specific schema/mapping."""

    @abstractmethod
    async def health_check(self) -> BackendHealth:
        """Check the health of the backend."""
