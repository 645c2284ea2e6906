"""Document models — Hits, versioned documents and concurrency tokens."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ConcurrencyToken(BaseModel):
    """Optimistic-lock token identifying one exact revision of a document.

    Mirrors OpenSearch's ``_seq_no`` / ``_primary_term`` pair.  The core
    never compares tokens itself; it only hands them back to the backend.
    """

    model_config = ConfigDict(frozen=True)

    seq_no: int = Field(ge=0, description="Sequence number of the revision")
    primary_term: int = Field(ge=1, description="Primary term of the revision")


class VersionedDocument(BaseModel):
    """A document body together with the token of the revision it was read at."""

    id: str = Field(description="Document identifier")
    collection: str = Field(description="Collection the document was read from")
    source: dict[str, Any] = Field(default_factory=dict, description="Document body")
    token: ConcurrencyToken = Field(description="Concurrency token of this revision")


class Hit(BaseModel):
    """One matched document in a federated result."""

    id: str = Field(description="Document identifier")
    score: float = Field(default=0.0, description="Relevance score (higher = more relevant)")
    source: dict[str, Any] = Field(default_factory=dict, description="Document body")
    collection: str = Field(description="Collection the hit originated from")
