"""Federated search result models."""

from __future__ import annotations

from pydantic import BaseModel, Field

from catalogfed.models.document import Hit


class CollectionFailure(BaseModel):
    """A collection that did not contribute to a best-effort result."""

    collection: str = Field(description="Failed collection name")
    error_type: str = Field(description="Exception class name of the failure")
    message: str = Field(default="", description="Failure message")


class FederatedResult(BaseModel):
    """Merged result of one query executed against several collections.

    ``hits`` are ordered by score descending.  Equal scores are ordered by
    collection name, then by the rank the backend gave the hit within its
    own collection.
    """

    took_ms: int = Field(default=0, description="Sum of per-collection backend execution times")
    total_hits: int = Field(default=0, description="Sum of per-collection total hit counts")
    hits: list[Hit] = Field(default_factory=list, description="Merged hits, score descending")
    collections: list[str] = Field(default_factory=list, description="Collections that contributed")
    failed_collections: list[CollectionFailure] = Field(
        default_factory=list,
        description="Collections excluded from the merge (best-effort mode only)",
    )
    partial: bool = Field(default=False, description="True if any collection failed")
    wall_time_ms: int = Field(default=0, description="Observed end-to-end latency")
