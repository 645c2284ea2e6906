"""Federated query models."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class FederationMode(str, Enum):
    """Partial-failure policy of a federated search."""

    STRICT = "strict"
    BEST_EFFORT = "best_effort"


class FederatedQuery(BaseModel):
    """A backend query executed unmodified against every collection.

    ``body`` is the backend's query DSL (e.g. an OpenSearch ``query`` clause
    wrapped in a request body).  The core never interprets it.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    body: dict[str, Any] = Field(
        default_factory=lambda: {"query": {"match_all": {}}},
        description="Backend query DSL request body",
    )
    size: int | None = Field(default=None, ge=0, le=10_000, description="Per-collection page size")
    from_: int = Field(default=0, ge=0, alias="from", description="Per-collection result offset")

    def request_body(self) -> dict[str, Any]:
        """Return the body with pagination hints merged in."""
        body = dict(self.body)
        if self.size is not None:
            body["size"] = self.size
        if self.from_:
            body["from"] = self.from_
        return body


class FederatedSearchRequest(BaseModel):
    """Incoming federated search request from the API."""

    model_config = ConfigDict(populate_by_name=True)

    collections: list[str] = Field(min_length=1, description="Collections to search (order is irrelevant)")
    body: dict[str, Any] = Field(
        default_factory=lambda: {"query": {"match_all": {}}},
        description="Backend query DSL request body",
    )
    size: int | None = Field(default=None, ge=0, le=10_000, description="Per-collection page size")
    from_: int = Field(default=0, ge=0, alias="from", description="Per-collection result offset")
    mode: FederationMode | None = Field(default=None, description="strict | best_effort (None = server default)")
    use_cache: bool = Field(default=True, description="Serve from / store into the result cache")
    cache_ttl_seconds: float | None = Field(default=None, ge=0, description="Cache TTL override")
    deadline_seconds: float | None = Field(default=None, gt=0, description="Deadline override")

    def to_query(self) -> FederatedQuery:
        return FederatedQuery(body=self.body, size=self.size, from_=self.from_)
