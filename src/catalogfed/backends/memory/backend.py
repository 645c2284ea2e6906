"""In-memory backend — A process-local document store with optimistic locking.

Behaves like a single-shard OpenSearch index as far as the core can tell:
every write bumps a per-collection sequence number, and a conditional write
is accepted only when the presented token matches the stored revision.
Each call yields to the event loop once, so concurrent callers interleave the
way they would against a remote store.

Supported query clauses (under ``body["query"]``): ``match_all``, ``term``,
``terms`` and ``ids``.  There is no relevance model; hits score ``1.0``
unless ``score_field`` names a numeric document field to rank by.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from catalogfed.backends.base.backend import BackendHealth, DocumentBackend, RawHit, RawResults
from catalogfed.backends.base.exceptions import (
    CollectionNotFoundError,
    DocumentNotFoundError,
    QueryError,
    VersionConflictError,
)
from catalogfed.models.document import ConcurrencyToken, VersionedDocument
from catalogfed.models.query import FederatedQuery

logger = logging.getLogger(__name__)

_DEFAULT_SIZE = 10


@dataclass
class _Stored:
    source: dict[str, Any]
    seq_no: int


class InMemoryBackend(DocumentBackend):
    """Document backend backed by Python dicts.

    Args:
        primary_term: Primary term reported in every token.
        score_field: Optional numeric source field used as the hit score.
        **kwargs: Ignored; accepted so the backend can be built from generic config.
    """

    def __init__(self, primary_term: int = 1, score_field: str | None = None, **kwargs: Any) -> None:
        self._primary_term = primary_term
        self._score_field = score_field
        self._collections: dict[str, dict[str, _Stored]] = {}
        self._seq_nos: dict[str, int] = {}
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return "memory"

    async def initialize(self) -> None:
        logger.info("Using in-memory document backend")

    async def shutdown(self) -> None:
        self._collections.clear()
        self._seq_nos.clear()

    # ── Seeding ──────────────────────────────────────────────────────────

    async def put_document(self, collection: str, doc_id: str, source: dict[str, Any]) -> ConcurrencyToken:
        """Unconditionally create or overwrite a document (creating the collection if needed)."""
        async with self._lock:
            docs = self._collections.setdefault(collection, {})
            seq_no = self._next_seq_no(collection)
            docs[doc_id] = _Stored(source=copy.deepcopy(source), seq_no=seq_no)
        return ConcurrencyToken(seq_no=seq_no, primary_term=self._primary_term)

    # ── Search ───────────────────────────────────────────────────────────

    async def search(self, collection: str, query: FederatedQuery) -> RawResults:
        await asyncio.sleep(0)
        docs = self._get_collection(collection)
        body = query.request_body()
        clause = body.get("query") or {"match_all": {}}

        matched = [
            RawHit(id=doc_id, score=self._score(stored.source), source=copy.deepcopy(stored.source))
            for doc_id, stored in docs.items()
            if self._matches(clause, doc_id, stored.source)
        ]
        matched.sort(key=lambda h: h.score, reverse=True)

        offset = body.get("from", 0)
        size = body.get("size", _DEFAULT_SIZE)
        return RawResults(total_hits=len(matched), hits=matched[offset : offset + size], took_ms=0)

    # ── Documents ────────────────────────────────────────────────────────

    async def get_document(self, collection: str, doc_id: str) -> VersionedDocument:
        await asyncio.sleep(0)
        stored = self._get_collection(collection).get(doc_id)
        if stored is None:
            raise DocumentNotFoundError(collection, doc_id)
        return VersionedDocument(
            id=doc_id,
            collection=collection,
            source=copy.deepcopy(stored.source),
            token=ConcurrencyToken(seq_no=stored.seq_no, primary_term=self._primary_term),
        )

    async def conditional_put(
        self,
        collection: str,
        doc_id: str,
        document: dict[str, Any],
        token: ConcurrencyToken,
    ) -> ConcurrencyToken:
        await asyncio.sleep(0)
        async with self._lock:
            docs = self._get_collection(collection)
            stored = docs.get(doc_id)
            if stored is None:
                raise DocumentNotFoundError(collection, doc_id)
            if stored.seq_no != token.seq_no or token.primary_term != self._primary_term:
                raise VersionConflictError(collection, doc_id)
            seq_no = self._next_seq_no(collection)
            docs[doc_id] = _Stored(source=copy.deepcopy(document), seq_no=seq_no)
        return ConcurrencyToken(seq_no=seq_no, primary_term=self._primary_term)

    # ── Collections ──────────────────────────────────────────────────────

    async def collection_exists(self, collection: str) -> bool:
        return collection in self._collections

    async def create_collection(self, collection: str, schema: dict[str, Any] | None = None) -> None:
        self._collections.setdefault(collection, {})
        self._seq_nos.setdefault(collection, -1)

    # ── Health ───────────────────────────────────────────────────────────

    async def health_check(self) -> BackendHealth:
        return BackendHealth(
            status="healthy",
            last_check=datetime.now(UTC).isoformat(),
            message=f"{len(self._collections)} collections in memory",
        )

    # ── Helpers ──────────────────────────────────────────────────────────

    def _get_collection(self, collection: str) -> dict[str, _Stored]:
        if collection not in self._collections:
            raise CollectionNotFoundError(collection)
        return self._collections[collection]

    def _next_seq_no(self, collection: str) -> int:
        seq_no = self._seq_nos.get(collection, -1) + 1
        self._seq_nos[collection] = seq_no
        return seq_no

    def _score(self, source: dict[str, Any]) -> float:
        if self._score_field is None:
            return 1.0
        return float(source.get(self._score_field, 0.0))

    @staticmethod
    def _matches(clause: dict[str, Any], doc_id: str, source: dict[str, Any]) -> bool:
        if len(clause) != 1:
            raise QueryError(f"Expected exactly one query clause, got {list(clause)}")
        kind, params = next(iter(clause.items()))

        if kind == "match_all":
            return True
        if kind == "ids":
            return doc_id in params.get("values", [])
        if kind == "term":
            field, value = next(iter(params.items()))
            if isinstance(value, dict):
                value = value.get("value")
            return source.get(field) == value
        if kind == "terms":
            field, values = next(iter(params.items()))
            return source.get(field) in values
        raise QueryError(f"Unsupported query clause for the in-memory backend: '{kind}'")
