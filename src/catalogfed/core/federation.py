"""Federation Coordinator — One logical query over many collections.

The backend can only search one collection per call.  The coordinator
fans a query out to every requested collection concurrently, waits for all
of them (or for the deadline), and merges the answers into one ranked,
counted ``FederatedResult``:

  query → [search c1] ┐
        → [search c2] ├→ merge (score desc) → FederatedResult
        → [search cN] ┘

Two partial-failure policies are available:

  - **strict** (default) — the first failing collection aborts the call,
    cancels everything still in flight and raises ``CollectionSearchError``.
  - **best_effort** — failed or timed-out collections are left out of the
    merge and listed in ``failed_collections``; the result is flagged
    ``partial``.

A query rejected by the backend (``QueryError``) is a caller error in both
modes and raises ``InvalidArgumentError``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable

from catalogfed.backends.base.backend import DocumentBackend, RawResults
from catalogfed.backends.base.exceptions import QueryError
from catalogfed.core.exceptions import CollectionSearchError, FederationTimeoutError, InvalidArgumentError
from catalogfed.models.document import Hit
from catalogfed.models.query import FederatedQuery, FederationMode
from catalogfed.models.result import CollectionFailure, FederatedResult

logger = logging.getLogger(__name__)


def normalize_collections(collections: Iterable[str]) -> list[str]:
    """Validate a caller-supplied collection set and return it deduplicated and sorted.

    Raises:
        InvalidArgumentError: If the set is empty or contains a blank/non-string name.
    """
    if isinstance(collections, str):
        raise InvalidArgumentError("collections must be an iterable of names, not a single string")

    names = list(collections)
    if not names:
        raise InvalidArgumentError("At least one collection is required for a federated search")
    for name in names:
        if not isinstance(name, str) or not name.strip():
            raise InvalidArgumentError(f"Invalid collection name: {name!r}")
    return sorted(set(names))


def merge_results(results: Iterable[tuple[str, RawResults]]) -> tuple[list[Hit], int, int]:
    """Merge per-collection results into one ranked hit list.

    Hits are sorted by score descending.  Ties are broken by collection name,
    then by the hit's rank within its own collection, so the order never
    depends on which backend call finished first.

    Returns:
        ``(hits, total_hits, took_ms)`` with totals summed over collections.
    """
    ranked: list[tuple[float, str, int, Hit]] = []
    total_hits = 0
    took_ms = 0
    for collection, raw in results:
        total_hits += raw.total_hits
        took_ms += raw.took_ms
        for rank, raw_hit in enumerate(raw.hits):
            hit = Hit(id=raw_hit.id, score=raw_hit.score, source=raw_hit.source, collection=collection)
            ranked.append((-hit.score, collection, rank, hit))

    ranked.sort(key=lambda entry: entry[:3])
    return [entry[3] for entry in ranked], total_hits, took_ms


async def _cancel_all(tasks: Iterable[asyncio.Task[RawResults]]) -> None:
    """Cancel every unfinished task and wait until they have all stopped."""
    unfinished = [t for t in tasks if not t.done()]
    for task in unfinished:
        task.cancel()
    if unfinished:
        await asyncio.gather(*unfinished, return_exceptions=True)


class FederationCoordinator:
    """Runs federated searches against a ``DocumentBackend``.

    Args:
        backend: The backend every per-collection search goes through.
        default_mode: Partial-failure policy used when a call does not pick one.
        deadline_seconds: Default overall deadline per call (None = no deadline).
        max_concurrency: Maximum number of collections searched at the same time.
    """

    def __init__(
        self,
        backend: DocumentBackend,
        *,
        default_mode: FederationMode = FederationMode.STRICT,
        deadline_seconds: float | None = 10.0,
        max_concurrency: int = 16,
    ) -> None:
        if max_concurrency < 1:
            raise InvalidArgumentError("max_concurrency must be at least 1")
        self.backend = backend
        self.default_mode = default_mode
        self.deadline_seconds = deadline_seconds
        self.max_concurrency = max_concurrency

    async def federated_search(
        self,
        query: FederatedQuery,
        collections: Iterable[str],
        mode: FederationMode | str | None = None,
        deadline: float | None = None,
    ) -> FederatedResult:
        """Execute ``query`` against every collection and merge the results.

        Args:
            query: The query, passed unmodified to every collection.
            collections: Non-empty set of collection names.
            mode: ``strict`` or ``best_effort`` (defaults to ``default_mode``).
            deadline: Overall deadline in seconds (defaults to ``deadline_seconds``).

        Returns:
            The merged result.

        Raises:
            InvalidArgumentError: On an empty collection set, a bad deadline or a
                query a collection rejects (in either mode).
            CollectionSearchError: Strict mode, when a collection search fails.
            FederationTimeoutError: Strict mode, when the deadline expires first.
        """
        names = normalize_collections(collections)
        mode = FederationMode(mode) if mode is not None else self.default_mode
        deadline = self.deadline_seconds if deadline is None else deadline
        if deadline is not None and deadline <= 0:
            raise InvalidArgumentError(f"deadline must be positive, got {deadline}")

        start = time.monotonic()
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _search_one(collection: str) -> RawResults:
            async with semaphore:
                return await self.backend.search(collection, query)

        tasks = {
            asyncio.create_task(_search_one(collection), name=f"federated-search:{collection}"): collection
            for collection in names
        }
        logger.info("Federated search over %d collections (mode=%s, deadline=%s)", len(names), mode.value, deadline)

        return_when = asyncio.FIRST_EXCEPTION if mode is FederationMode.STRICT else asyncio.ALL_COMPLETED
        try:
            done, pending = await asyncio.wait(tasks, timeout=deadline, return_when=return_when)
        finally:
            # Also reached when the caller cancels us: never leave searches running.
            await _cancel_all(tasks)

        # A rejected query is the caller's error in every mode.
        for task, collection in tasks.items():
            if task in done and not task.cancelled() and isinstance(task.exception(), QueryError):
                error = task.exception()
                logger.warning("Collection '%s' rejected the query: %s", collection, error)
                raise InvalidArgumentError(f"Query rejected by collection '{collection}': {error}") from error

        succeeded: list[tuple[str, RawResults]] = []
        failures: list[CollectionFailure] = []
        for task, collection in tasks.items():
            if task not in done:
                continue
            error = asyncio.CancelledError() if task.cancelled() else task.exception()
            if error is None:
                succeeded.append((collection, task.result()))
                continue
            if mode is FederationMode.STRICT:
                logger.warning("Collection '%s' failed, aborting federated search: %s", collection, error)
                raise CollectionSearchError(collection, error) from error
            logger.warning("Collection '%s' failed, excluded from merge: %s", collection, error)
            failures.append(
                CollectionFailure(collection=collection, error_type=type(error).__name__, message=str(error))
            )

        if pending:
            timed_out = sorted(tasks[task] for task in pending)
            if mode is FederationMode.STRICT:
                logger.warning("Federated search deadline expired; pending: %s", timed_out)
                raise FederationTimeoutError(timed_out, deadline or 0.0)
            failures.extend(
                CollectionFailure(
                    collection=collection,
                    error_type="FederationTimeout",
                    message=f"No answer within {deadline}s",
                )
                for collection in timed_out
            )

        hits, total_hits, took_ms = merge_results(succeeded)
        failures.sort(key=lambda f: f.collection)
        wall_time_ms = int((time.monotonic() - start) * 1000)

        logger.info(
            "Federated search complete: %d hits from %d/%d collections in %d ms",
            len(hits),
            len(succeeded),
            len(names),
            wall_time_ms,
        )

        return FederatedResult(
            took_ms=took_ms,
            total_hits=total_hits,
            hits=hits,
            collections=[collection for collection, _ in succeeded],
            failed_collections=failures,
            partial=bool(failures),
            wall_time_ms=wall_time_ms,
        )
