"""Conditional Update Engine — Price window upserts on a store without native upsert.

The backend can only replace a whole document, guarded by the concurrency
token of the revision the writer read.  Upserting one price window is
therefore a read-modify-write cycle:

  Read ──→ Mutate (pure) ──→ Write (conditional) ──→ done
   ↑                              │
   └──── back off ←── conflict ───┘

  - Read: ``get_document``; a missing product fails immediately.
  - Mutate: ``apply_price_window`` replaces the window with the same
    ``billingReferenceId`` in place, or appends it.  It has no side effects,
    so repeating it on a fresh read is always safe.
  - Write: ``conditional_put`` with the token from the read.  A conflict
    means another writer won the round; the cycle restarts from a new read,
    after an exponential backoff with jitter, until the attempt budget or
    the deadline runs out.

Transient backend failures (unavailable, timeout) are not retried here and
propagate as ``BackendError``.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import random
import time
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any

from pydantic import ValidationError

from catalogfed.backends.base.backend import DocumentBackend
from catalogfed.backends.base.exceptions import DocumentNotFoundError, VersionConflictError
from catalogfed.core.exceptions import InvalidArgumentError, ProductNotFoundError, UpdateConflictError
from catalogfed.models.price import PriceWindow, UpdateAction, UpdateResult

logger = logging.getLogger(__name__)

BILLING_REFERENCE_KEY = "billingReferenceId"
DEFAULT_PRICE_WINDOWS_FIELD = "priceWindows"


def backoff_delay(
    attempt: int,
    *,
    base: float = 0.05,
    cap: float = 1.0,
    jitter: float = 0.25,
    rng: random.Random | None = None,
) -> float:
    """Return the delay in seconds before retry number ``attempt`` (1-based).

    ``min(cap, base * 2**(attempt - 1))`` scaled by a random factor in
    ``[1 - jitter, 1 + jitter]``.
    """
    delay = min(cap, base * (2 ** max(0, attempt - 1)))
    factor = 1.0 - jitter + (rng or random).random() * jitter * 2
    return max(0.0, delay * factor)


def upsert_price_window(
    windows: Sequence[Any],
    window: PriceWindow,
) -> tuple[list[Any], int, UpdateAction]:
    """Return a new window list with ``window`` upserted by ``billingReferenceId``.

    An existing entry with the same key is replaced at its position;
    otherwise ``window`` is appended.  Further entries with the same key
    (left behind by writers that bypassed this engine) are dropped, so the
    key is unique afterwards.  The input list is not modified.

    Returns:
        ``(new_windows, index, action)``
    """
    stored = window.to_document()
    key = window.billing_reference_id

    result: list[Any] = []
    index: int | None = None
    for existing in windows:
        if isinstance(existing, Mapping) and existing.get(BILLING_REFERENCE_KEY) == key:
            if index is None:
                index = len(result)
                result.append(stored)
            continue
        result.append(copy.deepcopy(existing))

    if index is not None:
        return result, index, UpdateAction.REPLACED

    result.append(stored)
    return result, len(result) - 1, UpdateAction.APPENDED


def apply_price_window(
    source: Mapping[str, Any],
    window: PriceWindow,
    field: str = DEFAULT_PRICE_WINDOWS_FIELD,
) -> tuple[dict[str, Any], int, UpdateAction]:
    """Return a copy of a product document with ``window`` upserted into ``field``."""
    windows = source.get(field) or []
    if not isinstance(windows, list):
        raise InvalidArgumentError(f"Document field '{field}' is not a list of price windows")

    new_windows, index, action = upsert_price_window(windows, window)
    document = dict(source)
    document[field] = new_windows
    return document, index, action


class PriceWindowUpdater:
    """Applies price window upserts with optimistic concurrency and bounded retry.

    Args:
        backend: The document backend.
        max_attempts: Default number of read-modify-write cycles per update.
        backoff_base_seconds: First retry delay before jitter.
        backoff_cap_seconds: Upper bound of a single retry delay.
        backoff_jitter: Relative jitter applied to every delay (0.0 - 1.0).
        deadline_seconds: Overall time budget per update (None = attempts only).
        field: Document field holding the price window list.
        sleep: Coroutine used to wait between attempts (injectable for tests).
    """

    def __init__(
        self,
        backend: DocumentBackend,
        *,
        max_attempts: int = 5,
        backoff_base_seconds: float = 0.05,
        backoff_cap_seconds: float = 1.0,
        backoff_jitter: float = 0.25,
        deadline_seconds: float | None = 10.0,
        field: str = DEFAULT_PRICE_WINDOWS_FIELD,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.backend = backend
        self.max_attempts = max_attempts
        self.backoff_base_seconds = backoff_base_seconds
        self.backoff_cap_seconds = backoff_cap_seconds
        self.backoff_jitter = backoff_jitter
        self.deadline_seconds = deadline_seconds
        self.field = field
        self._sleep = sleep

    async def update_price_window(
        self,
        collection: str,
        document_id: str,
        new_window: PriceWindow | Mapping[str, Any],
        max_attempts: int | None = None,
    ) -> UpdateResult:
        """Upsert ``new_window`` into the product's price windows.

        Args:
            collection: Collection holding the product.
            document_id: Product document id.
            new_window: The window to upsert (model or camelCase mapping).
            max_attempts: Override of the attempt budget for this call.

        Returns:
            What was written, where, and after how many attempts.

        Raises:
            InvalidArgumentError: If the window or the attempt budget is invalid.
            ProductNotFoundError: If the product does not exist (no write attempted).
            UpdateConflictError: If every attempt hit a version conflict.
            BackendError: On transient backend failures.
        """
        window = self._coerce(new_window).with_derived_fields()
        budget = self.max_attempts if max_attempts is None else max_attempts
        if budget < 1:
            raise InvalidArgumentError(f"max_attempts must be at least 1, got {budget}")

        started = time.monotonic()
        attempt = 0
        while True:
            attempt += 1
            try:
                current = await self.backend.get_document(collection, document_id)
            except DocumentNotFoundError as e:
                raise ProductNotFoundError(collection, document_id) from e

            document, index, action = apply_price_window(current.source, window, self.field)

            try:
                token = await self.backend.conditional_put(collection, document_id, document, current.token)
            except DocumentNotFoundError as e:
                raise ProductNotFoundError(collection, document_id) from e
            except VersionConflictError as e:
                delay = self._next_delay(attempt, budget, started)
                if delay is None:
                    logger.warning(
                        "Giving up on %s/%s after %d conflicting attempt(s)",
                        collection,
                        document_id,
                        attempt,
                    )
                    raise UpdateConflictError(collection, document_id, attempt) from e
                logger.info(
                    "Version conflict on %s/%s (attempt %d/%d), retrying in %.3fs",
                    collection,
                    document_id,
                    attempt,
                    budget,
                    delay,
                )
                await self._sleep(delay)
                continue

            logger.info(
                "Price window %s %s on %s/%s at index %d (attempt %d)",
                window.billing_reference_id,
                action.value,
                collection,
                document_id,
                index,
                attempt,
            )
            return UpdateResult(
                collection=collection,
                document_id=document_id,
                billing_reference_id=window.billing_reference_id,
                action=action,
                index=index,
                window_count=len(document[self.field]),
                attempts=attempt,
                token=token,
            )

    def _next_delay(self, attempt: int, budget: int, started: float) -> float | None:
        """Return the delay before the next attempt, or None when the budget is spent."""
        if attempt >= budget:
            return None
        delay = backoff_delay(
            attempt,
            base=self.backoff_base_seconds,
            cap=self.backoff_cap_seconds,
            jitter=self.backoff_jitter,
        )
        if self.deadline_seconds is not None and time.monotonic() - started + delay >= self.deadline_seconds:
            return None
        return delay

    @staticmethod
    def _coerce(new_window: PriceWindow | Mapping[str, Any]) -> PriceWindow:
        if isinstance(new_window, PriceWindow):
            return new_window
        try:
            return PriceWindow.model_validate(dict(new_window))
        except ValidationError as e:
            raise InvalidArgumentError(f"Invalid price window: {e}") from e
