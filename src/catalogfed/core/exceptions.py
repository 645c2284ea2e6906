"""Caller-facing exceptions of the federation and update layers.

Backend failures that are not handled here (unavailable, timeout) surface as
``catalogfed.backends.base.exceptions.BackendError`` subclasses.
"""

from __future__ import annotations

from collections.abc import Sequence

from catalogfed.backends.base.exceptions import BackendError


class CatalogError(Exception):
    """Base exception for catalogfed core errors."""


class InvalidArgumentError(CatalogError, ValueError):
    """Raised for caller errors such as an empty collection set or a malformed price window."""


# ── Federation ───────────────────────────────────────────────────────────


class FederationError(CatalogError):
    """Base exception for federated search failures."""


class CollectionSearchError(FederationError, BackendError):
    """Raised in strict mode when one collection's search fails.

    Also a ``BackendError``, so callers handling transient backend failures
    catch it too.  The underlying backend exception is available as ``error``
    and ``__cause__``.
    """

    def __init__(self, collection: str, error: BaseException) -> None:
        super().__init__(f"Search on collection '{collection}' failed: {type(error).__name__}: {error}")
        self.collection = collection
        self.error = error


class FederationTimeoutError(FederationError):
    """Raised in strict mode when the deadline expires before all collections answered."""

    def __init__(self, pending: Sequence[str], deadline: float) -> None:
        super().__init__(f"Federated search exceeded {deadline:.3f}s; still pending: {', '.join(pending)}")
        self.pending = list(pending)
        self.deadline = deadline


# ── Updates ──────────────────────────────────────────────────────────────


class UpdateError(CatalogError):
    """Base exception for conditional update failures."""

    def __init__(self, message: str, collection: str, document_id: str) -> None:
        super().__init__(message)
        self.collection = collection
        self.document_id = document_id


class ProductNotFoundError(UpdateError):
    """Raised when the product document to update does not exist.  Never retried."""

    def __init__(self, collection: str, document_id: str) -> None:
        super().__init__(
            f"Product '{document_id}' not found in collection '{collection}'.",
            collection,
            document_id,
        )


class UpdateConflictError(UpdateError):
    """Raised when every attempt lost the optimistic-concurrency race.

    Not fatal: the caller may retry the whole update later.
    """

    def __init__(self, collection: str, document_id: str, attempts: int) -> None:
        super().__init__(
            f"Product '{document_id}' in collection '{collection}' kept changing; "
            f"gave up after {attempts} attempt(s).",
            collection,
            document_id,
        )
        self.attempts = attempts
