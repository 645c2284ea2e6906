"""Backend-specific exceptions."""

from __future__ import annotations


class BackendError(Exception):
    """Base exception for backend errors."""


class BackendUnavailableError(BackendError):
    """Raised when the backend cannot be reached or refuses the request."""


class BackendTimeoutError(BackendUnavailableError):
    """Raised when a backend call does not complete in time."""


class DocumentNotFoundError(BackendError):
    """Raised when a requested document does not exist."""

    def __init__(self, collection: str, doc_id: str) -> None:
        super().__init__(f"Document '{doc_id}' not found in collection '{collection}'.")
        self.collection = collection
        self.doc_id = doc_id


class CollectionNotFoundError(BackendError):
    """Raised when a collection (index) does not exist."""

    def __init__(self, collection: str) -> None:
        super().__init__(f"Collection '{collection}' does not exist.")
        self.collection = collection


class VersionConflictError(BackendError):
    """Raised when a conditional write presents a stale concurrency token."""

    def __init__(self, collection: str, doc_id: str) -> None:
        super().__init__(f"Version conflict writing document '{doc_id}' in collection '{collection}'.")
        self.collection = collection
        self.doc_id = doc_id


class QueryError(BackendError):
    """Raised when the backend rejects a query or request."""


class ConfigurationError(BackendError):
    """Raised when backend configuration is invalid."""
