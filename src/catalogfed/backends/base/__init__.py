"""Base backend interface — Abstract contract for document store connectors."""

from catalogfed.backends.base.backend import DocumentBackend
from catalogfed.backends.base.registry import BackendRegistry

__all__ = ["BackendRegistry", "DocumentBackend"]
