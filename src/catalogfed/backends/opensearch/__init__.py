"""OpenSearch backend."""

from catalogfed.backends.opensearch.backend import OpenSearchBackend

__all__ = ["OpenSearchBackend"]
