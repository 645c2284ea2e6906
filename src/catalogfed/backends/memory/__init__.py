"""In-memory backend."""

from catalogfed.backends.memory.backend import InMemoryBackend

__all__ = ["InMemoryBackend"]
