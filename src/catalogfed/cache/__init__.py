"""Result caching."""

from catalogfed.cache.result_cache import ResultCache, make_key

__all__ = ["ResultCache", "make_key"]
