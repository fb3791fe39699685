from shared.config.settings import CACHE_MAX_ENTRIES

from .backend import CacheBackend, InMemoryCache

_cache: CacheBackend = InMemoryCache(maxsize=CACHE_MAX_ENTRIES)


def get_cache() -> CacheBackend:
    """FastAPI dependency returning the process cache; override it in tests."""
    return _cache


__all__ = ["CacheBackend", "InMemoryCache", "get_cache"]
