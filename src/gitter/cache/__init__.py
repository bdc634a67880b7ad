"""Archive cache: storage, eviction and extraction."""
from gitter.cache.archive import extract_archive
from gitter.cache.store import CacheEntry, CacheStore

__all__ = [
    "CacheEntry",
    "CacheStore",
    "extract_archive",
]
