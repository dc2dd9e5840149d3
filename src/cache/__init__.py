"""Process-local caching for task orchestration.

Components:
    - TTLCache: Thread-safe key/value store with per-entry expiry and a
      background sweep
    - CacheEntry / CacheStats: Stored entry and operation counters
    - VocabularyCache: Name-keyed cache for remote vocabulary lists

Usage::

    from src.cache import TTLCache

    cache = TTLCache(cleanup_interval=60.0)
    cache.set("task:abc", record, ttl=300)
    cache.get("task:abc")
    cache.destroy()
"""

from .ttl_cache import CacheEntry, CacheStats, TTLCache
from .vocabulary_cache import VocabularyCache, vocabulary_key

__all__ = [
    "CacheEntry",
    "CacheStats",
    "TTLCache",
    "VocabularyCache",
    "vocabulary_key",
]
