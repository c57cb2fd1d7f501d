"""Cache layer -- key-value backends and the cache-aside service."""

from aggregator.cache.service import CacheService, make_cache_key
from aggregator.cache.store import InMemoryStore, KeyValueStore, RedisStore

__all__ = ["CacheService", "InMemoryStore", "KeyValueStore", "RedisStore", "make_cache_key"]
