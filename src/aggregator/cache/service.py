"""Cache-aside service over a KeyValueStore.

Every operation is fault tolerant: a failed read is a miss, a failed write
or delete is logged and ignored. Callers stay correct with the backend
down, only slower.
"""

import base64
import json
from typing import Any

from aggregator.cache.store import KeyValueStore
from aggregator.exceptions import CacheError
from aggregator.logging import get_logger
from aggregator.models import AssetRecord, Page

logger = get_logger(__name__)


def make_cache_key(operation: str, subject: str, params: dict[str, Any] | None = None) -> str:
    """Derive ``operation:subject:base64(params)``; equal params give equal keys."""
    param_string = json.dumps(params, sort_keys=True, default=str) if params else ""
    encoded = base64.b64encode(param_string.encode()).decode()
    return f"{operation}:{subject}:{encoded}"


class CacheService:
    """JSON cache with a key namespace and default TTL.

    Args:
        store: Backend key-value store.
        prefix: Namespace prepended to every logical key.
        default_ttl: TTL in seconds used when ``set`` gets none.
    """

    def __init__(self, store: KeyValueStore, prefix: str = "meme-coin:", default_ttl: int = 30) -> None:
        self._store = store
        self._prefix = prefix
        self._default_ttl = default_ttl

    @property
    def store(self) -> KeyValueStore:
        return self._store

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> Any | None:
        """Return the decoded value, or None on a miss or any failure."""
        try:
            raw = await self._store.get(self._key(key))
        except CacheError as e:
            logger.warning("cache_get_error", key=key, error=str(e))
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("cache_decode_error", key=key)
            return None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store ``value`` as JSON, replacing any previous value."""
        try:
            serialized = json.dumps(value).encode()
            await self._store.set(self._key(key), serialized, ttl or self._default_ttl)
        except (CacheError, TypeError, ValueError) as e:
            logger.warning("cache_set_error", key=key, error=str(e))

    async def delete(self, key: str) -> None:
        try:
            await self._store.delete(self._key(key))
        except CacheError as e:
            logger.warning("cache_delete_error", key=key, error=str(e))

    async def exists(self, key: str) -> bool:
        try:
            return await self._store.exists(self._key(key))
        except CacheError as e:
            logger.warning("cache_exists_error", key=key, error=str(e))
            return False

    async def invalidate_pattern(self, pattern: str) -> int:
        """Delete every key in the namespace matching ``pattern``."""
        try:
            keys = await self._store.keys(self._key(pattern))
            deleted = await self._store.delete(*keys) if keys else 0
        except CacheError as e:
            logger.warning("cache_invalidate_error", pattern=pattern, error=str(e))
            return 0
        logger.info("cache_invalidated", pattern=pattern, deleted=deleted)
        return deleted

    async def cleanup(self) -> int:
        """Purge expired entries the backend does not expire itself."""
        try:
            purged = await self._store.purge_expired()
        except CacheError as e:
            logger.warning("cache_cleanup_error", error=str(e))
            return 0
        logger.info("cache_cleanup_complete", purged=purged)
        return purged

    # ──────────────────────────────────────────────
    # Typed helpers
    # ──────────────────────────────────────────────

    async def get_records(self, key: str) -> list[AssetRecord] | None:
        cached = await self.get(key)
        if cached is None:
            return None
        try:
            return [AssetRecord.from_dict(item) for item in cached]
        except (KeyError, TypeError, ValueError, ArithmeticError):
            logger.warning("cache_records_malformed", key=key)
            return None

    async def set_records(self, key: str, records: list[AssetRecord], ttl: int | None = None) -> None:
        await self.set(key, [record.to_dict() for record in records], ttl)

    async def get_page(self, key: str) -> Page | None:
        cached = await self.get(key)
        if cached is None:
            return None
        try:
            return Page.from_dict(cached)
        except (KeyError, TypeError, ValueError, ArithmeticError):
            logger.warning("cache_page_malformed", key=key)
            return None

    async def set_page(self, key: str, page: Page, ttl: int | None = None) -> None:
        await self.set(key, page.to_dict(), ttl)
