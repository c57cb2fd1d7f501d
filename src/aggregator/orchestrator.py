"""Aggregation orchestrator -- the single entry point to the fetch-merge pipeline.

Each public operation is cache-aside:
  1. KEY: derive a cache key from the operation and its parameters
  2. HIT: return the cached value, no upstream calls
  3. MISS: call every adapter concurrently (full join, adapter order kept)
  4. MERGE: fold results into one record per address
  5. RANK & STORE: order, truncate, write back to the cache

Adapters are held as a homogeneous list of ProviderAdapter; a failed
adapter contributes nothing and never aborts the others. Concurrent misses
on the same key are not collapsed: both fetch, the last write wins.
"""

import asyncio
from collections.abc import Awaitable, Callable

from aggregator.cache.service import CacheService, make_cache_key
from aggregator.config import CacheSettings
from aggregator.logging import get_logger
from aggregator.merge import merge_records
from aggregator.models import AssetRecord, Page, ProviderResult, QueryFilter
from aggregator.providers.base import ProviderAdapter
from aggregator.query import run_query

logger = get_logger(__name__)


class AggregationOrchestrator:
    """Coordinates adapters, merge engine, query engine and cache.

    Args:
        providers: Adapters in merge-precedence order.
        cache: Cache-aside service.
        settings: TTLs and limits.
    """

    def __init__(
        self,
        providers: list[ProviderAdapter],
        cache: CacheService,
        settings: CacheSettings | None = None,
    ) -> None:
        self._providers = list(providers)
        self._cache = cache
        self._settings = settings or CacheSettings()

    @property
    def provider_names(self) -> list[str]:
        return [provider.name for provider in self._providers]

    async def aggregate(self, limit: int | None = None) -> list[AssetRecord]:
        """Merged assets from all providers, by volume descending, at most ``limit``.

        Never raises: a total outage yields an empty list.
        """
        if limit is None:
            limit = self._settings.default_limit
        limit = max(limit, 0)
        cache_key = make_cache_key("aggregated", "tokens", {"limit": limit})

        cached = await self._cache.get_records(cache_key)
        if cached is not None:
            logger.debug("aggregate_cache_hit", limit=limit)
            return cached

        results = await self._gather("fetch", lambda p: p.fetch(limit))
        merged = merge_records(record for result in results for record in result.records)
        ranked = sorted(merged, key=lambda r: r.volume, reverse=True)[:limit]

        await self._cache.set_records(cache_key, ranked)

        logger.info(
            "aggregation_complete",
            tokens=len(ranked),
            providers=len(self._providers),
            failed=[name for name, r in zip(self.provider_names, results) if not r.success],
        )
        return ranked

    async def search(self, query: str, limit: int = 20) -> list[AssetRecord]:
        """Search all providers and rank by relevance.

        Name matches rank first, then ticker matches (also within the name
        matches), then everything else; ties are broken by volume descending.
        Matching is case-insensitive substring matching. Rejecting an empty query is the caller's job.
        """
        cache_key = make_cache_key("search", "tokens", {"query": query, "limit": limit})

        cached = await self._cache.get_records(cache_key)
        if cached is not None:
            return cached

        results = await self._gather("search", lambda p: p.search(query))
        merged = merge_records(record for result in results for record in result.records)
        ranked = rank_by_relevance(merged, query)[:limit]

        await self._cache.set_records(cache_key, ranked, ttl=self._settings.search_ttl)

        logger.info("search_complete", query=query, tokens=len(ranked))
        return ranked

    async def get_filtered(self, query: QueryFilter) -> Page:
        """Filter, sort and paginate the aggregate universe. Bad cursors mean page one."""
        cache_key = make_cache_key("filtered", "tokens", query.cache_params())

        cached = await self._cache.get_page(cache_key)
        if cached is not None:
            return cached

        universe = await self.aggregate(self._settings.filter_universe_limit)
        page = run_query(universe, query)

        await self._cache.set_page(cache_key, page)
        return page

    async def invalidate_all(self) -> int:
        """Drop every cached entry in this service's namespace."""
        deleted = await self._cache.invalidate_pattern("*")
        logger.info("all_cache_invalidated", deleted=deleted)
        return deleted

    async def _gather(
        self,
        operation: str,
        call: Callable[[ProviderAdapter], Awaitable[ProviderResult]],
    ) -> list[ProviderResult]:
        """Run ``call`` on every adapter concurrently; results in adapter order."""
        return list(
            await asyncio.gather(
                *(self._guarded(provider, operation, call) for provider in self._providers)
            )
        )

    async def _guarded(
        self,
        provider: ProviderAdapter,
        operation: str,
        call: Callable[[ProviderAdapter], Awaitable[ProviderResult]],
    ) -> ProviderResult:
        """Convert any adapter failure into an empty, unsuccessful result."""
        try:
            result = await call(provider)
        except Exception as e:
            logger.error(
                "provider_failed",
                provider=provider.name,
                operation=operation,
                error=str(e),
            )
            return ProviderResult.failed(str(e))

        if not result.success:
            logger.warning(
                "provider_unsuccessful",
                provider=provider.name,
                operation=operation,
                error=result.error,
            )
            return ProviderResult(records=[], success=False, error=result.error)
        return result


def rank_by_relevance(records: list[AssetRecord], query: str) -> list[AssetRecord]:
    """Order records: name match, then ticker match, then by volume descending."""
    needle = query.lower()

    def sort_key(record: AssetRecord) -> tuple:
        name_match = needle in record.name.lower()
        ticker_match = needle in record.ticker.lower()
        return (not name_match, not ticker_match, -record.volume)

    return sorted(records, key=sort_key)
