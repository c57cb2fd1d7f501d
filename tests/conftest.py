"""Shared test fixtures for the asset aggregator."""

import pytest

from aggregator.cache.service import CacheService
from aggregator.cache.store import InMemoryStore
from aggregator.config import CacheSettings
from aggregator.orchestrator import AggregationOrchestrator
from aggregator.providers.base import ProviderAdapter


@pytest.fixture
def store() -> InMemoryStore:
    """Fresh in-memory key-value store."""
    return InMemoryStore()


@pytest.fixture
def cache(store: InMemoryStore) -> CacheService:
    """CacheService over the in-memory store with test namespace."""
    return CacheService(store, prefix="test:", default_ttl=30)


@pytest.fixture
def cache_settings() -> CacheSettings:
    return CacheSettings(backend="memory", prefix="test:")


@pytest.fixture
def make_orchestrator(cache: CacheService, cache_settings: CacheSettings):
    """Factory building an orchestrator over the given stub providers."""

    def _make(*providers: ProviderAdapter) -> AggregationOrchestrator:
        return AggregationOrchestrator(list(providers), cache, cache_settings)

    return _make
