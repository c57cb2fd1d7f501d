"""Tests for environment-driven settings."""

from decimal import Decimal

from aggregator.config import CacheSettings, DetectorSettings, ProviderSettings


def test_defaults() -> None:
    providers = ProviderSettings()
    assert providers.dexscreener_rate_limit == 300
    assert providers.geckoterminal_rate_limit == 30
    assert providers.jupiter_rate_limit == 600
    assert providers.max_retries == 3

    cache = CacheSettings()
    assert cache.prefix == "meme-coin:"
    assert cache.ttl == 30
    assert cache.search_ttl == 60

    detector = DetectorSettings()
    assert detector.price_change_threshold == Decimal("0.05")
    assert detector.volume_spike_ratio == Decimal("1.5")
    assert detector.prune_missing is False


def test_env_overrides(monkeypatch) -> None:
    monkeypatch.setenv("CACHE_BACKEND", "memory")
    monkeypatch.setenv("CACHE_TTL", "5")
    monkeypatch.setenv("DETECTOR_PRUNE_MISSING", "true")
    monkeypatch.setenv("PROVIDER_SOL_USD_PRICE", "150.5")

    assert CacheSettings().backend == "memory"
    assert CacheSettings().ttl == 5
    assert DetectorSettings().prune_missing is True
    assert ProviderSettings().sol_usd_price == Decimal("150.5")
