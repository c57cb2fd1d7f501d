"""Upstream provider adapters -- fetch, normalize, rate limit and retry."""

from aggregator.providers.base import ProviderAdapter
from aggregator.providers.dexscreener import DexScreenerProvider
from aggregator.providers.geckoterminal import GeckoTerminalProvider
from aggregator.providers.jupiter import JupiterProvider
from aggregator.providers.retry import RetryPolicy, with_retry

__all__ = [
    "DexScreenerProvider",
    "GeckoTerminalProvider",
    "JupiterProvider",
    "ProviderAdapter",
    "RetryPolicy",
    "with_retry",
]
