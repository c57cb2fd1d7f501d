"""Custom exceptions for the asset aggregator.

None of these cross the public contracts of the orchestrator or the
change detector: provider errors become failed ProviderResults and cache
errors become misses.
"""


class AggregatorError(Exception):
    """Base exception for all aggregator errors."""


class ProviderError(AggregatorError):
    """Raised when an upstream provider call fails."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class ProviderRequestError(ProviderError):
    """Raised on a non-2xx response or an undecodable body."""

    def __init__(self, provider: str, message: str, status_code: int | None = None) -> None:
        super().__init__(provider, message)
        self.status_code = status_code


class CacheError(AggregatorError):
    """Raised by a key-value store when the backend is unavailable."""
