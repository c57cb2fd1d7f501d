"""Abstract provider adapter with per-instance rate limiting and retry.

Aggregation code depends only on this interface; upstream payload shapes
stay inside the concrete adapters.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from aggregator.exceptions import ProviderRequestError
from aggregator.logging import get_logger
from aggregator.models import AssetRecord, ProviderResult
from aggregator.providers.retry import RetryPolicy, with_retry

logger = get_logger(__name__)

_ZERO = Decimal("0")


class ProviderAdapter(ABC):
    """Fetches upstream payloads and normalizes them into AssetRecords.

    Each instance throttles itself to ``rate_limit`` requests per minute,
    independently of other adapters, and retries failed requests under
    ``retry_policy``. The HTTP client is owned by the caller.

    Args:
        client: HTTP client configured with the provider's base URL.
        rate_limit: Request budget in requests per minute.
        retry_policy: Backoff policy applied to every request.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        rate_limit: int,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._client = client
        self._min_interval = 60.0 / rate_limit if rate_limit > 0 else 0.0
        self._retry_policy = retry_policy or RetryPolicy()
        self._last_request_at: float | None = None
        self._rate_lock = asyncio.Lock()

    @property
    @abstractmethod
    def name(self) -> str:
        """Source name recorded in provenance."""
        ...

    @abstractmethod
    async def fetch(self, limit: int) -> ProviderResult:
        """Fetch up to ``limit`` popular assets. Never raises."""
        ...

    @abstractmethod
    async def search(self, query: str) -> ProviderResult:
        """Search assets by free text. Never raises."""
        ...

    async def _request(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Issue a rate-limited GET with retry and return the decoded JSON body."""

        async def attempt() -> Any:
            await self._wait_for_slot()
            kwargs: dict[str, Any] = {"params": params}
            if timeout is not None:
                kwargs["timeout"] = timeout
            try:
                response = await self._client.get(path, **kwargs)
            except httpx.HTTPError as e:
                raise ProviderRequestError(self.name, str(e) or type(e).__name__) from e
            if response.status_code >= 400:
                raise ProviderRequestError(
                    self.name,
                    f"HTTP {response.status_code} for {path}",
                    status_code=response.status_code,
                )
            try:
                return response.json()
            except ValueError as e:
                raise ProviderRequestError(self.name, f"invalid JSON from {path}") from e

        return await with_retry(attempt, self._retry_policy, operation=f"{self.name}:{path}")

    async def _wait_for_slot(self) -> None:
        """Sleep until the minimum inter-request interval has elapsed."""
        async with self._rate_lock:
            if self._last_request_at is not None:
                elapsed = time.monotonic() - self._last_request_at
                if elapsed < self._min_interval:
                    await asyncio.sleep(self._min_interval - elapsed)
            self._last_request_at = time.monotonic()

    def _failed(self, operation: str, error: Exception) -> ProviderResult:
        logger.error(
            "provider_request_failed",
            provider=self.name,
            operation=operation,
            error=str(error),
        )
        return ProviderResult.failed(str(error))

    def _transform_rows(
        self,
        rows: Iterable[Any],
        transform: Callable[[Any], AssetRecord | None],
        operation: str,
    ) -> list[AssetRecord]:
        """Apply ``transform`` to each upstream row, skipping rows it cannot parse.

        A transform returning None drops the row silently (not an asset we
        can use); one raising drops it with a warning. Either way the other
        rows of the same response survive.
        """
        records: list[AssetRecord] = []
        for row in rows:
            try:
                record = transform(row)
            except (KeyError, IndexError, TypeError, ValueError, AttributeError, ArithmeticError) as e:
                logger.warning(
                    "provider_row_skipped",
                    provider=self.name,
                    operation=operation,
                    error=f"{type(e).__name__}: {e}",
                )
                continue
            if record is not None:
                records.append(record)
        return records


def to_decimal(value: Any) -> Decimal:
    """Parse an upstream number (str, int, float or None) into a Decimal, 0 on garbage."""
    if value is None or isinstance(value, bool):
        return _ZERO
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return _ZERO
    return result if result.is_finite() else _ZERO


def non_negative(value: Decimal) -> Decimal:
    return value if value > 0 else _ZERO


def to_int(value: Any) -> int:
    """Parse an upstream count, truncating fractional values; 0 on garbage or negatives."""
    return max(int(to_decimal(value)), 0)
