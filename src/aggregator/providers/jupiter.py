"""Jupiter Price API v2 adapter.

Jupiter only prices a fixed list of well-known mints: no market cap,
volume, liquidity, transaction count or search. Prices come back in USD
and are converted to SOL using SOL's own quote from the same response.
"""

import time
from decimal import Decimal
from typing import Any

import httpx

from aggregator.logging import get_logger
from aggregator.models import AssetRecord, ProviderResult
from aggregator.providers.base import ProviderAdapter, non_negative, to_decimal
from aggregator.providers.retry import RetryPolicy

logger = get_logger(__name__)

PRICE_PATH = "/price/v2"
SOL_MINT = "So11111111111111111111111111111111111111112"

# mint -> symbol, in request order
POPULAR_TOKENS: dict[str, str] = {
    "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v": "USDC",
    "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB": "USDT",
    SOL_MINT: "SOL",
    "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263": "BONK",
    "J1toso1uCk3RLmjorhTtrVwY9HJ7X8V9yYac6Y7kGCPn": "JitoSOL",
    "JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN": "JUP",
    "mSoLzYCxHdYgdzU16g5QSh3i5K3z3KZK7ytfqcJm7So": "mSOL",
    "bSo13r4TkiE4KumL71LsHTPpL2euBYLFx6h9HP3piy1": "bSOL",
}


class JupiterProvider(ProviderAdapter):
    """Price-only adapter for a curated set of Solana mints."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        rate_limit: int = 600,
        retry_policy: RetryPolicy | None = None,
        sol_usd_price: Decimal = Decimal("130"),
        timeout: float = 15.0,
    ) -> None:
        super().__init__(client, rate_limit, retry_policy)
        self._sol_usd_price = sol_usd_price
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "jupiter"

    async def fetch(self, limit: int) -> ProviderResult:
        mints = list(POPULAR_TOKENS)[: max(limit, 0)]
        if not mints:
            return ProviderResult.ok([])

        # SOL is always priced so USD quotes can be converted
        ids = mints if SOL_MINT in mints else [*mints, SOL_MINT]
        try:
            payload = await self._request(
                PRICE_PATH,
                params={"ids": ",".join(ids), "showExtraInfo": "true"},
                timeout=self._timeout,
            )
            prices: dict[str, Any] = payload.get("data") or {}
            sol_usd = self._sol_usd_price
            sol_entry = prices.get(SOL_MINT)
            if isinstance(sol_entry, dict) and to_decimal(sol_entry.get("price")) > 0:
                sol_usd = to_decimal(sol_entry["price"])
        except Exception as e:
            return self._failed("fetch", e)

        records = self._transform_rows(
            mints, lambda mint: self._transform(mint, prices.get(mint), sol_usd), "fetch"
        )
        logger.info("jupiter_fetched", count=len(records))
        return ProviderResult.ok(records)

    async def search(self, query: str) -> ProviderResult:
        return ProviderResult.ok([])

    def _transform(
        self, mint: str, entry: dict[str, Any] | None, sol_usd: Decimal
    ) -> AssetRecord | None:
        # unpriced mints come back as null
        if entry is None or entry.get("price") is None:
            return None
        price_usd = to_decimal(entry["price"])
        symbol = POPULAR_TOKENS.get(mint, mint[:8])

        return AssetRecord(
            address=mint,
            name=symbol,
            ticker=symbol,
            price=non_negative(price_usd / sol_usd),
            price_24h_change=_estimate_change(entry),
            protocol="Jupiter",
            last_updated=time.time(),
            provenance=(self.name,),
        )


def _estimate_change(entry: dict[str, Any]) -> Decimal:
    """Percent move from the last swapped buy price to the current quote."""
    extra = entry.get("extraInfo") or {}
    last_swapped = extra.get("lastSwappedPrice") or {}
    last_price = to_decimal(last_swapped.get("lastJupiterBuyPrice"))
    if last_price <= 0:
        return Decimal("0")
    current = to_decimal((extra.get("quotedPrice") or {}).get("buyPrice")) or to_decimal(
        entry.get("price")
    )
    return (current - last_price) / last_price * 100
