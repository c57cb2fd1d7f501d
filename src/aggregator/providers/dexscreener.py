"""DexScreener adapter.

DexScreener has no "trending" endpoint, so ``fetch`` searches for "solana"
and keeps Solana pairs. ``priceNative`` is already quoted in SOL for SOL
pairs; the SOL/USD rate implied by ``priceUsd / priceNative`` converts the
USD-denominated aggregates (market cap, volume, liquidity).
"""

import time
from decimal import Decimal
from typing import Any

import httpx

from aggregator.logging import get_logger
from aggregator.models import AssetRecord, ProviderResult
from aggregator.providers.base import ProviderAdapter, non_negative, to_decimal, to_int
from aggregator.providers.retry import RetryPolicy

logger = get_logger(__name__)

SEARCH_PATH = "/latest/dex/search"
CHAIN_ID = "solana"


class DexScreenerProvider(ProviderAdapter):
    """Pair search adapter for the DexScreener public API.

    Args:
        client: HTTP client with the DexScreener base URL.
        rate_limit: Requests per minute (public limit is 300).
        retry_policy: Backoff policy.
        sol_usd_price: Fallback SOL/USD rate when a pair has no native price.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        rate_limit: int = 300,
        retry_policy: RetryPolicy | None = None,
        sol_usd_price: Decimal = Decimal("130"),
    ) -> None:
        super().__init__(client, rate_limit, retry_policy)
        self._sol_usd_price = sol_usd_price

    @property
    def name(self) -> str:
        return "dexscreener"

    async def fetch(self, limit: int) -> ProviderResult:
        try:
            pairs = await self._search_pairs("solana")
        except Exception as e:
            return self._failed("fetch", e)

        records = self._transform_rows(pairs[:limit], self._transform, "fetch")
        logger.info("dexscreener_fetched", count=len(records))
        return ProviderResult.ok(records)

    async def search(self, query: str) -> ProviderResult:
        try:
            pairs = await self._search_pairs(query)
        except Exception as e:
            return self._failed("search", e)

        return ProviderResult.ok(self._transform_rows(pairs, self._transform, "search"))

    async def _search_pairs(self, query: str) -> list[dict[str, Any]]:
        payload = await self._request(SEARCH_PATH, params={"q": query})
        pairs = payload.get("pairs") or []
        return [
            pair
            for pair in pairs
            if isinstance(pair, dict)
            and pair.get("chainId") == CHAIN_ID
            and isinstance(pair.get("baseToken"), dict)
            and pair["baseToken"].get("address")
        ]

    def _transform(self, pair: dict[str, Any]) -> AssetRecord:
        base_token = pair["baseToken"]
        price_native = to_decimal(pair.get("priceNative"))
        price_usd = to_decimal(pair.get("priceUsd"))

        if price_native > 0 and price_usd > 0:
            sol_usd = price_usd / price_native
        else:
            sol_usd = self._sol_usd_price

        market_cap_usd = to_decimal(pair.get("marketCap")) or to_decimal(pair.get("fdv"))
        volume_usd = to_decimal((pair.get("volume") or {}).get("h24"))
        liquidity_usd = to_decimal((pair.get("liquidity") or {}).get("usd"))
        txns = (pair.get("txns") or {}).get("h24") or {}
        price_change = pair.get("priceChange") or {}

        return AssetRecord(
            address=base_token["address"],
            name=base_token.get("name") or base_token.get("symbol") or "",
            ticker=base_token.get("symbol") or "",
            price=non_negative(price_native),
            market_cap=non_negative(market_cap_usd / sol_usd),
            volume=non_negative(volume_usd / sol_usd),
            liquidity=non_negative(liquidity_usd / sol_usd),
            transaction_count=to_int(txns.get("buys")) + to_int(txns.get("sells")),
            price_1h_change=to_decimal(price_change.get("h1")),
            price_24h_change=to_decimal(price_change.get("h24")),
            protocol=pair.get("dexId") or "",
            last_updated=time.time(),
            provenance=(self.name,),
        )
