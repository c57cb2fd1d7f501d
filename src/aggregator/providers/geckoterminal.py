"""GeckoTerminal adapter (JSON:API pool endpoints)."""

import time
from decimal import Decimal
from typing import Any

import httpx

from aggregator.logging import get_logger
from aggregator.models import AssetRecord, ProviderResult
from aggregator.providers.base import ProviderAdapter, non_negative, to_decimal, to_int
from aggregator.providers.retry import RetryPolicy

logger = get_logger(__name__)

NETWORK = "solana"
TRENDING_PATH = f"/networks/{NETWORK}/trending_pools"
SEARCH_PATH = "/search/pools"


class GeckoTerminalProvider(ProviderAdapter):
    """Trending/search pool adapter for the GeckoTerminal public API.

    Pools reference their base token through ``relationships``; token
    metadata comes from the ``included`` section requested with
    ``include=base_token``.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        rate_limit: int = 30,
        retry_policy: RetryPolicy | None = None,
        sol_usd_price: Decimal = Decimal("130"),
    ) -> None:
        super().__init__(client, rate_limit, retry_policy)
        self._sol_usd_price = sol_usd_price

    @property
    def name(self) -> str:
        return "geckoterminal"

    async def fetch(self, limit: int) -> ProviderResult:
        try:
            payload = await self._request(
                TRENDING_PATH,
                params={"include": "base_token,dex", "page": 1},
            )
            records = self._transform_pools(payload, "fetch")[:limit]
        except Exception as e:
            return self._failed("fetch", e)

        logger.info("geckoterminal_fetched", count=len(records))
        return ProviderResult.ok(records)

    async def search(self, query: str) -> ProviderResult:
        try:
            payload = await self._request(
                SEARCH_PATH,
                params={"query": query, "network": NETWORK, "include": "base_token,dex"},
            )
            records = self._transform_pools(payload, "search")
        except Exception as e:
            return self._failed("search", e)

        return ProviderResult.ok(records)

    def _transform_pools(self, payload: dict[str, Any], operation: str) -> list[AssetRecord]:
        tokens = {
            item["id"]: item.get("attributes") or {}
            for item in payload.get("included") or []
            if isinstance(item, dict) and item.get("type") == "token" and item.get("id")
        }

        def transform(pool: dict[str, Any]) -> AssetRecord | None:
            relationships = pool.get("relationships") or {}
            token_ref = ((relationships.get("base_token") or {}).get("data") or {}).get("id")
            token = tokens.get(token_ref)
            # pools whose base token was not included cannot be identified
            if not token or not token.get("address"):
                return None
            dex_ref = ((relationships.get("dex") or {}).get("data") or {}).get("id")
            return self._transform(pool.get("attributes") or {}, token, dex_ref)

        return self._transform_rows(payload.get("data") or [], transform, operation)

    def _transform(
        self, attrs: dict[str, Any], token: dict[str, Any], dex: str | None
    ) -> AssetRecord:
        price_usd = to_decimal(attrs.get("base_token_price_usd"))
        price_native = to_decimal(attrs.get("base_token_price_native_currency"))

        if price_native > 0 and price_usd > 0:
            sol_usd = price_usd / price_native
        else:
            sol_usd = self._sol_usd_price
            price_native = price_usd / sol_usd

        market_cap_usd = to_decimal(attrs.get("market_cap_usd")) or to_decimal(
            attrs.get("fdv_usd")
        )
        txns = (attrs.get("transactions") or {}).get("h24") or {}
        price_change = attrs.get("price_change_percentage") or {}

        return AssetRecord(
            address=token["address"],
            name=token.get("name") or token.get("symbol") or "",
            ticker=token.get("symbol") or "",
            price=non_negative(price_native),
            market_cap=non_negative(market_cap_usd / sol_usd),
            volume=non_negative(to_decimal((attrs.get("volume_usd") or {}).get("h24")) / sol_usd),
            liquidity=non_negative(to_decimal(attrs.get("reserve_in_usd")) / sol_usd),
            transaction_count=to_int(txns.get("buys")) + to_int(txns.get("sells")),
            price_1h_change=to_decimal(price_change.get("h1")),
            price_24h_change=to_decimal(price_change.get("h24")),
            protocol=dex or "geckoterminal",
            last_updated=time.time(),
            provenance=(self.name,),
        )
