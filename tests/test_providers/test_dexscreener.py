"""Tests for the DexScreener adapter."""

from decimal import Decimal

import httpx
import pytest

from aggregator.providers.dexscreener import SEARCH_PATH, DexScreenerProvider
from aggregator.providers.retry import RetryPolicy

BONK_PAIR = {
    "chainId": "solana",
    "dexId": "raydium",
    "baseToken": {"address": "BonkMint111", "name": "Bonk", "symbol": "BONK"},
    "priceNative": "0.0001",
    "priceUsd": "0.015",
    "marketCap": 1500000,
    "fdv": 2000000,
    "volume": {"h24": 300000},
    "liquidity": {"usd": 75000},
    "txns": {"h24": {"buys": 120, "sells": 80}},
    "priceChange": {"h1": 1.5, "h24": -4.2},
}

ETH_PAIR = {
    "chainId": "ethereum",
    "dexId": "uniswap",
    "baseToken": {"address": "0xpepe", "name": "Pepe", "symbol": "PEPE"},
    "priceNative": "0.000001",
    "priceUsd": "0.003",
}


def _provider(handler) -> tuple[DexScreenerProvider, httpx.AsyncClient]:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="https://api.dexscreener.com"
    )
    provider = DexScreenerProvider(
        client, rate_limit=0, retry_policy=RetryPolicy(max_retries=0)
    )
    return provider, client


class TestFetch:
    @pytest.mark.asyncio
    async def test_converts_usd_aggregates_to_sol(self) -> None:
        provider, client = _provider(
            lambda request: httpx.Response(200, json={"pairs": [BONK_PAIR]})
        )
        async with client:
            result = await provider.fetch(10)

        assert result.success
        [record] = result.records
        assert record.address == "BonkMint111"
        assert record.name == "Bonk"
        assert record.ticker == "BONK"
        assert record.price == Decimal("0.0001")
        # implied SOL/USD = 0.015 / 0.0001 = 150
        assert record.market_cap == Decimal("10000")
        assert record.volume == Decimal("2000")
        assert record.liquidity == Decimal("500")
        assert record.transaction_count == 200
        assert record.price_1h_change == Decimal("1.5")
        assert record.price_24h_change == Decimal("-4.2")
        assert record.protocol == "raydium"
        assert record.provenance == ("dexscreener",)

    @pytest.mark.asyncio
    async def test_searches_solana_and_drops_other_chains(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"pairs": [ETH_PAIR, BONK_PAIR]})

        provider, client = _provider(handler)
        async with client:
            result = await provider.fetch(10)

        assert seen[0].url.path == SEARCH_PATH
        assert seen[0].url.params["q"] == "solana"
        assert [r.address for r in result.records] == ["BonkMint111"]

    @pytest.mark.asyncio
    async def test_truncates_to_limit(self) -> None:
        pairs = [
            {**BONK_PAIR, "baseToken": {"address": f"Mint{i}", "symbol": f"T{i}"}}
            for i in range(5)
        ]
        provider, client = _provider(lambda request: httpx.Response(200, json={"pairs": pairs}))
        async with client:
            result = await provider.fetch(2)

        assert [r.address for r in result.records] == ["Mint0", "Mint1"]

    @pytest.mark.asyncio
    async def test_missing_fields_default_to_zero(self) -> None:
        sparse = {"chainId": "solana", "baseToken": {"address": "Sparse", "symbol": "SPR"}}
        provider, client = _provider(lambda request: httpx.Response(200, json={"pairs": [sparse]}))
        async with client:
            result = await provider.fetch(10)

        [record] = result.records
        assert record.name == "SPR"
        assert record.price == 0
        assert record.volume == 0
        assert record.transaction_count == 0
        assert record.protocol == ""

    @pytest.mark.asyncio
    async def test_fdv_used_when_market_cap_missing(self) -> None:
        pair = {**BONK_PAIR, "marketCap": None}
        provider, client = _provider(lambda request: httpx.Response(200, json={"pairs": [pair]}))
        async with client:
            result = await provider.fetch(10)

        # 2,000,000 USD / 150
        assert result.records[0].market_cap == Decimal("2000000") / Decimal("150")

    @pytest.mark.asyncio
    async def test_null_pairs_is_empty_success(self) -> None:
        provider, client = _provider(lambda request: httpx.Response(200, json={"pairs": None}))
        async with client:
            result = await provider.fetch(10)

        assert result.success
        assert result.records == []

    @pytest.mark.asyncio
    async def test_http_error_degrades(self) -> None:
        provider, client = _provider(lambda request: httpx.Response(429))
        async with client:
            result = await provider.fetch(10)

        assert result.success is False
        assert result.records == []
        assert result.error


class TestSearch:
    @pytest.mark.asyncio
    async def test_passes_query_through(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"pairs": [BONK_PAIR]})

        provider, client = _provider(handler)
        async with client:
            result = await provider.search("bonk")

        assert seen[0].url.params["q"] == "bonk"
        assert len(result.records) == 1


class TestMalformedRows:
    @pytest.mark.asyncio
    async def test_bad_row_is_skipped_and_good_rows_survive(self) -> None:
        bad_volume = {**BONK_PAIR, "baseToken": {"address": "BadVol"}, "volume": ["not", "a", "dict"]}
        fractional_txns = {
            **BONK_PAIR,
            "baseToken": {"address": "Frac", "symbol": "FRC"},
            "txns": {"h24": {"buys": "12.5", "sells": 3}},
        }
        pairs = [bad_volume, "garbage", {"chainId": "solana", "baseToken": []}, fractional_txns, BONK_PAIR]
        provider, client = _provider(lambda request: httpx.Response(200, json={"pairs": pairs}))
        async with client:
            result = await provider.fetch(10)

        assert result.success
        assert [r.address for r in result.records] == ["Frac", "BonkMint111"]
        assert result.records[0].transaction_count == 15

    @pytest.mark.asyncio
    async def test_unexpected_payload_shape_degrades(self) -> None:
        provider, client = _provider(lambda request: httpx.Response(200, json=[1, 2, 3]))
        async with client:
            result = await provider.search("bonk")

        assert result.success is False
        assert result.records == []
