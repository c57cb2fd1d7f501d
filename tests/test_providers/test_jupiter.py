"""Tests for the Jupiter price adapter."""

from decimal import Decimal

import httpx
import pytest

from aggregator.providers.jupiter import (
    POPULAR_TOKENS,
    SOL_MINT,
    JupiterProvider,
    _estimate_change,
)
from aggregator.providers.retry import RetryPolicy

USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
USDT_MINT = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"


def _provider(handler, sol_usd_price: Decimal = Decimal("130")):
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="https://api.jup.ag"
    )
    provider = JupiterProvider(
        client,
        rate_limit=0,
        retry_policy=RetryPolicy(max_retries=0),
        sol_usd_price=sol_usd_price,
    )
    return provider, client


class TestFetch:
    @pytest.mark.asyncio
    async def test_converts_with_sol_quote_from_response(self) -> None:
        payload = {
            "data": {
                USDC_MINT: {"id": USDC_MINT, "price": "1"},
                SOL_MINT: {"id": SOL_MINT, "price": "200"},
            }
        }
        provider, client = _provider(lambda request: httpx.Response(200, json=payload))
        async with client:
            result = await provider.fetch(1)

        assert result.success
        [record] = result.records
        assert record.address == USDC_MINT
        assert record.ticker == "USDC"
        assert record.name == "USDC"
        assert record.price == Decimal("0.005")
        assert record.protocol == "Jupiter"
        assert record.volume == 0
        assert record.provenance == ("jupiter",)

    @pytest.mark.asyncio
    async def test_always_requests_sol(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"data": {}})

        provider, client = _provider(handler)
        async with client:
            await provider.fetch(2)

        ids = seen[0].url.params["ids"].split(",")
        assert ids == [USDC_MINT, USDT_MINT, SOL_MINT]

    @pytest.mark.asyncio
    async def test_uses_reference_rate_without_sol_quote(self) -> None:
        payload = {"data": {USDC_MINT: {"id": USDC_MINT, "price": "2"}}}
        provider, client = _provider(
            lambda request: httpx.Response(200, json=payload), sol_usd_price=Decimal("100")
        )
        async with client:
            result = await provider.fetch(1)

        assert result.records[0].price == Decimal("0.02")

    @pytest.mark.asyncio
    async def test_skips_null_entries(self) -> None:
        payload = {
            "data": {
                USDC_MINT: None,
                USDT_MINT: {"id": USDT_MINT, "price": "1"},
                SOL_MINT: {"id": SOL_MINT, "price": "100"},
            }
        }
        provider, client = _provider(lambda request: httpx.Response(200, json=payload))
        async with client:
            result = await provider.fetch(3)

        assert [r.ticker for r in result.records] == ["USDT", "SOL"]

    @pytest.mark.asyncio
    async def test_zero_limit_makes_no_request(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(200, json={"data": {}})

        provider, client = _provider(handler)
        async with client:
            result = await provider.fetch(0)

        assert result.success
        assert calls == 0

    @pytest.mark.asyncio
    async def test_limit_caps_at_known_mints(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"data": {}})

        provider, client = _provider(handler)
        async with client:
            result = await provider.fetch(100)

        assert result.success
        assert seen[0].url.params["ids"].split(",") == list(POPULAR_TOKENS)

    @pytest.mark.asyncio
    async def test_failure_degrades(self) -> None:
        provider, client = _provider(lambda request: httpx.Response(500))
        async with client:
            result = await provider.fetch(5)

        assert result.success is False
        assert result.records == []


class TestSearch:
    @pytest.mark.asyncio
    async def test_search_is_unsupported_and_empty(self) -> None:
        provider, client = _provider(lambda request: httpx.Response(500))
        async with client:
            result = await provider.search("bonk")

        assert result.success
        assert result.records == []


class TestEstimateChange:
    def test_from_quoted_buy_price(self) -> None:
        entry = {
            "price": "1.00",
            "extraInfo": {
                "lastSwappedPrice": {"lastJupiterBuyPrice": "1.00"},
                "quotedPrice": {"buyPrice": "1.10"},
            },
        }
        assert _estimate_change(entry) == Decimal("10")

    def test_falls_back_to_price(self) -> None:
        entry = {"price": "0.5", "extraInfo": {"lastSwappedPrice": {"lastJupiterBuyPrice": "1"}}}
        assert _estimate_change(entry) == Decimal("-50")

    def test_no_history_is_zero(self) -> None:
        assert _estimate_change({"price": "1"}) == 0


class TestMalformedRows:
    @pytest.mark.asyncio
    async def test_entries_without_id_use_requested_mint(self) -> None:
        payload = {"data": {USDC_MINT: {"price": "1"}, SOL_MINT: {"price": "100"}}}
        provider, client = _provider(lambda request: httpx.Response(200, json=payload))
        async with client:
            result = await provider.fetch(1)

        assert [r.address for r in result.records] == [USDC_MINT]

    @pytest.mark.asyncio
    async def test_bad_entry_is_skipped(self) -> None:
        payload = {
            "data": {
                USDC_MINT: ["not", "an", "entry"],
                USDT_MINT: {"price": "1", "extraInfo": "broken"},
                SOL_MINT: {"price": "100"},
            }
        }
        provider, client = _provider(lambda request: httpx.Response(200, json=payload))
        async with client:
            result = await provider.fetch(3)

        assert result.success
        assert [r.ticker for r in result.records] == ["SOL"]

    @pytest.mark.asyncio
    async def test_unexpected_payload_shape_degrades(self) -> None:
        provider, client = _provider(lambda request: httpx.Response(200, json={"data": "oops"}))
        async with client:
            result = await provider.fetch(3)

        assert result.success is False
