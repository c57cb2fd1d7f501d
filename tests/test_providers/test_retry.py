"""Tests for the bounded exponential backoff retry helper."""

from unittest.mock import AsyncMock, patch

import pytest

from aggregator.providers.retry import RetryPolicy, with_retry

NO_DELAY = RetryPolicy(max_retries=3, initial_delay=0, max_delay=0)


class TestWithRetry:
    @pytest.mark.asyncio
    async def test_returns_first_success(self) -> None:
        fn = AsyncMock(return_value="ok")
        assert await with_retry(fn, NO_DELAY) == "ok"
        assert fn.await_count == 1

    @pytest.mark.asyncio
    async def test_retries_until_success(self) -> None:
        fn = AsyncMock(side_effect=[RuntimeError("boom"), RuntimeError("boom"), "ok"])
        assert await with_retry(fn, NO_DELAY) == "ok"
        assert fn.await_count == 3

    @pytest.mark.asyncio
    async def test_exhausted_retries_reraise_last_error(self) -> None:
        fn = AsyncMock(side_effect=[RuntimeError("1"), RuntimeError("2"), RuntimeError("3"), RuntimeError("last")])
        with pytest.raises(RuntimeError, match="last"):
            await with_retry(fn, NO_DELAY)
        # first attempt + 3 retries
        assert fn.await_count == 4

    @pytest.mark.asyncio
    async def test_backoff_doubles_and_caps(self) -> None:
        policy = RetryPolicy(max_retries=4, initial_delay=1.0, max_delay=3.0, backoff_factor=2.0)
        fn = AsyncMock(side_effect=RuntimeError("down"))
        sleep = AsyncMock()
        with patch("aggregator.providers.retry.asyncio.sleep", sleep):
            with pytest.raises(RuntimeError):
                await with_retry(fn, policy)
        assert [call.args[0] for call in sleep.await_args_list] == [1.0, 2.0, 3.0, 3.0]

    @pytest.mark.asyncio
    async def test_zero_retries_means_single_attempt(self) -> None:
        fn = AsyncMock(side_effect=ValueError("bad"))
        with pytest.raises(ValueError):
            await with_retry(fn, RetryPolicy(max_retries=0))
        assert fn.await_count == 1
