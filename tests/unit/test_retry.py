import pytest
import httpx
from unittest.mock import AsyncMock, patch

from vcbroker.core.retry import retry_with_backoff, should_retry_error


def _status_error(code):
    request = httpx.Request("GET", "https://sandbox.test/x")
    response = httpx.Response(code, request=request)
    return httpx.HTTPStatusError("boom", request=request, response=response)


class TestShouldRetryError:

    def test_timeouts_and_network_errors_are_retried(self):
        assert should_retry_error(httpx.ReadTimeout("slow"))
        assert should_retry_error(httpx.ConnectError("refused"))

    def test_5xx_is_retried_4xx_is_not(self):
        assert should_retry_error(_status_error(503))
        assert not should_retry_error(_status_error(400))
        assert not should_retry_error(_status_error(404))

    def test_our_own_errors_are_not_retried(self):
        assert not should_retry_error(ValueError("bug"))


class TestRetryWithBackoff:

    @pytest.mark.asyncio
    async def test_returns_first_success(self):
        func = AsyncMock(return_value="ok")
        assert await retry_with_backoff(func, "a", max_attempts=3, initial_delay=0) == "ok"
        func.assert_awaited_once_with("a")

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        func = AsyncMock(side_effect=[httpx.ConnectError("down"), _status_error(502), "ok"])
        with patch("vcbroker.core.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            assert await retry_with_backoff(func, max_attempts=3, initial_delay=0.5, jitter=False) == "ok"
        assert func.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        func = AsyncMock(side_effect=httpx.ReadTimeout("slow"))
        with patch("vcbroker.core.retry.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(httpx.ReadTimeout):
                await retry_with_backoff(func, max_attempts=3, initial_delay=0)
        assert func.await_count == 3

    @pytest.mark.asyncio
    async def test_non_retryable_error_raises_immediately(self):
        func = AsyncMock(side_effect=ValueError("bad"))
        with pytest.raises(ValueError):
            await retry_with_backoff(func, max_attempts=5, initial_delay=0)
        assert func.await_count == 1

    @pytest.mark.asyncio
    async def test_delay_is_capped(self):
        func = AsyncMock(side_effect=[httpx.ConnectError("x"), httpx.ConnectError("x"), "ok"])
        with patch("vcbroker.core.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            await retry_with_backoff(func, max_attempts=3, initial_delay=10, max_delay=12, jitter=False)
        assert [c.args[0] for c in sleep.await_args_list] == [10, 12]
