"""
test_retry.py - 지수 백오프 재시도 테스트
"""

from unittest.mock import AsyncMock, patch

import pytest

from src.app.providers.base import CompletionError
from src.utils.retry import is_rate_limited, retry_with_exponential_backoff


class RateLimited(Exception):
    status_code = 429


class TestRetryWithExponentialBackoff:
    """재시도 횟수 / 지연 / retry_if."""

    @pytest.mark.asyncio
    async def test_first_try(self):
        func = AsyncMock(return_value="ok")

        assert await retry_with_exponential_backoff(func) == "ok"
        func.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        func = AsyncMock(side_effect=[ValueError("a"), ValueError("b"), "ok"])

        with patch("src.utils.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            result = await retry_with_exponential_backoff(
                func, max_retries=3, initial_delay=1.0, max_delay=1.5
            )

        assert result == "ok"
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 1.5]

    @pytest.mark.asyncio
    async def test_exhausted(self):
        func = AsyncMock(side_effect=ValueError("down"))

        with patch("src.utils.retry.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(ValueError, match="down"):
                await retry_with_exponential_backoff(func, max_retries=2)

        assert func.await_count == 3

    @pytest.mark.asyncio
    async def test_unlisted_exception_not_retried(self):
        func = AsyncMock(side_effect=KeyError("x"))

        with pytest.raises(KeyError):
            await retry_with_exponential_backoff(func, exceptions=(ValueError,))

        func.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_retry_if_false_propagates(self):
        func = AsyncMock(side_effect=ValueError("bad input"))

        with pytest.raises(ValueError):
            await retry_with_exponential_backoff(func, retry_if=is_rate_limited)

        func.assert_awaited_once()


class TestIsRateLimited:
    def test_status_code(self):
        assert is_rate_limited(RateLimited()) is True

    def test_message(self):
        assert is_rate_limited(RuntimeError("HTTP 429 Too Many Requests")) is True

    def test_wrapped_cause(self):
        error = CompletionError("COMPLETION_FAILED", "The AI service is busy")
        error.__cause__ = RateLimited()

        assert is_rate_limited(error) is True

    def test_other(self):
        assert is_rate_limited(RuntimeError("HTTP 500")) is False
