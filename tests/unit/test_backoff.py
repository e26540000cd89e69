"""Unit tests for retry_with_backoff."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from whale_tracker.utils.backoff import is_retryable_error, retry_with_backoff
from whale_tracker.utils.error_handling import MarketDataError


class TestIsRetryableError:
    """Test suite for is_retryable_error."""

    @pytest.mark.parametrize("status,expected", [
        (400, False),
        (404, False),
        (429, True),
        (500, True),
        (503, True),
    ])
    def test_market_data_status(self, status, expected):
        assert is_retryable_error(MarketDataError("failed", http_status=status)) is expected

    def test_transport_failures_are_retryable(self):
        assert is_retryable_error(MarketDataError("connection reset"))
        assert is_retryable_error(httpx.ConnectTimeout("timed out"))


class TestRetryWithBackoff:
    """Test suite for retry_with_backoff."""

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        """Transient failures are retried with growing delays."""
        # Setup
        operation = AsyncMock(side_effect=[
            MarketDataError("busy", http_status=503),
            MarketDataError("busy", http_status=503),
            "ok",
        ])

        # Execute
        with patch("whale_tracker.utils.backoff.asyncio.sleep", new=AsyncMock()) as sleep:
            result = await retry_with_backoff(operation, attempts=5, base_delay=0.5, max_jitter=0)

        # Verify
        assert result == "ok"
        assert operation.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_client_error_fails_fast(self):
        """A 4xx other than 429 is raised without another attempt."""
        # Setup
        operation = AsyncMock(side_effect=MarketDataError("not found", http_status=404))

        # Execute
        with patch("whale_tracker.utils.backoff.asyncio.sleep", new=AsyncMock()) as sleep:
            with pytest.raises(MarketDataError):
                await retry_with_backoff(operation, attempts=5)

        # Verify
        assert operation.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_raises_last_error_when_exhausted(self):
        """The last error propagates once every attempt failed."""
        # Setup
        operation = AsyncMock(side_effect=MarketDataError("down", http_status=502))

        # Execute
        with patch("whale_tracker.utils.backoff.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(MarketDataError) as exc_info:
                await retry_with_backoff(operation, attempts=3)

        # Verify
        assert operation.await_count == 3
        assert exc_info.value.http_status == 502
