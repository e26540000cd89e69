"""Unit tests for TokenAcquisitionMonitor."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from tests.fixtures.common import SOL_DESTINATION
from whale_tracker.config import MonitorConfig
from whale_tracker.models.events import EventType
from whale_tracker.models.token import MonitoredWhale
from whale_tracker.services.token_monitor import TokenAcquisitionMonitor
from whale_tracker.services.token_scorer import TokenRiskScorer
from whale_tracker.utils.error_handling import MarketDataError, NetworkError

MINT_A = "MintA111111111111111111111111111111111111111"
MINT_B = "MintB111111111111111111111111111111111111111"
MINT_C = "MintC111111111111111111111111111111111111111"


def make_whale(initial=None, amount=120.0):
    now = datetime.now(timezone.utc)
    return MonitoredWhale(
        address=SOL_DESTINATION,
        initial_tokens=set(initial or ()),
        amount=amount,
        transaction_hash="sig-whale",
        started_at=now,
        expires_at=now + timedelta(hours=1),
    )


class TestTokenAcquisitionMonitor:
    """Test suite for TokenAcquisitionMonitor."""

    @pytest.fixture
    def mock_scorer(self):
        return AsyncMock(spec=TokenRiskScorer)

    @pytest.fixture
    def monitor(self, mock_solana_client, mock_market_client, mock_scorer, fanout, monitor_config):
        """Create a monitor over mocked clients."""
        return TokenAcquisitionMonitor(
            mock_solana_client, mock_market_client, mock_scorer, fanout, monitor_config
        )

    @pytest.mark.asyncio
    async def test_start_snapshots_holdings(self, monitor, mock_solana_client):
        """Starting a monitor records the wallet's current tokens."""
        # Setup
        mock_solana_client.get_token_accounts_by_owner.return_value = {MINT_A}

        # Execute
        started = await monitor.start_monitoring(SOL_DESTINATION, 120.0, "sig-whale")

        # Verify
        assert started is True
        whale = monitor.monitored[SOL_DESTINATION]
        assert whale.initial_tokens == {MINT_A}
        assert whale.expires_at - whale.started_at == timedelta(seconds=3600)
        await monitor.stop()

    @pytest.mark.asyncio
    async def test_one_monitor_per_address(self, monitor, mock_solana_client):
        """Concurrent starts for one address produce a single monitor."""
        # Setup
        async def slow_snapshot(owner):
            await asyncio.sleep(0.01)
            return {MINT_A}

        mock_solana_client.get_token_accounts_by_owner.side_effect = slow_snapshot

        # Execute
        results = await asyncio.gather(
            monitor.start_monitoring(SOL_DESTINATION, 120.0, "sig-1"),
            monitor.start_monitoring(SOL_DESTINATION, 300.0, "sig-2"),
        )

        # Verify
        assert sorted(results) == [False, True]
        assert len(monitor.get_monitored_whales()) == 1
        assert mock_solana_client.get_token_accounts_by_owner.await_count == 1
        await monitor.stop()

    @pytest.mark.asyncio
    async def test_failed_snapshot_does_not_start(self, monitor, mock_solana_client):
        """Without an initial snapshot the wallet is not monitored."""
        # Setup
        mock_solana_client.get_token_accounts_by_owner.side_effect = NetworkError("unreachable")

        # Execute
        started = await monitor.start_monitoring(SOL_DESTINATION, 120.0, "sig-whale")

        # Verify
        assert started is False
        assert not monitor.is_monitoring(SOL_DESTINATION)

    @pytest.mark.asyncio
    async def test_new_tokens_are_scored_once(self, monitor, mock_solana_client, mock_scorer):
        """A token missing from the baseline is reported exactly once."""
        # Setup
        whale = make_whale(initial={MINT_A})
        mock_solana_client.get_token_accounts_by_owner.return_value = {MINT_A, MINT_B}

        # Execute
        first = await monitor.poll(whale)
        second = await monitor.poll(whale)

        # Verify
        assert first == [MINT_B]
        assert second == []
        assert whale.polls == 2
        mock_scorer.analyze_whale_acquisition.assert_awaited_once_with(SOL_DESTINATION, MINT_B, "sig-whale")

    @pytest.mark.asyncio
    async def test_diff_uses_original_baseline(self, monitor, mock_solana_client):
        """Selling a baseline token does not hide tokens acquired later."""
        # Setup
        whale = make_whale(initial={MINT_A})
        mock_solana_client.get_token_accounts_by_owner.return_value = {MINT_C}

        # Execute
        reported = await monitor.poll(whale)

        # Verify
        assert reported == [MINT_C]

    @pytest.mark.asyncio
    async def test_poll_failure_reports_nothing(self, monitor, mock_solana_client, mock_scorer):
        """A failed holdings lookup counts as an empty poll."""
        # Setup
        whale = make_whale(initial={MINT_A})
        mock_solana_client.get_token_accounts_by_owner.side_effect = NetworkError("timeout")

        # Execute
        reported = await monitor.poll(whale)

        # Verify
        assert reported == []
        mock_scorer.analyze_whale_acquisition.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_buy_signal_when_pool_absorbs_transfer(self, monitor, mock_market_client, fanout):
        """A pool whose quote liquidity covers the transfer raises a buy signal."""
        # Setup
        subscription = fanout.subscribe()
        mock_market_client.get_solana_token_pairs.return_value = [
            {"pairAddress": "small", "liquidity": {"quote": 50}},
            {"pairAddress": "deep", "dexId": "raydium", "liquidity": {"quote": 400}},
        ]

        # Execute
        signal = await monitor.check_token_for_buy(make_whale(amount=120.0), MINT_B)

        # Verify
        assert signal.pair_address == "deep"
        assert signal.quote_liquidity == 400.0
        assert subscription.queue.get_nowait().type == EventType.TOKEN_BUY_ANALYSIS

    @pytest.mark.asyncio
    async def test_no_buy_signal_when_market_data_fails(self, monitor, mock_market_client):
        """Pool lookup failures are logged and yield no signal."""
        # Setup
        mock_market_client.get_solana_token_pairs.side_effect = MarketDataError("HTTP 500", http_status=500)

        # Execute
        signal = await monitor.check_token_for_buy(make_whale(), MINT_B)

        # Verify
        assert signal is None

    @pytest.mark.asyncio
    async def test_monitor_ends_after_window(self, mock_solana_client, mock_market_client, mock_scorer, fanout):
        """The monitor record is removed once the window has elapsed."""
        # Setup
        monitor = TokenAcquisitionMonitor(
            mock_solana_client, mock_market_client, mock_scorer, fanout,
            MonitorConfig(poll_interval=0.01, window=0.05),
        )

        # Execute
        await monitor.start_monitoring(SOL_DESTINATION, 120.0, "sig-whale")
        assert monitor.is_monitoring(SOL_DESTINATION)
        await asyncio.sleep(0.2)

        # Verify
        assert not monitor.is_monitoring(SOL_DESTINATION)
        assert mock_solana_client.get_token_accounts_by_owner.await_count >= 2
