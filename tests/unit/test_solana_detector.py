"""Unit tests for the Solana whale detector."""

import asyncio
from unittest.mock import AsyncMock, call

import pytest

from tests.fixtures.common import LAMPORTS, SOL_DESTINATION, SOL_SOURCE
from whale_tracker.models.events import EventType
from whale_tracker.services.token_monitor import TokenAcquisitionMonitor
from whale_tracker.services.whale_detector.models import TransactionStatus
from whale_tracker.services.whale_detector.solana import SolanaWhaleDetector
from whale_tracker.utils.error_handling import BadDataError


class TestSolanaWhaleDetector:
    """Test suite for SolanaWhaleDetector."""

    @pytest.fixture
    def mock_monitor(self):
        monitor = AsyncMock(spec=TokenAcquisitionMonitor)
        monitor.start_monitoring.return_value = True
        return monitor

    @pytest.fixture
    def detector(self, sol_chain_config, mock_solana_client, mock_market_client, fanout,
                 detection_config, mock_monitor):
        """Create a SolanaWhaleDetector with mocked clients and monitor."""
        return SolanaWhaleDetector(
            sol_chain_config, mock_solana_client, mock_market_client, fanout,
            monitor=mock_monitor, detection_config=detection_config,
        )

    @pytest.mark.asyncio
    async def test_first_poll_only_records_slot(self, detector, mock_solana_client):
        """The first poll establishes the starting slot without fetching blocks."""
        # Execute
        processed = await detector.poll_once()

        # Verify
        assert processed == 0
        assert detector.last_processed_slot == 1000
        mock_solana_client.get_parsed_block.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_later_polls_process_slots_in_order(self, detector, mock_solana_client):
        """Every slot after the last processed one is fetched in order."""
        # Setup
        await detector.poll_once()
        mock_solana_client.get_slot.return_value = 1003
        mock_solana_client.get_parsed_block.return_value = {"transactions": []}

        # Execute
        processed = await detector.poll_once()

        # Verify
        assert processed == 3
        assert detector.last_processed_slot == 1003
        assert mock_solana_client.get_parsed_block.await_args_list == [call(1001), call(1002), call(1003)]

    @pytest.mark.asyncio
    async def test_skipped_slot_is_counted_and_passed(self, detector, mock_solana_client):
        """A slot without a block is logged, counted and skipped."""
        # Setup
        await detector.poll_once()
        mock_solana_client.get_slot.return_value = 1001
        mock_solana_client.get_parsed_block.side_effect = BadDataError("getBlock returned no data")

        # Execute
        processed = await detector.poll_once()

        # Verify
        assert processed == 1
        assert detector.last_processed_slot == 1001
        assert detector.block_errors == 1

    @pytest.mark.asyncio
    async def test_process_block_records_whale_transfers(self, detector, fanout, sample_solana_block):
        """Only successful transfers above the threshold are recorded."""
        # Setup
        subscription = fanout.subscribe()

        # Execute
        found = await detector.process_block(sample_solana_block, 55)

        # Verify
        assert [tx.hash for tx in found] == ["sig-whale"]
        transaction = found[0]
        assert transaction.value == "120"
        assert transaction.value_usd == 18_000.0
        assert transaction.from_address == SOL_SOURCE
        assert transaction.to_address == SOL_DESTINATION
        assert transaction.block_number == 55
        assert transaction.status == TransactionStatus.CONFIRMED
        assert subscription.queue.get_nowait().type == EventType.WHALE_TRANSACTION

    @pytest.mark.asyncio
    async def test_recipient_is_handed_to_monitor(self, detector, mock_monitor, sample_solana_block):
        """The recipient of a whale transfer starts a token acquisition monitor."""
        # Execute
        await detector.process_block(sample_solana_block, 55)
        await asyncio.sleep(0)

        # Verify
        mock_monitor.start_monitoring.assert_awaited_once_with(SOL_DESTINATION, 120.0, "sig-whale")

    @pytest.mark.asyncio
    async def test_duplicate_signature_is_ignored(self, detector, sample_solana_block):
        """A signature seen before is not recorded twice."""
        # Setup
        await detector.process_block(sample_solana_block, 55)

        # Execute
        found = await detector.process_block(sample_solana_block, 55)

        # Verify
        assert found == []
        assert len(detector.transactions) == 1

    @pytest.mark.asyncio
    async def test_whale_addresses_registered(self, detector, mock_solana_client, sample_solana_block):
        """Both parties are registered when they hold the whale balance."""
        # Setup
        mock_solana_client.get_balance.return_value = 5000 * LAMPORTS

        # Execute
        await detector.process_block(sample_solana_block, 55)

        # Verify
        assert set(detector.whale_addresses) == {SOL_SOURCE, SOL_DESTINATION}
        assert detector.whale_addresses[SOL_SOURCE].balance == 5000.0
