"""Unit tests for whale query functions."""

from datetime import datetime, timedelta, timezone

import pytest

from tests.fixtures.common import TOKEN_CONTRACT, WHALE_FROM, WHALE_TO
from whale_tracker.services import whale_query
from whale_tracker.services.whale_detector.detector import EvmWhaleDetector
from whale_tracker.services.whale_detector.models import (
    TokenInfo, WhaleAddress, WhaleTransaction
)
from whale_tracker.utils.error_handling import NotFoundError, ValidationError
from whale_tracker.utils.validation import to_checksum_address

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_tx(tx_hash, value="60", age=timedelta(minutes=5), token=None, sender=WHALE_FROM, value_usd=None):
    return WhaleTransaction(
        hash=tx_hash,
        chain="ethereum",
        from_address=sender,
        to_address=WHALE_TO,
        value=value,
        value_usd=value_usd if value_usd is not None else float(value) * 3000,
        gas_price="20000000000",
        timestamp=NOW - age,
        token=token,
    )


def make_token(symbol="PEPE", first_seen_age=timedelta(hours=1), address=TOKEN_CONTRACT):
    return TokenInfo(
        address=address.lower(), transfer_method="transfer", symbol=symbol,
        first_seen=NOW - first_seen_age,
    )


class TestFilterTransactions:
    """Test suite for filter_transactions."""

    def test_min_value(self):
        transactions = [make_tx("a", "60"), make_tx("b", "120")]
        result = whale_query.filter_transactions(transactions, min_value=100, now=NOW)
        assert [tx.hash for tx in result] == ["b"]

    def test_all_matches_everything(self):
        transactions = [make_tx("a"), make_tx("b", token=make_token())]
        assert len(whale_query.filter_transactions(transactions, token_filter="all", now=NOW)) == 2

    def test_newly_launched(self):
        """Only transfers of tokens first seen within a day match."""
        # Setup
        transactions = [
            make_tx("fresh", token=make_token(first_seen_age=timedelta(hours=2))),
            make_tx("old", token=make_token(first_seen_age=timedelta(days=3))),
            make_tx("native"),
        ]

        # Execute
        result = whale_query.filter_transactions(transactions, token_filter="newly-launched", now=NOW)

        # Verify
        assert [tx.hash for tx in result] == ["fresh"]

    def test_symbol_is_case_insensitive(self):
        transactions = [make_tx("a", token=make_token("PEPE")), make_tx("b", token=make_token("USDT"))]
        result = whale_query.filter_transactions(transactions, token_filter="pepe", now=NOW)
        assert [tx.hash for tx in result] == ["a"]


class TestTrendingTokens:
    """Test suite for trending_tokens."""

    def test_groups_by_contract(self):
        """Tokens are ranked by whale transfer count with unique senders."""
        # Setup
        other = "0x" + "4d" * 20
        transactions = [
            make_tx("1", token=make_token("PEPE"), value_usd=1_000),
            make_tx("2", token=make_token("PEPE"), sender=WHALE_FROM.upper().replace("0X", "0x"), value_usd=2_000),
            make_tx("3", token=make_token("PEPE"), sender=WHALE_TO, value_usd=3_000),
            make_tx("4", token=make_token("USDT", address=other), value_usd=500),
            make_tx("5", token=make_token("OLD"), age=timedelta(days=2)),
        ]

        # Execute
        trending = whale_query.trending_tokens(transactions, "24h", now=NOW)

        # Verify
        assert [t.symbol for t in trending] == ["PEPE", "USDT"]
        assert trending[0].whale_transactions == 3
        assert trending[0].total_volume == 6_000
        assert trending[0].unique_whales == 2

    def test_invalid_timeframe(self):
        with pytest.raises(ValidationError):
            whale_query.trending_tokens([], "2w", now=NOW)


class TestEngineQueries:
    """Test suite for queries over a detection engine."""

    @pytest.fixture
    def engine(self, eth_chain_config, mock_evm_client, mock_market_client, fanout, detection_config):
        engine = EvmWhaleDetector(eth_chain_config, mock_evm_client, mock_market_client, fanout, detection_config)
        engine.record_transaction(make_tx("old", "10", age=timedelta(days=2)))
        engine.record_transaction(make_tx("new", "90"))
        address = to_checksum_address(WHALE_FROM)
        engine.whale_addresses[address] = WhaleAddress(
            address=address, chain="ethereum", balance=500.0, balance_usd=1_500_000.0,
            first_seen=NOW, last_activity=NOW,
        )
        return engine

    def test_calculate_stats(self, engine):
        # Execute
        stats = whale_query.calculate_stats(engine, now=NOW)

        # Verify
        assert stats["total_whales"] == 1
        assert stats["total_transactions"] == 2
        assert stats["total_value"] == 100.0
        assert stats["last_24h"] == {"transactions": 1, "value": 90.0}
        assert stats["current_price"] == 3000.0

    def test_get_whale_address_accepts_lowercase(self, engine):
        record = whale_query.get_whale_address(engine, WHALE_FROM.lower())
        assert record.balance == 500.0

    def test_get_whale_address_unknown(self, engine):
        with pytest.raises(NotFoundError):
            whale_query.get_whale_address(engine, WHALE_TO)

    def test_get_whale_address_malformed(self, engine):
        with pytest.raises(ValidationError):
            whale_query.get_whale_address(engine, "0x1234")

    def test_address_transactions(self, engine):
        result = whale_query.get_address_transactions(engine, WHALE_TO)
        assert [tx.hash for tx in result] == ["new", "old"]

    def test_filter_addresses_sorted_by_balance(self):
        addresses = [
            WhaleAddress("a", "ethereum", 150.0, 0.0, NOW, NOW),
            WhaleAddress("b", "ethereum", 900.0, 0.0, NOW, NOW),
            WhaleAddress("c", "ethereum", 300.0, 0.0, NOW, NOW),
        ]
        result = whale_query.filter_addresses(addresses, min_balance=200)
        assert [a.address for a in result] == ["b", "c"]
