"""Common test fixtures for whale tracker tests.

This module provides fixtures that can be reused across different test modules.
"""

import time
from unittest.mock import AsyncMock

import pytest

from whale_tracker.clients.evm_client import EvmClient
from whale_tracker.clients.market_client import MarketDataClient
from whale_tracker.clients.solana_client import SolanaClient
from whale_tracker.config import (
    ChainConfig, DetectionConfig, LaunchConfig, MonitorConfig, ScoringConfig
)
from whale_tracker.services.event_bus import AlertFanout
from whale_tracker.services.store import InMemoryDocumentStore

WHALE_FROM = "0x" + "1a" * 20
WHALE_TO = "0x" + "2b" * 20
TOKEN_CONTRACT = "0x" + "3c" * 20
SOL_SOURCE = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"
SOL_DESTINATION = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
SOL_MINT = "So11111111111111111111111111111111111111112"

ONE_ETHER = 10 ** 18
LAMPORTS = 10 ** 9


def wei(amount: float) -> str:
    """Hex-encoded wei quantity for an ether amount."""
    return hex(int(round(amount * 10 ** 6)) * 10 ** 12)


def make_evm_tx(tx_hash="0xaaa1", value_eth=60.0, sender=WHALE_FROM, recipient=WHALE_TO, call_data="0x"):
    """Build a raw EVM transaction object."""
    return {
        "hash": tx_hash,
        "from": sender,
        "to": recipient,
        "value": wei(value_eth),
        "gasPrice": hex(20 * 10 ** 9),
        "input": call_data,
    }


def make_pair(
    chain="solana",
    token_address="TokenMint111111111111111111111111111111111",
    symbol="NEW",
    quote="SOL",
    age_minutes=30.0,
    liquidity=60_000.0,
    buys=40,
    sells=10,
    volume_m5=0.0,
    volume_h1=8_000.0,
    volume_h24=20_000.0,
    change_m5=2.0,
    change_h24=20.0,
    market_cap=50_000.0,
    fdv=50_000.0,
    now_ms=None,
):
    """Build a Dexscreener pair created ``age_minutes`` ago."""
    now_ms = now_ms if now_ms is not None else time.time() * 1000
    return {
        "chainId": chain,
        "dexId": "raydium",
        "url": f"https://dexscreener.com/{chain}/{token_address}",
        "pairAddress": f"pair-{token_address}",
        "baseToken": {"address": token_address, "name": f"{symbol} Token", "symbol": symbol},
        "quoteToken": {"address": "quote", "name": quote, "symbol": quote},
        "priceUsd": "0.0012",
        "txns": {
            "m5": {"buys": 6, "sells": 2},
            "h1": {"buys": buys, "sells": sells},
        },
        "volume": {"m5": volume_m5, "h1": volume_h1, "h24": volume_h24},
        "priceChange": {"m5": change_m5, "h1": 5.0, "h6": 10.0, "h24": change_h24},
        "liquidity": {"usd": liquidity, "base": 1_000_000, "quote": 300},
        "fdv": fdv,
        "marketCap": market_cap,
        "pairCreatedAt": int(now_ms - age_minutes * 60_000),
    }


@pytest.fixture
def eth_chain_config():
    """Ethereum chain configuration with a 50 ETH threshold."""
    return ChainConfig(
        name="ethereum",
        rpc_url="https://eth.example.org",
        native_symbol="ETH",
        coingecko_id="ethereum",
        decimals=18,
        min_transaction_value=50.0,
        min_whale_balance=100.0,
        default_price_usd=3000.0,
    )


@pytest.fixture
def sol_chain_config():
    """Solana chain configuration with a 50 SOL threshold."""
    return ChainConfig(
        name="solana",
        rpc_url="https://sol.example.org",
        native_symbol="SOL",
        coingecko_id="solana",
        decimals=9,
        min_transaction_value=50.0,
        min_whale_balance=1000.0,
        default_price_usd=150.0,
    )


@pytest.fixture
def detection_config():
    """Detection configuration without batch pauses."""
    return DetectionConfig(
        batch_size=10,
        batch_delay=0.0,
        max_tracked_transactions=1000,
        max_block_transactions=50,
        breaker_max_errors=3,
        breaker_cooldown=300.0,
    )


@pytest.fixture
def monitor_config():
    return MonitorConfig(poll_interval=10.0, window=3600.0)


@pytest.fixture
def scoring_config():
    return ScoringConfig()


@pytest.fixture
def launch_config():
    """Launch configuration without a pause between discovery groups."""
    return LaunchConfig(discovery_pause=0.0)


@pytest.fixture
def mock_evm_client():
    """Create a mock EVM client."""
    client = AsyncMock(spec=EvmClient)
    client.get_balance.return_value = 0
    client.call.return_value = None
    client.get_transaction.return_value = None
    client.get_block_number.return_value = 100
    return client


@pytest.fixture
def mock_solana_client():
    """Create a mock Solana client."""
    client = AsyncMock(spec=SolanaClient)
    client.get_balance.return_value = 0
    client.get_slot.return_value = 1000
    client.get_token_accounts_by_owner.return_value = set()
    return client


@pytest.fixture
def mock_market_client():
    """Create a mock market data client."""
    client = AsyncMock(spec=MarketDataClient)
    client.get_native_price.return_value = None
    client.get_token_pairs.return_value = []
    client.get_solana_token_pairs.return_value = []
    client.get_discovery_tokens.return_value = []
    return client


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def fanout(store):
    """Alert fan-out writing to the in-memory store."""
    return AlertFanout(store)


@pytest.fixture
def sample_block():
    """A confirmed EVM block with one whale and one small transfer."""
    return {
        "number": hex(100),
        "timestamp": hex(1_700_000_000),
        "transactions": [
            make_evm_tx("0xb10c1", 75.0),
            make_evm_tx("0xb10c2", 0.5),
        ],
    }


@pytest.fixture
def sample_solana_block():
    """A parsed Solana block with a whale transfer, a small one and a failed one."""

    def transfer(signature, lamports, err=None):
        return {
            "meta": {"err": err},
            "transaction": {
                "signatures": [signature],
                "message": {
                    "instructions": [{
                        "program": "system",
                        "parsed": {
                            "type": "transfer",
                            "info": {
                                "source": SOL_SOURCE,
                                "destination": SOL_DESTINATION,
                                "lamports": lamports,
                            },
                        },
                    }],
                },
            },
        }

    return {
        "blockTime": 1_700_000_000,
        "transactions": [
            transfer("sig-whale", 120 * LAMPORTS),
            transfer("sig-small", 2 * LAMPORTS),
            transfer("sig-failed", 500 * LAMPORTS, err={"InstructionError": [0, "Custom"]}),
        ],
    }
