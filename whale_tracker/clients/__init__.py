"""Clients for chain RPC nodes and market data APIs."""

from whale_tracker.clients.base_client import BaseRpcClient
from whale_tracker.clients.evm_client import EvmClient
from whale_tracker.clients.market_client import MarketDataClient
from whale_tracker.clients.solana_client import SolanaClient
from whale_tracker.clients.websocket import EvmSubscriptionClient

__all__ = [
    "BaseRpcClient",
    "EvmClient",
    "EvmSubscriptionClient",
    "MarketDataClient",
    "SolanaClient",
]
