"""Process runtime wiring every client and service together."""

from typing import Any, Dict, Optional

from whale_tracker.clients.base_client import BaseRpcClient
from whale_tracker.clients.evm_client import EvmClient
from whale_tracker.clients.market_client import MarketDataClient
from whale_tracker.clients.solana_client import LAMPORTS_PER_SOL, SolanaClient
from whale_tracker.config import AppConfig, ChainConfig, get_app_config
from whale_tracker.logging_config import get_logger
from whale_tracker.services.event_bus import AlertFanout
from whale_tracker.services.launch_tracker.tracker import NewLaunchTracker
from whale_tracker.services.store import DocumentStore, InMemoryDocumentStore
from whale_tracker.services.token_monitor import TokenAcquisitionMonitor
from whale_tracker.services.token_scorer import TokenRiskScorer
from whale_tracker.services.whale_detector.detector import EvmWhaleDetector, WhaleDetectionEngine
from whale_tracker.services.whale_detector.solana import SolanaWhaleDetector
from whale_tracker.utils.error_handling import NotFoundError, ValidationError, WhaleTrackerError
from whale_tracker.utils.validation import validate_public_key

logger = get_logger(__name__)


class TrackerRuntime:
    """Owns the clients, detection engines and analysis services of one process."""

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        store: Optional[DocumentStore] = None,
        market_client: Optional[MarketDataClient] = None,
    ):
        """
        Args:
            config: Application configuration. Defaults to environment-based config.
            store: Document store. Defaults to an in-memory store.
            market_client: Market data client, mainly for tests
        """
        self.config = config or get_app_config()
        self.store = store or InMemoryDocumentStore()
        self.fanout = AlertFanout(self.store)
        self.market_client = market_client or MarketDataClient(self.config.market)
        self.scorer = TokenRiskScorer(self.market_client, self.fanout, self.config.scoring)
        self.launch_tracker = NewLaunchTracker(
            self.market_client, self.fanout, self.store, self.config.launch
        )

        self.clients: Dict[str, BaseRpcClient] = {}
        self.detectors: Dict[str, WhaleDetectionEngine] = {}
        self.monitor: Optional[TokenAcquisitionMonitor] = None
        self.started = False

        for name, chain_config in self.config.chains.items():
            self._build_chain(name, chain_config)

    def _build_chain(self, name: str, chain_config: ChainConfig):
        if chain_config.is_evm:
            client = EvmClient(chain_config)
            detector: WhaleDetectionEngine = EvmWhaleDetector(
                chain_config, client, self.market_client, self.fanout, self.config.detection
            )
        else:
            client = SolanaClient(chain_config)
            self.monitor = TokenAcquisitionMonitor(
                client, self.market_client, self.scorer, self.fanout, self.config.monitor
            )
            detector = SolanaWhaleDetector(
                chain_config, client, self.market_client, self.fanout,
                monitor=self.monitor, detection_config=self.config.detection,
            )
        self.clients[name] = client
        self.detectors[name] = detector

    def get_detector(self, chain: str) -> WhaleDetectionEngine:
        """
        Raises:
            NotFoundError: If whale detection is not enabled for the chain
        """
        detector = self.detectors.get(chain)
        if detector is None:
            raise NotFoundError(f"Chain not enabled: {chain}", details={"enabled": list(self.detectors)})
        return detector

    @property
    def active_whales(self) -> int:
        return len(self.monitor.monitored) if self.monitor is not None else 0

    def get_monitored_whales(self):
        return self.monitor.get_monitored_whales() if self.monitor is not None else []

    def get_alert_stats(self) -> Dict[str, Any]:
        return self.scorer.get_stats(self.active_whales)

    async def chain_status(self, chain: str) -> Dict[str, Any]:
        """Connection status of a chain's RPC node.

        Returns:
            ``{"status", "latest_block"}``; the block is None when disconnected
        """
        self.get_detector(chain)
        client = self.clients[chain]
        label = "Solana" if chain == "solana" else chain.capitalize()
        try:
            if isinstance(client, SolanaClient):
                latest = await client.get_slot()
            else:
                latest = await client.get_block_number()
        except WhaleTrackerError as e:
            logger.warning(f"{label} status check failed: {e.message}")
            return {"chain": chain, "status": "Disconnected", "latest_block": None}
        return {"chain": chain, "status": f"Connected to {label}", "latest_block": latest}

    async def get_solana_balance(self, pubkey: str) -> Dict[str, Any]:
        """
        Raises:
            ValidationError: If the public key is invalid
            NotFoundError: If Solana is not enabled
        """
        if not validate_public_key(pubkey):
            raise ValidationError("Invalid Solana public key", details={"pubkey": pubkey})
        self.get_detector("solana")
        lamports = await self.clients["solana"].get_balance(pubkey)
        return {
            "pubkey": pubkey,
            "balance_sol": lamports / LAMPORTS_PER_SOL,
            "balance_lamports": lamports,
        }

    async def start(self):
        """Start every detection engine and the launch tracker."""
        if self.started:
            return
        self.started = True
        for detector in self.detectors.values():
            await detector.start()
        self.launch_tracker.start()
        logger.info(f"Tracker runtime started for chains: {', '.join(self.detectors) or 'none'}")

    async def stop(self):
        """Stop background work and release network resources."""
        if not self.started:
            return
        self.started = False
        await self.launch_tracker.stop()
        for detector in self.detectors.values():
            await detector.stop()
        if self.monitor is not None:
            await self.monitor.stop()
        for client in self.clients.values():
            await client.close()
        await self.market_client.close()
        logger.info("Tracker runtime stopped")
