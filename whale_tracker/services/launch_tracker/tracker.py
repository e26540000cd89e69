"""New launch tracker.

Discovers freshly created trading pairs from the Dexscreener boosted and
profile feeds, scores them and publishes the ones that qualify. Tracked
tokens are then rescanned for volume spikes and bonding-curve progress.
"""

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Set

from whale_tracker.clients.market_client import MarketDataClient
from whale_tracker.config import LaunchConfig, get_launch_config
from whale_tracker.logging_config import get_logger, log_with_context
from whale_tracker.models.events import EventType
from whale_tracker.services.base_service import BaseService
from whale_tracker.services.event_bus import AlertFanout
from whale_tracker.services.launch_tracker.models import (
    BondingCurveStatus, Launch, WhaleMagnetEvent
)
from whale_tracker.services.launch_tracker.scoring import (
    BONDING_CURVE_ALERT_PROGRESS, analyze_bonding_curve, create_magnet_event,
    detect_whale_activity, now_ms, pair_age_minutes, should_alert_magnet,
    should_alert_new_launch
)
from whale_tracker.services.store import DocumentStore
from whale_tracker.utils.error_handling import MarketDataError, PersistenceError

logger = get_logger(__name__)

KNOWN_WHALE_WALLETS = (
    "0x8315177aB297bA92A06054cE80a67Ed4DBd7ed3a",  # Bitfinex
    "0x28C6c06298d514Db089934071355E5743bf21d60",  # Binance
    "0xDFd5293D8e347dFe59E90eFd55b2956a1343963d",  # Binance 2
    "A1phaBetSoup111111111111111111111111111111",
)


def token_key(chain: str, token_address: str) -> str:
    return f"{chain}:{token_address}"


class NewLaunchTracker(BaseService):
    """Surfaces newly created pairs and whale magnets across chains."""

    def __init__(
        self,
        market_client: MarketDataClient,
        fanout: AlertFanout,
        store: Optional[DocumentStore] = None,
        config: Optional[LaunchConfig] = None,
    ):
        super().__init__(logger)
        self.market_client = market_client
        self.fanout = fanout
        self.store = store
        # Own copy; update_thresholds mutates it
        base_config = config or get_launch_config()
        self.config = replace(
            base_config,
            target_chains=list(base_config.target_chains),
            target_quote_symbols=list(base_config.target_quote_symbols),
        )

        self.analyzed_tokens: Set[str] = set()
        self.tracked_tokens: Dict[str, WhaleMagnetEvent] = {}
        self.bonding_curves: Dict[str, BondingCurveStatus] = {}
        self.whale_wallets: Set[str] = {w.lower() for w in KNOWN_WHALE_WALLETS}
        logger.info(f"Initialized {len(self.whale_wallets)} known whale wallets")

    def is_target_pair(self, pair: Dict[str, Any]) -> bool:
        quote = (pair.get("quoteToken") or {}).get("symbol")
        return quote in self.config.target_quote_symbols

    async def fetch_token_pairs(self, chain: str, token_address: str) -> List[Dict[str, Any]]:
        """Pairs of a token on one chain; empty when the lookup fails."""
        try:
            return await self.market_client.get_token_pairs(token_address, chain)
        except MarketDataError as e:
            logger.error(f"Failed to fetch pairs for {token_address} on {chain}: {e.message}")
            return []

    async def fetch_candidate_pairs(self, chains: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        """Fetch the pairs of every discovered candidate token.

        Pair lookups run in groups of ``discovery_concurrency`` with a short
        pause between groups.

        Args:
            chains: Optional chain allow-list for candidates

        Returns:
            Pairs on each candidate's own chain
        """
        candidates = await self.market_client.get_discovery_tokens()
        if chains is not None:
            candidates = [c for c in candidates if c["chainId"] in chains]
        if not candidates:
            logger.info("No candidate tokens discovered from boosted/profile sources")
            return []

        size = max(1, self.config.discovery_concurrency)
        pairs: List[Dict[str, Any]] = []
        for start in range(0, len(candidates), size):
            if start:
                await asyncio.sleep(self.config.discovery_pause)
            group = candidates[start:start + size]
            results = await asyncio.gather(*(
                self.fetch_token_pairs(c["chainId"], c["tokenAddress"]) for c in group
            ))
            for result in results:
                pairs.extend(result)
        return pairs

    async def fetch_new_launch_pairs(self) -> List[Dict[str, Any]]:
        """Candidate pairs created within the new-launch window."""
        now = now_ms()
        pairs = await self.fetch_candidate_pairs()
        recent = []
        for pair in pairs:
            age = pair_age_minutes(pair, now)
            if age is not None and age <= self.config.new_launch_threshold_minutes:
                recent.append(pair)
        logger.info(f"Found {len(recent)} recently launched pairs")
        return recent

    async def _persist_launch(self, event: WhaleMagnetEvent, pair: Dict[str, Any]):
        if self.store is None:
            return
        try:
            await self.store.upsert_launch(Launch.from_event(event, pair))
        except PersistenceError as e:
            logger.error(f"Failed to persist launch {event.key}: {str(e)}")

    def _track(self, event: WhaleMagnetEvent, label: str):
        self.tracked_tokens[event.key] = event
        self.analyzed_tokens.add(event.key)
        log_with_context(
            logger, "warning", f"{label}: {event.token_symbol} on {event.chain}",
            url=event.pair_url, liquidity=event.liquidity, buys=event.buys_h1,
            sells=event.sells_h1, age_minutes=event.age_minutes, risk=event.risk_score,
            honeypot=event.is_honeypot, whale_invested=event.is_whale_invested,
        )

    async def analyze_new_launch(self, pair: Dict[str, Any]) -> Optional[WhaleMagnetEvent]:
        """Evaluate a recent pair against the new-launch thresholds.

        A qualifying pair is tracked, persisted and published as
        ``new_launch`` followed by ``whale_magnet``.

        Returns:
            The event when the pair qualified
        """
        key = token_key(pair.get("chainId", ""), (pair.get("baseToken") or {}).get("address", ""))
        if key in self.analyzed_tokens or not self.is_target_pair(pair):
            return None

        event = create_magnet_event(pair, True, self.config)
        if event is None or not should_alert_new_launch(event, self.config):
            return None

        self._track(event, "New launch alert")
        self.fanout.publish(EventType.NEW_LAUNCH, event)
        await self._persist_launch(event, pair)
        self.fanout.publish(EventType.WHALE_MAGNET, event)
        return event

    async def track_new_launches(self) -> List[WhaleMagnetEvent]:
        """Run one new-launch scan."""
        logger.info("Scanning for new token launches")
        found = []
        for pair in await self.fetch_new_launch_pairs():
            event = await self.analyze_new_launch(pair)
            if event is not None:
                found.append(event)
        return found

    async def analyze_magnet_pair(self, pair: Dict[str, Any]) -> Optional[WhaleMagnetEvent]:
        """Evaluate a pair against the stricter magnet thresholds."""
        key = token_key(pair.get("chainId", ""), (pair.get("baseToken") or {}).get("address", ""))
        if key in self.analyzed_tokens or not self.is_target_pair(pair):
            return None

        age = pair_age_minutes(pair, now_ms())
        if age is None or age > self.config.max_age_hours * 60:
            return None

        event = create_magnet_event(pair, False, self.config)
        if event is None or not should_alert_magnet(event, self.config):
            return None

        self._track(event, "Whale magnet alert")
        self.fanout.publish(EventType.WHALE_MAGNET, event)
        await self._persist_launch(event, pair)
        return event

    async def find_whale_magnets(self) -> List[WhaleMagnetEvent]:
        """Sweep the discovery feeds of the target chains for magnet tokens."""
        logger.info("Searching for whale magnets")
        found = []
        for pair in await self.fetch_candidate_pairs(self.config.target_chains):
            event = await self.analyze_magnet_pair(pair)
            if event is not None:
                found.append(event)
        return found

    async def monitor_whale_activity(self) -> int:
        """Rescan tracked tokens for 5-minute volume spikes.

        Returns:
            Number of tokens with whale activity
        """
        active = 0
        for event in list(self.tracked_tokens.values()):
            pairs = await self.fetch_token_pairs(event.chain, event.token_address)
            activity = detect_whale_activity(pairs, self.config.whale_transaction_threshold_usd)
            if not activity:
                continue
            active += 1
            event.whale_activity = activity
            logger.warning(f"Whale activity: {len(activity)} spikes on {event.token_symbol}")
            self.fanout.publish(EventType.WHALE_ACTIVITY, {"token": event, "activity": activity})
        return active

    async def monitor_bonding_curves(self) -> int:
        """Update bonding-curve progress of tracked tokens.

        Returns:
            Number of tokens with a known curve in progress
        """
        updated = 0
        for key, event in list(self.tracked_tokens.items()):
            status = analyze_bonding_curve(event)
            if status is None or status.progress <= 0:
                continue
            updated += 1
            event.bonding_curve = status
            self.bonding_curves[key] = status

            payload = {"token": event, "status": status}
            if status.progress >= BONDING_CURVE_ALERT_PROGRESS and not status.is_completed:
                logger.warning(f"Bonding curve {status.progress}% complete for {event.token_symbol}")
                self.fanout.publish(EventType.BONDING_CURVE_PROGRESS, payload)
            if status.is_completed and status.liquidity_migrated:
                logger.warning(f"Bonding curve completed for {event.token_symbol}, liquidity migrated")
                self.fanout.publish(EventType.BONDING_CURVE_COMPLETED, payload)
        return updated

    async def get_single_token_details(self, chain: str, token_address: str) -> Optional[WhaleMagnetEvent]:
        """Fresh details of one token from its first pair with an allowed quote.

        Returns:
            The event with whale activity and bonding curve attached, or None
        """
        now = now_ms()
        for pair in await self.fetch_token_pairs(chain, token_address):
            if not self.is_target_pair(pair):
                continue
            age = pair_age_minutes(pair, now)
            is_new_launch = age is not None and age <= self.config.new_launch_threshold_minutes
            event = create_magnet_event(pair, is_new_launch, self.config, now)
            if event is None:
                continue
            event.whale_activity = detect_whale_activity([pair], self.config.whale_transaction_threshold_usd)
            event.bonding_curve = analyze_bonding_curve(event)
            return event
        return None

    def get_tracked_tokens(self) -> List[WhaleMagnetEvent]:
        return sorted(self.tracked_tokens.values(), key=lambda e: e.detected_at, reverse=True)

    def get_token_details(self, chain: str, token_address: str) -> Optional[WhaleMagnetEvent]:
        return self.tracked_tokens.get(token_key(chain, token_address))

    def get_bonding_curve_status(self, chain: str, token_address: str) -> Optional[BondingCurveStatus]:
        return self.bonding_curves.get(token_key(chain, token_address))

    def update_thresholds(
        self,
        liquidity: Optional[float] = None,
        buys: Optional[float] = None,
        whale_investment: Optional[float] = None,
        max_age_hours: Optional[float] = None,
    ) -> Dict[str, float]:
        """Change qualification thresholds at runtime; missing or zero values are ignored.

        Returns:
            The thresholds now in effect
        """
        if liquidity:
            self.config.liquidity_threshold_usd = liquidity
        if buys:
            self.config.buys_threshold_h1 = buys
        if whale_investment:
            self.config.whale_investment_threshold_usd = whale_investment
        if max_age_hours:
            self.config.max_age_hours = max_age_hours

        thresholds = {
            "liquidity": self.config.liquidity_threshold_usd,
            "buys": self.config.buys_threshold_h1,
            "whale_investment": self.config.whale_investment_threshold_usd,
            "max_age_hours": self.config.max_age_hours,
        }
        logger.info(f"Updated thresholds: {thresholds}")
        return thresholds

    def add_whale_wallet(self, address: str):
        self.whale_wallets.add(address.lower())
        logger.info(f"Added whale wallet: {address}")

    def remove_whale_wallet(self, address: str) -> bool:
        key = address.lower()
        if key not in self.whale_wallets:
            return False
        self.whale_wallets.discard(key)
        logger.info(f"Removed whale wallet: {address}")
        return True

    def clear_analyzed_tokens(self):
        self.analyzed_tokens.clear()
        logger.info("Cleared analyzed tokens cache")

    def remove_old_tracked_tokens(self, max_age_hours: float = 24) -> int:
        """Drop tracked tokens whose pair was created before the cutoff.

        Returns:
            Number of tokens removed
        """
        cutoff = datetime.now(timezone.utc) - timedelta(hours=max_age_hours)
        stale = [
            key for key, event in self.tracked_tokens.items()
            if event.pair_created_at is not None and event.pair_created_at < cutoff
        ]
        for key in stale:
            del self.tracked_tokens[key]
            self.bonding_curves.pop(key, None)
        logger.info(f"Removed {len(stale)} old tracked tokens (older than {max_age_hours}h)")
        return len(stale)

    async def prune_tracked_tokens(self) -> int:
        """Scheduled cleanup of tracked tokens older than ``tracked_token_max_age_hours``."""
        return self.remove_old_tracked_tokens(self.config.tracked_token_max_age_hours)

    def get_statistics(self) -> Dict[str, int]:
        return {
            "analyzed_tokens": len(self.analyzed_tokens),
            "tracked_tokens": len(self.tracked_tokens),
            "bonding_curve_tokens": len(self.bonding_curves),
            "whale_wallets": len(self.whale_wallets),
            "new_launches": sum(1 for e in self.tracked_tokens.values() if e.is_new_launch),
            "completed_bonding_curves": sum(1 for s in self.bonding_curves.values() if s.is_completed),
        }

    def start(self):
        """Schedule the discovery and rescan loops."""
        if self.running:
            return
        self.running = True
        self.schedule("whale magnet sweep", self.config.polling_interval, self.find_whale_magnets)
        self.schedule("new launch scan", self.config.polling_interval, self.track_new_launches)
        self.schedule("whale activity scan", self.config.whale_monitoring_interval, self.monitor_whale_activity)
        self.schedule("bonding curve scan", self.config.bonding_curve_interval, self.monitor_bonding_curves)
        self.schedule("tracked token cleanup", self.config.cleanup_interval, self.prune_tracked_tokens)
        logger.info("New launch tracker started")
