"""
Token acquisition monitoring.

After a wallet receives a whale-sized transfer its SPL token holdings are
polled for a fixed window. Tokens that were not in the holdings when
monitoring started are scored and checked for a matching buy.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Set

from whale_tracker.clients.market_client import MarketDataClient
from whale_tracker.clients.solana_client import SolanaClient
from whale_tracker.config import MonitorConfig, get_monitor_config
from whale_tracker.logging_config import get_logger, log_with_context
from whale_tracker.models.events import EventType
from whale_tracker.models.token import MonitoredWhale, TokenBuySignal
from whale_tracker.services.event_bus import AlertFanout
from whale_tracker.services.token_scorer import TokenRiskScorer, to_float
from whale_tracker.utils.error_handling import MarketDataError, WhaleTrackerError

logger = get_logger(__name__)


class TokenAcquisitionMonitor:
    """Watches whale wallets for newly acquired tokens.

    At most one monitor runs per address. Each monitor is a single task that
    polls on ``poll_interval`` until ``window`` seconds have passed, then
    removes its record whether or not it found anything.
    """

    def __init__(
        self,
        solana_client: SolanaClient,
        market_client: MarketDataClient,
        scorer: TokenRiskScorer,
        fanout: AlertFanout,
        config: Optional[MonitorConfig] = None,
    ):
        self.solana_client = solana_client
        self.market_client = market_client
        self.scorer = scorer
        self.fanout = fanout
        self.config = config or get_monitor_config()
        self.monitored: Dict[str, MonitoredWhale] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._starting: Set[str] = set()

    def is_monitoring(self, address: str) -> bool:
        return address in self.monitored or address in self._starting

    def get_monitored_whales(self) -> List[MonitoredWhale]:
        return list(self.monitored.values())

    async def start_monitoring(self, address: str, amount: float, transaction_hash: str) -> bool:
        """Begin watching an address for new tokens.

        Args:
            address: Wallet that received the transfer
            amount: Transferred amount in native units
            transaction_hash: Signature of the qualifying transfer

        Returns:
            True if a new monitor was started, False if the address is
            already monitored or its holdings could not be read
        """
        if self.is_monitoring(address):
            logger.debug(f"Already monitoring whale address {address}")
            return False

        self._starting.add(address)
        try:
            try:
                initial_tokens = await self.solana_client.get_token_accounts_by_owner(address)
            except WhaleTrackerError as e:
                logger.error(f"Could not snapshot holdings of {address}, not monitoring: {str(e)}")
                return False

            now = datetime.now(timezone.utc)
            whale = MonitoredWhale(
                address=address,
                initial_tokens=set(initial_tokens),
                amount=amount,
                transaction_hash=transaction_hash,
                started_at=now,
                expires_at=now + timedelta(seconds=self.config.window),
            )
            self.monitored[address] = whale
            self._tasks[address] = asyncio.create_task(self._run(whale))
        finally:
            self._starting.discard(address)

        log_with_context(
            logger, "info", "Started monitoring whale",
            address=address, initial_tokens=len(whale.initial_tokens), window=self.config.window
        )
        return True

    async def _run(self, whale: MonitoredWhale):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.window
        try:
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                await asyncio.sleep(min(self.config.poll_interval, remaining))
                if loop.time() >= deadline:
                    break
                await self.poll(whale)
        finally:
            self.monitored.pop(whale.address, None)
            self._tasks.pop(whale.address, None)
            logger.info(f"Stopped monitoring whale address {whale.address}")

    async def _current_tokens(self, address: str) -> Set[str]:
        try:
            return await self.solana_client.get_token_accounts_by_owner(address)
        except WhaleTrackerError as e:
            logger.warning(f"Error fetching tokens for {address}: {str(e)}")
            return set()

    async def poll(self, whale: MonitoredWhale) -> List[str]:
        """Run one poll tick.

        The diff is taken against the original baseline, and tokens already
        reported for this whale are not reported again.

        Returns:
            Newly reported token addresses
        """
        current = await self._current_tokens(whale.address)
        new_tokens = sorted(current - whale.initial_tokens - whale.reported_tokens)
        whale.polls += 1
        whale.last_checked = datetime.now(timezone.utc)

        if new_tokens:
            logger.warning(f"New token(s) detected for whale {whale.address}: {', '.join(new_tokens)}")

        for token in new_tokens:
            whale.reported_tokens.add(token)
            await self.scorer.analyze_whale_acquisition(whale.address, token, whale.transaction_hash)
            await self.check_token_for_buy(whale, token)

        return new_tokens

    async def check_token_for_buy(self, whale: MonitoredWhale, token_address: str) -> Optional[TokenBuySignal]:
        """Check whether a pool of the token could have absorbed the whale's transfer.

        Returns:
            The published buy signal, or None
        """
        try:
            pairs = await self.market_client.get_solana_token_pairs(token_address)
        except MarketDataError as e:
            logger.error(f"Error checking token pools for {token_address}: {e.message}")
            return None

        for pair in pairs:
            quote_liquidity = to_float((pair.get("liquidity") or {}).get("quote"))
            if quote_liquidity >= whale.amount:
                signal = TokenBuySignal(
                    whale_address=whale.address,
                    token_address=token_address,
                    amount=whale.amount,
                    pair_address=pair.get("pairAddress") or "",
                    quote_liquidity=quote_liquidity,
                    dex_id=pair.get("dexId"),
                    pair_url=pair.get("url"),
                )
                logger.info(f"Potential token buy detected for {token_address}")
                self.fanout.publish(EventType.TOKEN_BUY_ANALYSIS, signal)
                return signal

        logger.debug(f"No pool of {token_address} matches the transfer of {whale.amount}")
        return None

    async def stop(self):
        """Cancel every monitor."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self.monitored.clear()
        self._tasks.clear()
