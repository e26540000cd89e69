"""Whale detection engines for EVM chains.

``WhaleDetectionEngine`` holds the state every chain shares: the bounded
transaction history, the whale address registry, the native token price and
the block circuit breaker. ``EvmWhaleDetector`` feeds it from Ethereum or
BNB Chain blocks and pending transactions.
"""

import asyncio
from collections import deque
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Set

from whale_tracker.clients.evm_client import EvmClient, decode_quantity
from whale_tracker.clients.market_client import MarketDataClient
from whale_tracker.clients.websocket import EvmSubscriptionClient
from whale_tracker.config import ChainConfig, DetectionConfig, get_detection_config
from whale_tracker.logging_config import get_logger, log_with_context
from whale_tracker.models.events import EventType
from whale_tracker.services.event_bus import AlertFanout
from whale_tracker.services.whale_detector.helpers import (
    SYMBOL_SELECTOR, classify_transaction_type, decode_abi_string, detect_token_transfer,
    format_amount, from_base_units, qualifies
)
from whale_tracker.services.whale_detector.models import (
    TokenInfo, TransactionStatus, WhaleAddress, WhaleTransaction, utcnow
)
from whale_tracker.utils.batching import RateLimitedBatchProcessor
from whale_tracker.utils.circuit_breaker import CircuitBreaker
from whale_tracker.utils.error_handling import WhaleTrackerError, execute_with_fallback
from whale_tracker.utils.validation import to_checksum_address

logger = get_logger(__name__)


class WhaleDetectionEngine:
    """Chain-independent whale detection state and bookkeeping."""

    def __init__(
        self,
        chain_config: ChainConfig,
        market_client: MarketDataClient,
        fanout: AlertFanout,
        detection_config: Optional[DetectionConfig] = None,
    ):
        self.chain_config = chain_config
        self.market_client = market_client
        self.fanout = fanout
        self.config = detection_config or get_detection_config()

        self.transactions: Deque[WhaleTransaction] = deque()
        self._transactions_by_hash: Dict[str, WhaleTransaction] = {}
        self.whale_addresses: Dict[str, WhaleAddress] = {}
        self.tokens: Dict[str, TokenInfo] = {}

        self.price = chain_config.default_price_usd
        self.last_price_update: Optional[datetime] = None

        self.breaker = CircuitBreaker(
            f"{chain_config.name}-blocks",
            max_errors=self.config.breaker_max_errors,
            cooldown=self.config.breaker_cooldown,
        )
        self.batch_processor = RateLimitedBatchProcessor(
            batch_size=self.config.batch_size,
            delay=self.config.batch_delay,
        )

        self.block_errors = 0
        self.running = False
        self._tasks: List[asyncio.Task] = []

    @property
    def chain(self) -> str:
        return self.chain_config.name

    def classify(self, value: Optional[Decimal]) -> bool:
        """Whether a native-unit value is a whale transaction."""
        return qualifies(
            value,
            self.chain_config.min_transaction_value,
            self.chain_config.max_transaction_value,
        )

    def get_transaction(self, tx_hash: str) -> Optional[WhaleTransaction]:
        return self._transactions_by_hash.get(tx_hash)

    def record_transaction(self, transaction: WhaleTransaction) -> None:
        """Prepend a transaction, evicting the oldest beyond capacity."""
        self.transactions.appendleft(transaction)
        self._transactions_by_hash[transaction.hash] = transaction
        while len(self.transactions) > self.config.max_tracked_transactions:
            evicted = self.transactions.pop()
            if self._transactions_by_hash.get(evicted.hash) is evicted:
                del self._transactions_by_hash[evicted.hash]

    def confirm_transaction(
        self,
        transaction: WhaleTransaction,
        block_number: Optional[int],
        timestamp: datetime,
    ) -> None:
        """Update a pending record in place once its block is seen."""
        transaction.status = TransactionStatus.CONFIRMED
        transaction.block_number = block_number
        transaction.timestamp = timestamp

    def usd_value(self, native: Decimal) -> float:
        return float(native) * self.price

    async def _fetch_balance(self, address: str) -> int:
        raise NotImplementedError

    def canonical_address(self, address: str) -> str:
        return address

    async def update_whale_address(self, address: Optional[str]) -> Optional[WhaleAddress]:
        """Refresh the registry entry of an address touched by a whale transaction.

        Addresses below the whale balance are not recorded. Existing records
        keep their first-seen time and are never removed.

        Returns:
            The created or updated record, or None
        """
        if not address:
            return None
        try:
            address = self.canonical_address(address)
            balance_base = await self._fetch_balance(address)
        except WhaleTrackerError as e:
            logger.debug(f"Balance lookup failed for {address}: {str(e)}")
            return None

        balance = from_base_units(balance_base, self.chain_config.decimals)
        if balance < Decimal(str(self.chain_config.min_whale_balance)):
            return None

        now = utcnow()
        record = self.whale_addresses.get(address)
        if record is None:
            record = WhaleAddress(
                address=address,
                chain=self.chain,
                balance=float(balance),
                balance_usd=self.usd_value(balance),
                first_seen=now,
                last_activity=now,
            )
            self.whale_addresses[address] = record
            logger.info(f"New {self.chain} whale address {address} with {balance} {self.chain_config.native_symbol}")
        else:
            record.balance = float(balance)
            record.balance_usd = self.usd_value(balance)
            record.last_activity = now
            record.transaction_count += 1
        return record

    async def update_addresses(self, transaction: WhaleTransaction) -> None:
        await asyncio.gather(
            self.update_whale_address(transaction.from_address),
            self.update_whale_address(transaction.to_address),
        )

    async def refresh_price(self) -> float:
        """Refresh the native token price, keeping the last value on failure."""
        price = await execute_with_fallback(
            self.market_client.get_native_price(self.chain_config),
            None,
            f"{self.chain} price refresh failed",
            logger,
        )
        if price is not None:
            if price != self.price:
                logger.info(f"{self.chain_config.native_symbol} price updated to: {price}")
            self.price = price
            self.last_price_update = utcnow()
        return self.price

    async def _price_loop(self):
        while self.running:
            await self.refresh_price()
            await asyncio.sleep(self.config.price_refresh_interval)

    async def _run_tasks(self) -> List[Callable[[], Awaitable[None]]]:
        return [self._price_loop]

    async def start(self):
        """Start the background loops of this engine."""
        if self.running:
            logger.warning(f"{self.chain} whale detection is already active")
            return
        self.running = True
        for loop_factory in await self._run_tasks():
            self._tasks.append(asyncio.create_task(loop_factory()))
        logger.info(f"Started {self.chain} whale detection")

    async def stop(self):
        """Stop all background loops."""
        self.running = False
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        self.batch_processor.cancel_all()
        logger.info(f"Stopped {self.chain} whale detection")

    def status(self) -> Dict[str, Any]:
        return {
            "chain": self.chain,
            "running": self.running,
            "price": self.price,
            "tracked_transactions": len(self.transactions),
            "whale_addresses": len(self.whale_addresses),
            "block_errors": self.block_errors,
            "breaker": self.breaker.snapshot(),
        }


class EvmWhaleDetector(WhaleDetectionEngine):
    """Whale detection for Ethereum and BNB Chain."""

    def __init__(
        self,
        chain_config: ChainConfig,
        client: EvmClient,
        market_client: MarketDataClient,
        fanout: AlertFanout,
        detection_config: Optional[DetectionConfig] = None,
    ):
        super().__init__(chain_config, market_client, fanout, detection_config)
        self.client = client
        self.last_processed_block: Optional[int] = None
        self.subscription: Optional[EvmSubscriptionClient] = None
        self._symbol_lookups: Set[str] = set()

    def canonical_address(self, address: str) -> str:
        return to_checksum_address(address)

    async def _fetch_balance(self, address: str) -> int:
        return await self.client.get_balance(address)

    async def _attach_token(self, transaction: WhaleTransaction, call_data: Optional[str]):
        """Attach token info when the call data is an ERC-20 transfer."""
        transfer_method = detect_token_transfer(call_data)
        if transfer_method is None or not transaction.to_address:
            return

        token_address = transaction.to_address.lower()
        token = self.tokens.get(token_address)
        if token is None:
            token = TokenInfo(address=token_address, transfer_method=transfer_method)
            self.tokens[token_address] = token
        if token.symbol is None and token_address not in self._symbol_lookups:
            self._symbol_lookups.add(token_address)
            try:
                token.symbol = decode_abi_string(await self.client.call(token_address, SYMBOL_SELECTOR))
            except WhaleTrackerError as e:
                logger.debug(f"symbol() lookup failed for {token_address}: {str(e)}")

        transaction.token = TokenInfo(
            address=token.address,
            transfer_method=transfer_method,
            symbol=token.symbol,
            name=token.name,
            first_seen=token.first_seen,
        )

    async def process_transaction(
        self,
        tx: Dict[str, Any],
        status: TransactionStatus = TransactionStatus.CONFIRMED,
        block_number: Optional[int] = None,
        timestamp: Optional[datetime] = None,
    ) -> Optional[WhaleTransaction]:
        """Classify a raw transaction and record it if it is a whale transaction.

        A confirmed transaction whose hash is already recorded as pending
        updates that record in place and publishes nothing.

        Returns:
            The new or updated record, or None if the transaction does not qualify
        """
        tx_hash = tx.get("hash")
        if not tx_hash:
            return None

        native = from_base_units(decode_quantity(tx.get("value")), self.chain_config.decimals)
        if not self.classify(native):
            return None

        timestamp = timestamp or utcnow()
        existing = self._transactions_by_hash.get(tx_hash)
        if existing is not None:
            if status == TransactionStatus.CONFIRMED and existing.status == TransactionStatus.PENDING:
                self.confirm_transaction(existing, block_number, timestamp)
                logger.debug(f"Pending {self.chain} transaction {tx_hash} confirmed in block {block_number}")
            return existing

        call_data = tx.get("input")
        transaction = WhaleTransaction(
            hash=tx_hash,
            chain=self.chain,
            from_address=tx.get("from") or "",
            to_address=tx.get("to"),
            value=format_amount(native),
            value_usd=self.usd_value(native),
            gas_price=str(decode_quantity(tx.get("gasPrice"))),
            timestamp=timestamp,
            block_number=block_number,
            type=classify_transaction_type(call_data),
            status=status,
        )
        # Recorded before any await so a racing confirmation finds it by hash
        self.record_transaction(transaction)
        if call_data and call_data != "0x":
            await self._attach_token(transaction, call_data)
        await self.update_addresses(transaction)

        log_with_context(
            logger, "warning", f"{self.chain} whale transaction detected",
            hash=tx_hash, value=transaction.value, symbol=self.chain_config.native_symbol,
            status=status.value,
        )
        self.fanout.publish(EventType.WHALE_TRANSACTION, transaction)
        return transaction

    async def on_pending_transaction(self, tx_hash: str) -> Optional[WhaleTransaction]:
        """Queue a pending transaction hash on the batch processor.

        Lookup failures are dropped.
        """
        return await self.batch_processor.add(lambda: self._process_pending(tx_hash))

    async def _process_pending(self, tx_hash: str) -> Optional[WhaleTransaction]:
        try:
            tx = await self.client.get_transaction(tx_hash)
        except WhaleTrackerError as e:
            logger.debug(f"Dropping pending {self.chain} transaction {tx_hash}: {str(e)}")
            return None
        if not tx:
            return None
        try:
            return await self.process_transaction(tx, TransactionStatus.PENDING)
        except WhaleTrackerError as e:
            logger.debug(f"Dropping pending {self.chain} transaction {tx_hash}: {str(e)}")
            return None

    async def on_new_head(self, header: Dict[str, Any]):
        await self.on_block(decode_quantity(header.get("number")))

    async def on_block(self, block_number: int) -> int:
        """Process up to ``max_block_transactions`` transactions of a block.

        Nothing is fetched while the circuit breaker is open.

        Returns:
            Number of whale transactions found
        """
        if not self.breaker.allow_request():
            logger.warning(f"{self.chain} circuit breaker open, skipping block {block_number}")
            return 0

        try:
            block = await self.client.get_block(block_number, True)
        except WhaleTrackerError as e:
            self.block_errors += 1
            self.breaker.record_failure(e)
            logger.error(f"Error processing {self.chain} block {block_number}: {str(e)}")
            return 0
        self.breaker.record_success()

        timestamp = datetime.fromtimestamp(decode_quantity(block.get("timestamp")), tz=timezone.utc)
        transactions = [
            tx for tx in (block.get("transactions") or [])[:self.config.max_block_transactions]
            if isinstance(tx, dict)
        ]

        futures = [
            self.batch_processor.submit(
                lambda tx=tx: self.process_transaction(
                    tx, TransactionStatus.CONFIRMED, block_number, timestamp
                )
            )
            for tx in transactions
        ]
        results = await asyncio.gather(*futures, return_exceptions=True)

        failures = [r for r in results if isinstance(r, Exception)]
        if failures:
            logger.warning(f"{len(failures)} transaction(s) failed in {self.chain} block {block_number}")

        self.last_processed_block = block_number
        return sum(1 for r in results if isinstance(r, WhaleTransaction))

    async def _poll_blocks(self):
        """Poll ``eth_blockNumber`` and process new blocks in order."""
        while self.running:
            try:
                current = await self.client.get_block_number()
                if self.last_processed_block is None:
                    self.last_processed_block = current - 1
                for number in range(self.last_processed_block + 1, current + 1):
                    if not self.running:
                        break
                    await self.on_block(number)
                    self.last_processed_block = number
            except WhaleTrackerError as e:
                logger.error(f"Error during {self.chain} block poll: {str(e)}")
            await asyncio.sleep(self.chain_config.poll_interval)

    async def _run_tasks(self) -> List[Callable[[], Awaitable[None]]]:
        loops = await super()._run_tasks()
        if self.chain_config.has_websocket:
            self.subscription = EvmSubscriptionClient(
                self.chain_config.ws_url,
                on_new_head=self.on_new_head,
                on_pending_transaction=self.on_pending_transaction,
                reconnect_delay=self.config.reconnect_delay,
                chain=self.chain,
            )
            await self.subscription.start()
        else:
            loops.append(self._poll_blocks)
        return loops

    async def stop(self):
        if self.subscription is not None:
            await self.subscription.stop()
            self.subscription = None
        await super().stop()
