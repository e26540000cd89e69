"""Whale detection for Solana.

New slots are polled with ``getSlot`` and processed sequentially. Every
successful System Program transfer above the threshold is recorded and the
recipient is handed to the token acquisition monitor.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from whale_tracker.clients.market_client import MarketDataClient
from whale_tracker.clients.solana_client import SolanaClient, iter_system_transfers
from whale_tracker.config import ChainConfig, DetectionConfig
from whale_tracker.logging_config import get_logger, log_with_context
from whale_tracker.models.events import EventType
from whale_tracker.services.event_bus import AlertFanout
from whale_tracker.services.token_monitor import TokenAcquisitionMonitor
from whale_tracker.services.whale_detector.detector import WhaleDetectionEngine
from whale_tracker.services.whale_detector.helpers import format_amount, from_base_units
from whale_tracker.services.whale_detector.models import (
    TransactionStatus, WhaleTransaction, utcnow
)
from whale_tracker.utils.error_handling import WhaleTrackerError

logger = get_logger(__name__)


class SolanaWhaleDetector(WhaleDetectionEngine):
    """Slot-polling whale detector for Solana."""

    def __init__(
        self,
        chain_config: ChainConfig,
        client: SolanaClient,
        market_client: MarketDataClient,
        fanout: AlertFanout,
        monitor: Optional[TokenAcquisitionMonitor] = None,
        detection_config: Optional[DetectionConfig] = None,
    ):
        super().__init__(chain_config, market_client, fanout, detection_config)
        self.client = client
        self.monitor = monitor
        self.last_processed_slot: Optional[int] = None
        self._monitor_tasks: Set[asyncio.Task] = set()

    async def _fetch_balance(self, address: str) -> int:
        return await self.client.get_balance(address)

    async def process_block(self, block: Dict[str, Any], slot: int) -> List[WhaleTransaction]:
        """Record the whale transfers of one parsed block.

        Returns:
            Whale transactions found in the block
        """
        block_time = block.get("blockTime")
        timestamp = (
            datetime.fromtimestamp(block_time, tz=timezone.utc) if block_time else utcnow()
        )

        found: List[WhaleTransaction] = []
        for transfer in iter_system_transfers(block):
            amount = from_base_units(transfer["lamports"], self.chain_config.decimals)
            if not self.classify(amount):
                continue

            signature = transfer["signature"] or f"{slot}:{transfer['source']}:{transfer['destination']}"
            if self.get_transaction(signature) is not None:
                continue

            transaction = WhaleTransaction(
                hash=signature,
                chain=self.chain,
                from_address=transfer["source"] or "",
                to_address=transfer["destination"],
                value=format_amount(amount),
                value_usd=self.usd_value(amount),
                gas_price="0",
                timestamp=timestamp,
                block_number=slot,
                status=TransactionStatus.CONFIRMED,
            )
            self.record_transaction(transaction)
            found.append(transaction)

            log_with_context(
                logger, "warning", "Solana whale transaction detected",
                amount=transaction.value, source=transaction.from_address,
                destination=transaction.to_address, slot=slot,
            )
            self.fanout.publish(EventType.WHALE_TRANSACTION, transaction)
            self._start_monitor(transaction, float(amount))

        if found:
            await asyncio.gather(*(
                self.batch_processor.submit(lambda t=t: self.update_addresses(t)) for t in found
            ), return_exceptions=True)
        return found

    def _start_monitor(self, transaction: WhaleTransaction, amount: float):
        if self.monitor is None or not transaction.to_address:
            return
        task = asyncio.create_task(
            self.monitor.start_monitoring(transaction.to_address, amount, transaction.hash)
        )
        self._monitor_tasks.add(task)
        task.add_done_callback(self._monitor_tasks.discard)

    async def process_slot(self, slot: int) -> int:
        """Fetch and process one slot unless the circuit breaker is open.

        Returns:
            Number of whale transactions found
        """
        if not self.breaker.allow_request():
            logger.warning(f"Solana circuit breaker open, skipping slot {slot}")
            return 0
        try:
            block = await self.client.get_parsed_block(slot)
        except WhaleTrackerError as e:
            self.block_errors += 1
            self.breaker.record_failure(e)
            logger.warning(f"Failed to retrieve block for slot {slot}: {str(e)}")
            return 0
        self.breaker.record_success()
        return len(await self.process_block(block, slot))

    async def poll_once(self) -> int:
        """Process every slot after the last processed one, in order.

        The first call only records the current slot.

        Returns:
            Number of slots processed
        """
        current = await self.client.get_slot()
        if self.last_processed_slot is None:
            self.last_processed_slot = current
            logger.info(f"Starting Solana whale monitoring from slot: {current}")
            return 0

        processed = 0
        for slot in range(self.last_processed_slot + 1, current + 1):
            await self.process_slot(slot)
            self.last_processed_slot = slot
            processed += 1
        return processed

    async def _poll_slots(self):
        while self.running:
            try:
                await self.poll_once()
            except WhaleTrackerError as e:
                logger.error(f"Error during Solana whale monitoring poll: {str(e)}")
            await asyncio.sleep(self.chain_config.poll_interval)

    async def _run_tasks(self) -> List[Callable[[], Awaitable[None]]]:
        loops = await super()._run_tasks()
        loops.append(self._poll_slots)
        return loops

    async def stop(self):
        for task in list(self._monitor_tasks):
            task.cancel()
        await super().stop()
