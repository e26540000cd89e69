"""Document store contract for alerts and launches.

Alerts are append-only; launches are written once per ``(chain, token)``.
Writers treat ``PersistenceError`` as non-fatal and only log it.
"""

import abc
import copy
from collections import OrderedDict
from typing import Dict, List, Optional

from whale_tracker.logging_config import get_logger
from whale_tracker.models.token import WhaleAlert
from whale_tracker.services.launch_tracker.models import Launch
from whale_tracker.utils.error_handling import PersistenceError

logger = get_logger(__name__)


class DocumentStore(abc.ABC):
    """Durable storage for whale alerts and launch records."""

    @abc.abstractmethod
    async def insert_alert(self, alert: WhaleAlert) -> None:
        """Append an alert.

        Raises:
            PersistenceError: If the write failed
        """

    @abc.abstractmethod
    async def upsert_launch(self, launch: Launch) -> bool:
        """Insert a launch unless one already exists for its chain and token.

        Returns:
            True when the record was inserted, False when it already existed
        """

    @abc.abstractmethod
    async def list_launches(self, chain: Optional[str] = None) -> List[Launch]:
        """List stored launches, newest first."""

    @abc.abstractmethod
    async def list_alerts(self, limit: int = 100) -> List[WhaleAlert]:
        """List stored alerts, newest first."""

    @abc.abstractmethod
    async def mark_alert_read(self, alert_id: str) -> bool:
        """Set the read flag on a stored alert.

        Returns:
            Whether the alert exists
        """


class InMemoryDocumentStore(DocumentStore):
    """Process-local document store."""

    def __init__(self, max_alerts: Optional[int] = None):
        self.max_alerts = max_alerts
        self._alerts: "OrderedDict[str, WhaleAlert]" = OrderedDict()
        self._launches: "OrderedDict[str, Launch]" = OrderedDict()

    async def insert_alert(self, alert: WhaleAlert) -> None:
        if alert.id in self._alerts:
            raise PersistenceError("Duplicate alert id", details={"id": alert.id})
        self._alerts[alert.id] = copy.copy(alert)
        if self.max_alerts is not None:
            while len(self._alerts) > self.max_alerts:
                self._alerts.popitem(last=False)

    async def upsert_launch(self, launch: Launch) -> bool:
        if launch.key in self._launches:
            return False
        self._launches[launch.key] = launch
        logger.debug(f"Stored launch {launch.key}")
        return True

    async def list_launches(self, chain: Optional[str] = None) -> List[Launch]:
        launches = [
            launch for launch in self._launches.values()
            if chain is None or launch.chain == chain
        ]
        return list(reversed(launches))

    async def list_alerts(self, limit: int = 100) -> List[WhaleAlert]:
        return list(reversed(self._alerts.values()))[:limit]

    async def mark_alert_read(self, alert_id: str) -> bool:
        alert = self._alerts.get(alert_id)
        if alert is None:
            return False
        alert.read = True
        return True

    def counts(self) -> Dict[str, int]:
        return {"alerts": len(self._alerts), "launches": len(self._launches)}
