"""In-memory alert fan-out.

Events are delivered to every subscriber queue and, for whale alerts, written
to the document store first. Level-specific alert events (``alert_high`` and
friends) only reach subscribers that asked for that level.
"""

import asyncio
import itertools
from typing import Any, Iterable, List, Optional, Set

from whale_tracker.logging_config import get_logger
from whale_tracker.models.events import Event, EventType
from whale_tracker.models.token import WhaleAlert
from whale_tracker.services.store import DocumentStore
from whale_tracker.utils.error_handling import PersistenceError

logger = get_logger(__name__)

_subscriber_ids = itertools.count(1)


class Subscription:
    """Handle for one push-channel subscriber."""

    def __init__(self, max_queue_size: int = 1000, alert_levels: Optional[Iterable[str]] = None):
        self.id = next(_subscriber_ids)
        self.queue: "asyncio.Queue[Event]" = asyncio.Queue(maxsize=max_queue_size)
        self.alert_levels: Set[str] = {level.upper() for level in alert_levels or ()}
        self.dropped = 0

    def subscribe_levels(self, levels: Iterable[str]) -> List[str]:
        self.alert_levels.update(level.upper() for level in levels)
        return sorted(self.alert_levels)

    def unsubscribe_levels(self, levels: Iterable[str]) -> List[str]:
        self.alert_levels.difference_update(level.upper() for level in levels)
        return sorted(self.alert_levels)

    def wants(self, event: Event) -> bool:
        level = event.type.alert_level
        return level is None or level in self.alert_levels

    def deliver(self, event: Event) -> bool:
        try:
            self.queue.put_nowait(event)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            return False

    async def get(self) -> Event:
        return await self.queue.get()


class AlertFanout:
    """Publish/subscribe hub for detection and analysis events."""

    def __init__(self, store: Optional[DocumentStore] = None, max_queue_size: int = 1000):
        """
        Args:
            store: Document store receiving whale alerts
            max_queue_size: Per-subscriber queue bound; events beyond it are dropped
        """
        self.store = store
        self.max_queue_size = max_queue_size
        self.subscribers: List[Subscription] = []
        self.published = 0

    @property
    def subscriber_count(self) -> int:
        return len(self.subscribers)

    def subscribe(self, alert_levels: Optional[Iterable[str]] = None) -> Subscription:
        subscription = Subscription(self.max_queue_size, alert_levels)
        self.subscribers.append(subscription)
        logger.debug(f"Subscriber {subscription.id} connected ({self.subscriber_count} total)")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self.subscribers:
            self.subscribers.remove(subscription)
            logger.debug(f"Subscriber {subscription.id} disconnected ({self.subscriber_count} total)")

    def publish(self, event_type: EventType, data: Any) -> Event:
        """Deliver an event to every interested subscriber.

        Args:
            event_type: Kind of event
            data: Payload, a model with ``to_dict`` or plain JSON data

        Returns:
            The published event envelope
        """
        event = Event(type=event_type, data=data)
        self.published += 1
        for subscription in list(self.subscribers):
            if subscription.wants(event) and not subscription.deliver(event):
                logger.warning(f"Subscriber {subscription.id} queue full, dropped {event_type.value}")
        return event

    async def publish_alert(self, alert: WhaleAlert) -> None:
        """Persist a whale alert, then publish it and its level-specific variant.

        A persistence failure is logged and does not stop the publication.
        """
        if self.store is not None:
            try:
                await self.store.insert_alert(alert)
            except PersistenceError as e:
                logger.error(f"Failed to persist alert {alert.id}: {str(e)}")

        self.publish(EventType.WHALE_ALERT, alert)
        self.publish(EventType.for_alert_level(alert.alert_level.value), alert)
