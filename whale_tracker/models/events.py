"""Typed events distributed over the alert fan-out."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from whale_tracker.models.serialization import to_jsonable


class EventType(str, Enum):
    """Every kind of message published on the event bus."""

    WHALE_TRANSACTION = "whale_transaction"
    WHALE_ALERT = "whale_alert"
    ALERT_LOW = "alert_low"
    ALERT_MEDIUM = "alert_medium"
    ALERT_HIGH = "alert_high"
    ALERT_CRITICAL = "alert_critical"
    TOKEN_ANALYSIS = "token_analysis"
    TOKEN_BUY_ANALYSIS = "token_buy_analysis"
    NEW_LAUNCH = "new_launch"
    WHALE_MAGNET = "whale_magnet"
    WHALE_ACTIVITY = "whale_activity"
    BONDING_CURVE_PROGRESS = "bonding_curve_progress"
    BONDING_CURVE_COMPLETED = "bonding_curve_completed"

    @classmethod
    def for_alert_level(cls, level: str) -> "EventType":
        """Level-specific alert event, e.g. ``alert_critical``."""
        return cls(f"alert_{level.lower()}")

    @property
    def alert_level(self) -> Optional[str]:
        """Upper-case alert level for level-specific alert events."""
        if self.value.startswith("alert_"):
            return self.value[len("alert_"):].upper()
        return None


@dataclass
class Event:
    """Envelope delivered to push subscribers."""

    type: EventType
    data: Any
    timestamp: float = field(default_factory=lambda: time.time() * 1000)

    def to_message(self) -> Dict[str, Any]:
        """Render the ``{type, data, timestamp}`` envelope."""
        data = self.data.to_dict() if hasattr(self.data, "to_dict") else to_jsonable(self.data)
        return {
            "type": self.type.value,
            "data": data,
            "timestamp": int(self.timestamp),
        }
