"""Data models for whale detection."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from whale_tracker.models.serialization import to_jsonable


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


class TransactionType(str, Enum):
    """Classification of a whale transaction."""

    TRANSFER = "transfer"
    MINT = "mint"
    SWAP = "swap"


class TransactionStatus(str, Enum):
    """Lifecycle of a whale transaction."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass
class TokenInfo:
    """Token contract touched by a whale transaction."""

    address: str
    transfer_method: str  # "transfer" or "transferFrom"
    symbol: Optional[str] = None
    name: Optional[str] = None
    first_seen: datetime = field(default_factory=utcnow)


@dataclass
class WhaleTransaction:
    """A transaction whose native value crossed the whale threshold."""

    hash: str
    chain: str
    from_address: str
    to_address: Optional[str]
    value: str  # native units as a decimal string
    value_usd: float
    gas_price: str
    timestamp: datetime
    block_number: Optional[int] = None
    type: TransactionType = TransactionType.TRANSFER
    status: TransactionStatus = TransactionStatus.PENDING
    token: Optional[TokenInfo] = None

    @property
    def native_value(self) -> float:
        """Native-unit value as a float."""
        return float(self.value)

    def involves(self, address: str) -> bool:
        """Whether the address is the sender or the recipient (case-insensitive)."""
        address = address.lower()
        return self.from_address.lower() == address or (
            self.to_address is not None and self.to_address.lower() == address
        )

    def to_dict(self) -> Dict[str, Any]:
        return to_jsonable(self)


@dataclass
class WhaleAddress:
    """An address whose balance meets the whale balance threshold."""

    address: str
    chain: str
    balance: float
    balance_usd: float
    first_seen: datetime
    last_activity: datetime
    transaction_count: int = 1
    tags: List[str] = field(default_factory=list)
    is_active: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return to_jsonable(self)


@dataclass
class TrendingToken:
    """Whale activity aggregated per token contract."""

    address: str
    symbol: Optional[str]
    whale_transactions: int = 0
    total_volume: float = 0.0
    unique_whales: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return to_jsonable(self)
