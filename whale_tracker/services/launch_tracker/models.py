"""Data models for the new launch tracker."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from whale_tracker.models.serialization import to_jsonable


class BondingCurveType(str, Enum):
    """Launchpad bonding curve presets."""

    PUMP_FUN = "pump.fun"
    SUNPUMP = "sunpump"
    MOONSHOT = "moonshot"
    STANDARD = "standard"
    UNKNOWN = "unknown"


# Market cap at which each preset curve completes, in USD
BONDING_CURVE_THRESHOLDS: Dict[BondingCurveType, float] = {
    BondingCurveType.PUMP_FUN: 69_000,
    BondingCurveType.SUNPUMP: 50_000,
    BondingCurveType.MOONSHOT: 100_000,
    BondingCurveType.STANDARD: 500_000,
}


@dataclass
class BondingCurveStatus:
    """Progress of a token along its launchpad bonding curve."""

    progress: int  # percent, 0-100
    is_completed: bool
    liquidity_migrated: bool
    curve_type: BondingCurveType
    estimated_completion_time: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return to_jsonable(self)


@dataclass
class WhaleActivity:
    """Large recent volume on a tracked pair."""

    type: str  # "buy" or "sell"
    amount_usd: float
    timestamp: datetime
    impact: float
    is_known_whale: bool = False
    wallet_address: Optional[str] = None
    tx_hash: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return to_jsonable(self)


@dataclass
class PriceMovement:
    """Price change snapshot of a pair."""

    change_5m: float
    change_1h: float
    change_6h: float
    change_24h: float
    volatility_index: float
    is_rapid_movement: bool

    def to_dict(self) -> Dict[str, Any]:
        return to_jsonable(self)


@dataclass
class WhaleMagnetEvent:
    """A pair that qualified as a whale magnet or a new launch."""

    chain: str
    token_address: str
    token_symbol: str
    pair_url: Optional[str]
    age_minutes: float
    liquidity: float
    buys_h1: int
    sells_h1: int
    buy_sell_ratio: float
    is_honeypot: bool
    volatility_24h: float
    is_whale_invested: bool
    price_usd: float
    fdv: float
    market_cap: float
    pair_created_at: Optional[datetime]
    is_new_launch: bool
    price_movement: PriceMovement
    risk_score: int
    whale_activity: List[WhaleActivity] = field(default_factory=list)
    bonding_curve: Optional[BondingCurveStatus] = None
    pair_address: Optional[str] = None
    detected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def key(self) -> str:
        return f"{self.chain}:{self.token_address}"

    def to_dict(self) -> Dict[str, Any]:
        return to_jsonable(self)


@dataclass
class Launch:
    """Persisted record of a detected new launch, written once per token."""

    chain: str
    token_address: str
    token_symbol: str
    pair_url: Optional[str]
    age_minutes: float
    liquidity: float
    market_cap: float
    fdv: float
    pair_created_at: Optional[datetime]
    snapshot: Dict[str, Any] = field(default_factory=dict)
    detected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def key(self) -> str:
        return f"{self.chain}:{self.token_address}"

    @classmethod
    def from_event(cls, event: WhaleMagnetEvent, pair: Dict[str, Any]) -> "Launch":
        return cls(
            chain=event.chain,
            token_address=event.token_address,
            token_symbol=event.token_symbol,
            pair_url=event.pair_url,
            age_minutes=event.age_minutes,
            liquidity=event.liquidity,
            market_cap=event.market_cap,
            fdv=event.fdv,
            pair_created_at=event.pair_created_at,
            snapshot=pair,
        )

    def to_dict(self) -> Dict[str, Any]:
        return to_jsonable(self)
