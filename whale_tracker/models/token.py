"""Token analysis and alert models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from whale_tracker.models.serialization import to_jsonable


class RiskLevel(str, Enum):
    """Investment risk bucket derived from the investment score."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    EXTREME = "EXTREME"


class AlertLevel(str, Enum):
    """Urgency of a whale alert."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


@dataclass
class BondingCurveAnalysis:
    """Simplified liquidity depth and slippage estimate for a token."""

    price_impact_small: float  # percent, 0-100
    price_impact_medium: float
    price_impact_large: float
    liquidity_depth: float  # liquidity in millions of USD
    slippage_score: float  # 0-100, higher is better


@dataclass
class TokenAnalysis:
    """Risk assessment of a single token."""

    address: str
    name: str
    symbol: str
    price: float
    market_cap: float
    fdv: float
    liquidity: float
    volume_24h: float
    price_change_24h: float
    age_days: float
    holders: Optional[int]
    social_score: float
    bonding_curve: BondingCurveAnalysis
    investment_score: float
    risk_level: RiskLevel
    alerts: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    pair: Dict[str, Any] = field(default_factory=dict)
    analyzed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def bonding_curve_score(self) -> float:
        return self.bonding_curve.slippage_score

    def to_dict(self) -> Dict[str, Any]:
        data = to_jsonable(self)
        data["investment_score"] = round(self.investment_score, 2)
        data["bonding_curve_score"] = self.bonding_curve_score
        return data


@dataclass
class WhaleAlert:
    """Alert raised when a whale acquires a token that was then scored."""

    id: str
    timestamp: datetime
    whale_address: str
    token_address: str
    token_analysis: TokenAnalysis
    transaction_hash: str
    alert_level: AlertLevel
    message: str
    read: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = to_jsonable(self)
        data["token_analysis"] = self.token_analysis.to_dict()
        return data


@dataclass
class MonitoredWhale:
    """A wallet being watched after receiving a whale-sized transfer."""

    address: str
    initial_tokens: Set[str]
    amount: float
    transaction_hash: str
    started_at: datetime
    expires_at: datetime
    reported_tokens: Set[str] = field(default_factory=set)
    last_checked: Optional[datetime] = None
    polls: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = to_jsonable(self)
        data["initial_token_count"] = len(self.initial_tokens)
        return data


@dataclass
class TokenBuySignal:
    """A newly acquired token whose liquidity could absorb the whale's transfer."""

    whale_address: str
    token_address: str
    amount: float
    pair_address: str
    quote_liquidity: float
    dex_id: Optional[str] = None
    pair_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return to_jsonable(self)
