"""Scoring primitives shared by the new-launch scan and the magnet sweep.

All functions are pure and take the current time explicitly, so a pair can
be evaluated deterministically.
"""

import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from whale_tracker.config import LaunchConfig
from whale_tracker.services.launch_tracker.models import (
    BONDING_CURVE_THRESHOLDS, BondingCurveStatus, BondingCurveType,
    PriceMovement, WhaleActivity, WhaleMagnetEvent
)
from whale_tracker.services.token_scorer import to_float

NEW_LAUNCH_MAX_RISK = 70
MAGNET_MAX_RISK = 80
RAPID_MOVEMENT_PCT = 10.0
BONDING_CURVE_ALERT_PROGRESS = 80


def now_ms() -> float:
    return time.time() * 1000


def pair_age_minutes(pair: Dict[str, Any], now: float) -> Optional[float]:
    """Age of a pair in minutes, or None when the creation time is unknown.

    Args:
        pair: Dexscreener pair
        now: Current time in epoch milliseconds
    """
    created = pair.get("pairCreatedAt")
    if not created:
        return None
    return (now - to_float(created)) / 60000


def h1_txns(pair: Dict[str, Any]) -> Tuple[int, int]:
    h1 = (pair.get("txns") or {}).get("h1") or {}
    return int(to_float(h1.get("buys"))), int(to_float(h1.get("sells")))


def buy_sell_ratio(buys: int, sells: int) -> float:
    """``buys / sells``, or ``buys`` when there are no sells."""
    return buys / sells if sells > 0 else float(buys)


def is_potential_honeypot(buys: int, sells: int, ratio_limit: float) -> bool:
    return sells == 0 and buy_sell_ratio(buys, sells) > ratio_limit


def calculate_risk_score(pair: Dict[str, Any], honeypot: bool, now: float) -> int:
    """Additive 0-100 risk score, higher is riskier.

    Args:
        pair: Dexscreener pair
        honeypot: Whether the pair shows the honeypot pattern
        now: Current time in epoch milliseconds

    Returns:
        Risk score capped at 100
    """
    score = 0

    age = pair_age_minutes(pair, now)
    if age is not None:
        if age < 60:
            score += 30
        elif age < 240:
            score += 20
        elif age < 1440:
            score += 10

    liquidity = to_float((pair.get("liquidity") or {}).get("usd"))
    if liquidity < 5000:
        score += 25
    elif liquidity < 20000:
        score += 15
    elif liquidity < 50000:
        score += 5

    if honeypot:
        score += 40

    buys, sells = h1_txns(pair)
    if sells == 0 and buys > 10:
        score += 20

    volatility = abs(to_float((pair.get("priceChange") or {}).get("h24")))
    if volatility > 100:
        score += 15
    elif volatility > 50:
        score += 10

    return min(score, 100)


def price_movement(pair: Dict[str, Any]) -> PriceMovement:
    changes = pair.get("priceChange") or {}
    change_5m = to_float(changes.get("m5"))
    change_24h = to_float(changes.get("h24"))
    return PriceMovement(
        change_5m=change_5m,
        change_1h=to_float(changes.get("h1")),
        change_6h=to_float(changes.get("h6")),
        change_24h=change_24h,
        volatility_index=abs(change_24h),
        is_rapid_movement=abs(change_5m) > RAPID_MOVEMENT_PCT,
    )


def create_magnet_event(
    pair: Dict[str, Any],
    is_new_launch: bool,
    config: LaunchConfig,
    now: Optional[float] = None,
) -> Optional[WhaleMagnetEvent]:
    """Build a magnet event from a Dexscreener pair.

    Returns:
        The event, or None when the pair has no creation time or base token
    """
    now = now if now is not None else now_ms()
    age = pair_age_minutes(pair, now)
    base = pair.get("baseToken") or {}
    if age is None or not base.get("address"):
        return None

    buys, sells = h1_txns(pair)
    ratio = buy_sell_ratio(buys, sells)
    honeypot = is_potential_honeypot(buys, sells, config.honeypot_risk_ratio)
    volume_h1 = to_float((pair.get("volume") or {}).get("h1"))

    return WhaleMagnetEvent(
        chain=pair.get("chainId", ""),
        token_address=base["address"],
        token_symbol=base.get("symbol") or "",
        pair_url=pair.get("url"),
        age_minutes=round(age),
        liquidity=to_float((pair.get("liquidity") or {}).get("usd")),
        buys_h1=buys,
        sells_h1=sells,
        buy_sell_ratio=round(ratio, 2),
        is_honeypot=honeypot,
        volatility_24h=abs(to_float((pair.get("priceChange") or {}).get("h24"))),
        is_whale_invested=volume_h1 > config.whale_investment_threshold_usd,
        price_usd=to_float(pair.get("priceUsd")),
        fdv=to_float(pair.get("fdv")),
        market_cap=to_float(pair.get("marketCap")),
        pair_created_at=datetime.fromtimestamp(to_float(pair["pairCreatedAt"]) / 1000, tz=timezone.utc),
        is_new_launch=is_new_launch,
        price_movement=price_movement(pair),
        risk_score=calculate_risk_score(pair, honeypot, now),
        pair_address=pair.get("pairAddress"),
    )


def should_alert_new_launch(event: WhaleMagnetEvent, config: LaunchConfig) -> bool:
    """New-launch qualification: relaxed thresholds, risk at most 70."""
    return (
        event.liquidity >= config.liquidity_threshold_usd * 0.5
        and event.buys_h1 >= config.buys_threshold_h1 * 0.7
        and event.age_minutes <= config.new_launch_threshold_minutes
        and event.risk_score <= NEW_LAUNCH_MAX_RISK
    )


def should_alert_magnet(event: WhaleMagnetEvent, config: LaunchConfig) -> bool:
    """Magnet qualification: full thresholds, risk at most 80."""
    return (
        event.liquidity >= config.liquidity_threshold_usd
        and event.buys_h1 >= config.buys_threshold_h1
        and event.age_minutes <= config.max_age_hours * 60
        and event.risk_score <= MAGNET_MAX_RISK
    )


def detect_curve_type(event: WhaleMagnetEvent) -> BondingCurveType:
    if event.chain == "solana" and event.liquidity < 100_000 and event.age_minutes < 1440:
        return BondingCurveType.PUMP_FUN
    if event.chain in ("ethereum", "base") and event.liquidity < 200_000:
        return BondingCurveType.MOONSHOT
    if event.liquidity < 100_000 and event.fdv < 1_000_000:
        return BondingCurveType.STANDARD
    return BondingCurveType.UNKNOWN


def estimate_completion_time(progress: float, age_minutes: float, now: datetime) -> datetime:
    """Linear extrapolation of the progress rate, floored at 0.1%/minute."""
    rate = progress / age_minutes if age_minutes > 0 else float("inf")
    minutes = (100 - progress) / max(rate, 0.1)
    return now + timedelta(minutes=minutes)


def analyze_bonding_curve(event: WhaleMagnetEvent, now: Optional[datetime] = None) -> Optional[BondingCurveStatus]:
    """Estimate bonding-curve progress from market cap.

    Returns:
        The status, or None when the curve type is unknown
    """
    curve_type = detect_curve_type(event)
    if curve_type == BondingCurveType.UNKNOWN:
        return None

    now = now or datetime.now(timezone.utc)
    threshold = BONDING_CURVE_THRESHOLDS[curve_type]
    progress = min(event.market_cap / threshold * 100, 100.0)
    completed = progress >= 100
    return BondingCurveStatus(
        progress=round(progress),
        is_completed=completed,
        liquidity_migrated=completed and event.liquidity > threshold * 0.1,
        curve_type=curve_type,
        estimated_completion_time=(
            None if completed else estimate_completion_time(progress, event.age_minutes, now)
        ),
    )


def detect_whale_activity(
    pairs: List[Dict[str, Any]],
    threshold_usd: float,
    now: Optional[datetime] = None,
) -> List[WhaleActivity]:
    """Flag pairs whose 5-minute volume spikes relative to the hour.

    A pair produces an activity record when its 5m volume exceeds 20% of its
    1h volume and the whale transaction threshold.
    """
    now = now or datetime.now(timezone.utc)
    activity = []
    for pair in pairs:
        volume = pair.get("volume") or {}
        volume_5m = to_float(volume.get("m5"))
        volume_1h = to_float(volume.get("h1"))
        if volume_5m <= volume_1h * 0.2 or volume_5m <= threshold_usd:
            continue
        m5 = (pair.get("txns") or {}).get("m5") or {}
        activity.append(WhaleActivity(
            type="buy" if to_float(m5.get("buys")) > to_float(m5.get("sells")) else "sell",
            amount_usd=volume_5m,
            timestamp=now,
            impact=abs(to_float((pair.get("priceChange") or {}).get("m5"))),
        ))
    return activity
