"""
Token risk scoring.

Turns a token address into a cached ``TokenAnalysis`` built from its
Dexscreener pair: a simplified bonding curve (price impact) estimate, a social
presence score, a weighted investment score and a risk level. Whale
acquisitions of a scored token become ``WhaleAlert`` records.
"""

import time
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, List, Optional

from whale_tracker.clients.market_client import MarketDataClient
from whale_tracker.config import ScoringConfig, get_scoring_config
from whale_tracker.logging_config import get_logger
from whale_tracker.models.events import EventType
from whale_tracker.models.token import (
    AlertLevel, BondingCurveAnalysis, RiskLevel, TokenAnalysis, WhaleAlert
)
from whale_tracker.services.cache_service import TimedCache
from whale_tracker.services.event_bus import AlertFanout
from whale_tracker.utils.error_handling import MarketDataError, PersistenceError

logger = get_logger(__name__)

MS_PER_DAY = 86_400_000


def to_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def price_impact(trade_usd: float, liquidity: float) -> float:
    """Percent price impact of a trade against a pool, capped at 100."""
    if liquidity <= 0:
        return 100.0
    return min(trade_usd / liquidity * 100, 100.0)


def analyze_bonding_curve(liquidity: float, config: ScoringConfig) -> BondingCurveAnalysis:
    """Estimate price impact for three nominal trade sizes.

    Args:
        liquidity: Pool liquidity in USD
        config: Scoring configuration holding the trade sizes

    Returns:
        Bonding curve analysis with a slippage score (higher is better)
    """
    small = price_impact(config.small_trade_usd, liquidity)
    medium = price_impact(config.medium_trade_usd, liquidity)
    large = price_impact(config.large_trade_usd, liquidity)
    slippage_score = max(0.0, 100 - (small * 2 + medium * 5 + large * 10))
    return BondingCurveAnalysis(
        price_impact_small=small,
        price_impact_medium=medium,
        price_impact_large=large,
        liquidity_depth=liquidity / 1_000_000,
        slippage_score=slippage_score,
    )


def calculate_social_score(pair: Dict[str, Any]) -> float:
    """Score the social presence listed for a pair's base token (0-100)."""
    info = pair.get("info") or {}
    base = pair.get("baseToken") or {}
    score = 0.0

    if info.get("websites"):
        score += 20
    score += 10 * len(info.get("socials") or [])
    if info.get("imageUrl"):
        score += 10

    if len(base.get("name") or "") < 3:
        score -= 20
    if len(base.get("symbol") or "") < 2:
        score -= 20

    return clamp(score)


def calculate_investment_score(
    liquidity: float,
    volume_24h: float,
    price_change_24h: float,
    slippage_score: float,
    social_score: float,
) -> float:
    """Weighted investment score, always within [0, 100]."""
    liquidity_score = clamp(liquidity / 100_000 * 100)
    volume_score = clamp(volume_24h / 50_000 * 100)
    stability_score = clamp(100 - 2 * abs(price_change_24h))

    score = (
        liquidity_score * 0.30
        + volume_score * 0.25
        + stability_score * 0.20
        + clamp(slippage_score) * 0.15
        + clamp(social_score) * 0.10
    )
    return clamp(score)


def determine_risk_level(score: float, liquidity: float, age_days: float) -> RiskLevel:
    """Map a score, liquidity and age to a risk level (first match wins)."""
    if score >= 80 and liquidity >= 500_000 and age_days >= 7:
        return RiskLevel.LOW
    if score >= 60 and liquidity >= 100_000 and age_days >= 3:
        return RiskLevel.MEDIUM
    if score >= 40 and liquidity >= 10_000:
        return RiskLevel.HIGH
    return RiskLevel.EXTREME


def alert_level_for_score(score: float) -> AlertLevel:
    """Alert urgency for a whale acquisition.

    A score below 40 escalates to CRITICAL, above the HIGH given to the
    best scoring tokens.
    """
    if score >= 80:
        return AlertLevel.HIGH
    if score >= 60:
        return AlertLevel.MEDIUM
    if score >= 40:
        return AlertLevel.LOW
    return AlertLevel.CRITICAL


def generate_alerts(
    liquidity: float,
    bonding_curve: BondingCurveAnalysis,
    volume_24h: float,
    price_change_24h: float,
    age_days: float,
    has_website: bool,
) -> List[str]:
    alerts = []
    if liquidity < 10_000:
        alerts.append(f"Low liquidity: ${liquidity:,.0f}")
    if bonding_curve.price_impact_small > 20:
        alerts.append(f"High price impact: {bonding_curve.price_impact_small:.1f}% on a small trade")
    if volume_24h < 1_000:
        alerts.append(f"Very low 24h volume: ${volume_24h:,.0f}")
    if abs(price_change_24h) > 50:
        alerts.append(f"Extreme price volatility: {price_change_24h:+.1f}% in 24h")
    if age_days < 1:
        alerts.append("Very new token: less than 1 day old")
    if not has_website:
        alerts.append("No website listed")
    return alerts


def generate_recommendations(score: float, liquidity: float, volume_24h: float) -> List[str]:
    if score >= 80:
        recommendations = [
            "Strong potential: solid liquidity and trading activity",
            "Consider dollar-cost averaging into a position",
        ]
    elif score >= 60:
        recommendations = ["Moderate potential: monitor before entering"]
    elif score >= 40:
        recommendations = ["High risk: limit exposure to a small position"]
    else:
        recommendations = ["Extreme risk: avoid or keep exposure minimal"]

    if liquidity > 1_000_000:
        recommendations.append("High liquidity supports larger positions")
    if volume_24h > 100_000:
        recommendations.append("High trading volume indicates active interest")
    return recommendations


def pair_age_days(pair: Dict[str, Any], now_ms: float) -> float:
    created = pair.get("pairCreatedAt")
    if not created:
        return 0.0
    return max(0.0, (now_ms - to_float(created)) / MS_PER_DAY)


class TokenRiskScorer:
    """Scores tokens and raises whale alerts.

    Owns the analysis cache and the bounded list of recent alerts.
    """

    def __init__(
        self,
        market_client: MarketDataClient,
        fanout: AlertFanout,
        config: Optional[ScoringConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.market_client = market_client
        self.fanout = fanout
        self.config = config or get_scoring_config()
        self.cache: TimedCache[str, TokenAnalysis] = TimedCache(self.config.analysis_ttl, clock=clock)
        self.alerts: Deque[WhaleAlert] = deque(maxlen=self.config.max_alerts)

    def build_analysis(self, token_address: str, pair: Dict[str, Any],
                       now: Optional[datetime] = None) -> TokenAnalysis:
        """Score a token from one of its Dexscreener pairs."""
        now = now or datetime.now(timezone.utc)
        base = pair.get("baseToken") or {}
        liquidity = to_float((pair.get("liquidity") or {}).get("usd"))
        volume_24h = to_float((pair.get("volume") or {}).get("h24"))
        price_change_24h = to_float((pair.get("priceChange") or {}).get("h24"))
        age_days = pair_age_days(pair, now.timestamp() * 1000)
        has_website = bool((pair.get("info") or {}).get("websites"))

        bonding_curve = analyze_bonding_curve(liquidity, self.config)
        social_score = calculate_social_score(pair)
        score = calculate_investment_score(
            liquidity, volume_24h, price_change_24h, bonding_curve.slippage_score, social_score
        )

        return TokenAnalysis(
            address=token_address,
            name=base.get("name") or "Unknown",
            symbol=base.get("symbol") or "UNKNOWN",
            price=to_float(pair.get("priceUsd")),
            market_cap=to_float(pair.get("marketCap")),
            fdv=to_float(pair.get("fdv")),
            liquidity=liquidity,
            volume_24h=volume_24h,
            price_change_24h=price_change_24h,
            age_days=age_days,
            holders=None,
            social_score=social_score,
            bonding_curve=bonding_curve,
            investment_score=score,
            risk_level=determine_risk_level(score, liquidity, age_days),
            alerts=generate_alerts(
                liquidity, bonding_curve, volume_24h, price_change_24h, age_days, has_website
            ),
            recommendations=generate_recommendations(score, liquidity, volume_24h),
            pair=pair,
            analyzed_at=now,
        )

    async def analyze_token(self, token_address: str, chain: Optional[str] = "solana") -> Optional[TokenAnalysis]:
        """Get a token analysis, from cache when fresh.

        Args:
            token_address: Token mint or contract address
            chain: Dexscreener chain id to restrict pairs to

        Returns:
            The analysis, or None if the token has no market or market data
            is unavailable
        """
        cached = self.cache.get(token_address)
        if cached is not None:
            return cached

        try:
            pairs = await self.market_client.get_token_pairs(token_address, chain)
        except MarketDataError as e:
            logger.warning(f"Market data unavailable for {token_address}: {e.message}")
            return None

        if not pairs:
            logger.info(f"No pairs found for token {token_address}")
            return None

        analysis = self.build_analysis(token_address, pairs[0])
        self.cache.set(token_address, analysis)
        self.fanout.publish(EventType.TOKEN_ANALYSIS, analysis)
        logger.info(
            f"Analyzed {analysis.symbol}: score {analysis.investment_score:.1f}, "
            f"risk {analysis.risk_level.value}"
        )
        return analysis

    async def analyze_whale_acquisition(
        self,
        whale_address: str,
        token_address: str,
        transaction_hash: str,
    ) -> Optional[WhaleAlert]:
        """Score a token a whale just acquired and raise an alert for it."""
        analysis = await self.analyze_token(token_address)
        if analysis is None:
            return None

        now = datetime.now(timezone.utc)
        level = alert_level_for_score(analysis.investment_score)
        alert = WhaleAlert(
            id=f"{whale_address}-{token_address}-{int(now.timestamp() * 1000)}",
            timestamp=now,
            whale_address=whale_address,
            token_address=token_address,
            token_analysis=analysis,
            transaction_hash=transaction_hash,
            alert_level=level,
            message=(
                f"Whale {whale_address[:8]}... acquired {analysis.symbol}: "
                f"score {analysis.investment_score:.0f}/100, {analysis.risk_level.value} risk"
            ),
        )
        self.alerts.appendleft(alert)
        await self.fanout.publish_alert(alert)
        logger.warning(alert.message)
        return alert

    def get_cached_analysis(self, token_address: str) -> Optional[TokenAnalysis]:
        """Look up a fresh analysis without triggering scoring."""
        return self.cache.get(token_address)

    def get_active_alerts(self) -> List[WhaleAlert]:
        """Recent alerts, newest first."""
        return list(self.alerts)

    async def mark_alert_read(self, alert_id: str) -> bool:
        """Set the read flag on an in-memory alert and its stored copy."""
        found = False
        for alert in self.alerts:
            if alert.id == alert_id:
                alert.read = True
                found = True
                break

        store = self.fanout.store
        if found and store is not None:
            try:
                await store.mark_alert_read(alert_id)
            except PersistenceError as e:
                logger.error(f"Failed to persist read flag for {alert_id}: {str(e)}")
        return found

    def get_stats(self, active_whales: int) -> Dict[str, Any]:
        alerts = self.get_active_alerts()
        return {
            "total_alerts": len(alerts),
            "active_whales": active_whales,
            "unread_alerts": sum(1 for a in alerts if not a.read),
            "critical_alerts": sum(1 for a in alerts if a.alert_level == AlertLevel.CRITICAL),
            "high_score_tokens": sum(1 for a in alerts if a.token_analysis.investment_score >= 80),
            "last_update": datetime.now(timezone.utc).isoformat(),
        }
