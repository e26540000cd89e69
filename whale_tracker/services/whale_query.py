"""Read-side queries over a detection engine's transactions and addresses."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from whale_tracker.services.whale_detector.detector import WhaleDetectionEngine
from whale_tracker.services.whale_detector.models import (
    TrendingToken, WhaleAddress, WhaleTransaction
)
from whale_tracker.utils.error_handling import NotFoundError, ValidationError
from whale_tracker.utils.validation import normalize_address

TIMEFRAMES = {
    "1h": timedelta(hours=1),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
}

NEWLY_LAUNCHED_WINDOW = timedelta(hours=24)
TRENDING_LIMIT = 20


def filter_transactions(
    transactions: Iterable[WhaleTransaction],
    min_value: Optional[float] = None,
    token_filter: Optional[str] = None,
    now: Optional[datetime] = None,
) -> List[WhaleTransaction]:
    """Filter transactions by native value and token.

    Args:
        transactions: Transactions, newest first
        min_value: Minimum native value
        token_filter: ``all``, ``newly-launched`` or a token symbol

    Returns:
        Matching transactions in their original order
    """
    now = now or datetime.now(timezone.utc)
    result = []
    for tx in transactions:
        if min_value is not None and tx.native_value < min_value:
            continue
        if token_filter and token_filter != "all":
            if tx.token is None:
                continue
            if token_filter == "newly-launched":
                if now - tx.token.first_seen > NEWLY_LAUNCHED_WINDOW:
                    continue
            elif (tx.token.symbol or "").lower() != token_filter.lower():
                continue
        result.append(tx)
    return result


def filter_addresses(
    addresses: Iterable[WhaleAddress],
    min_balance: Optional[float] = None,
) -> List[WhaleAddress]:
    """Filter whale addresses by balance, sorted by balance descending."""
    result = [a for a in addresses if min_balance is None or a.balance >= min_balance]
    result.sort(key=lambda a: a.balance, reverse=True)
    return result


def calculate_stats(engine: WhaleDetectionEngine, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Aggregate statistics of one chain."""
    now = now or datetime.now(timezone.utc)
    transactions = list(engine.transactions)
    recent = [tx for tx in transactions if now - tx.timestamp <= timedelta(hours=24)]
    return {
        "chain": engine.chain,
        "total_whales": len(engine.whale_addresses),
        "total_transactions": len(transactions),
        "total_value": sum(tx.native_value for tx in transactions),
        "total_value_usd": sum(tx.value_usd for tx in transactions),
        "last_24h": {
            "transactions": len(recent),
            "value": sum(tx.native_value for tx in recent),
        },
        "current_price": engine.price,
        "last_updated": now.isoformat(),
    }


def trending_tokens(
    transactions: Iterable[WhaleTransaction],
    timeframe: str = "24h",
    now: Optional[datetime] = None,
    limit: int = TRENDING_LIMIT,
) -> List[TrendingToken]:
    """Group recent token transfers by token contract.

    Raises:
        ValidationError: If the timeframe is unknown
    """
    if timeframe not in TIMEFRAMES:
        raise ValidationError(
            f"Invalid timeframe: {timeframe}",
            details={"allowed": list(TIMEFRAMES)}
        )
    now = now or datetime.now(timezone.utc)
    since = now - TIMEFRAMES[timeframe]

    tokens: Dict[str, TrendingToken] = {}
    whales: Dict[str, set] = {}
    for tx in transactions:
        if tx.token is None or tx.timestamp < since:
            continue
        entry = tokens.get(tx.token.address)
        if entry is None:
            entry = TrendingToken(address=tx.token.address, symbol=tx.token.symbol)
            tokens[tx.token.address] = entry
            whales[tx.token.address] = set()
        entry.whale_transactions += 1
        entry.total_volume += tx.value_usd
        whales[tx.token.address].add(tx.from_address.lower())
        entry.unique_whales = len(whales[tx.token.address])
        if entry.symbol is None:
            entry.symbol = tx.token.symbol

    ranked = sorted(tokens.values(), key=lambda t: t.whale_transactions, reverse=True)
    return ranked[:limit]


def get_whale_address(engine: WhaleDetectionEngine, address: str) -> WhaleAddress:
    """Look up one whale address.

    Raises:
        ValidationError: If the address is malformed for the chain
        NotFoundError: If the address is not a known whale
    """
    canonical = normalize_address(engine.chain, address)
    record = engine.whale_addresses.get(canonical)
    if record is None:
        raise NotFoundError("Whale address not found", details={"address": canonical})
    return record


def get_address_transactions(engine: WhaleDetectionEngine, address: str) -> List[WhaleTransaction]:
    """Transactions where the address is sender or recipient.

    Raises:
        ValidationError: If the address is malformed for the chain
    """
    canonical = normalize_address(engine.chain, address)
    return [tx for tx in engine.transactions if tx.involves(canonical)]
