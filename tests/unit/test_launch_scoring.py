"""Unit tests for launch scoring primitives."""

from datetime import datetime, timedelta, timezone

import pytest

from tests.fixtures.common import make_pair
from whale_tracker.config import LaunchConfig
from whale_tracker.services.launch_tracker.models import BondingCurveType
from whale_tracker.services.launch_tracker.scoring import (
    analyze_bonding_curve, calculate_risk_score, create_magnet_event, detect_curve_type,
    detect_whale_activity, estimate_completion_time, is_potential_honeypot, price_movement,
    should_alert_magnet, should_alert_new_launch
)

NOW_MS = 1_700_000_000_000
NOW = datetime.fromtimestamp(NOW_MS / 1000, tz=timezone.utc)


def event_for(config=None, **pair_args):
    pair = make_pair(now_ms=NOW_MS, **pair_args)
    return create_magnet_event(pair, True, config or LaunchConfig(), NOW_MS)


class TestRiskScore:
    """Test suite for the launch risk score."""

    def test_young_deep_pool(self):
        """A fresh pair with deep liquidity only pays the age penalty."""
        pair = make_pair(age_minutes=30, liquidity=60_000, buys=40, sells=10, change_h24=20, now_ms=NOW_MS)
        assert calculate_risk_score(pair, False, NOW_MS) == 30

    def test_everything_wrong_is_capped(self):
        """Every penalty at once is capped at 100."""
        pair = make_pair(age_minutes=30, liquidity=3_000, buys=60, sells=0, change_h24=120, now_ms=NOW_MS)
        assert calculate_risk_score(pair, True, NOW_MS) == 100

    def test_middle_aged_pair(self):
        pair = make_pair(age_minutes=300, liquidity=10_000, buys=20, sells=5, change_h24=-60, now_ms=NOW_MS)
        assert calculate_risk_score(pair, False, NOW_MS) == 35

    @pytest.mark.parametrize("buys,sells,expected", [
        (60, 0, True),
        (40, 0, False),
        (100, 1, False),
    ])
    def test_honeypot_pattern(self, buys, sells, expected):
        assert is_potential_honeypot(buys, sells, 50) is expected


class TestMagnetEvent:
    """Test suite for building and qualifying magnet events."""

    def test_requires_creation_time(self):
        pair = make_pair(now_ms=NOW_MS)
        del pair["pairCreatedAt"]
        assert create_magnet_event(pair, True, LaunchConfig(), NOW_MS) is None

    def test_event_fields(self):
        """Pair metrics are copied and derived fields computed."""
        # Execute
        event = event_for(age_minutes=30, buys=40, sells=10, volume_h1=8_000)

        # Verify
        assert event.chain == "solana"
        assert event.token_symbol == "NEW"
        assert event.age_minutes == 30
        assert event.buy_sell_ratio == 4.0
        assert event.is_honeypot is False
        assert event.is_whale_invested is True
        assert event.risk_score == 30
        assert event.pair_created_at == NOW - timedelta(minutes=30)
        assert event.key == "solana:TokenMint111111111111111111111111111111111"

    def test_new_launch_thresholds_are_relaxed(self):
        """12 buys pass the new-launch rule (70% of 15) but not the magnet rule."""
        # Setup
        config = LaunchConfig()
        event = event_for(config, buys=12, sells=3, liquidity=60_000)

        # Verify
        assert should_alert_new_launch(event, config)
        assert not should_alert_magnet(event, config)

    def test_risky_launch_is_not_alerted(self):
        """A honeypot with thin liquidity exceeds both risk limits."""
        config = LaunchConfig()
        event = event_for(config, buys=60, sells=0, liquidity=3_000, change_h24=120)
        assert event.risk_score == 100
        assert not should_alert_new_launch(event, config)
        assert not should_alert_magnet(event, config)

    def test_rapid_price_movement(self):
        movement = price_movement(make_pair(change_m5=-12.5, change_h24=-40))
        assert movement.is_rapid_movement
        assert movement.volatility_index == 40.0


class TestBondingCurve:
    """Test suite for bonding curve estimates."""

    @pytest.mark.parametrize("pair_args,expected", [
        ({"chain": "solana", "liquidity": 60_000, "age_minutes": 30}, BondingCurveType.PUMP_FUN),
        ({"chain": "ethereum", "liquidity": 150_000}, BondingCurveType.MOONSHOT),
        ({"chain": "bsc", "liquidity": 50_000, "fdv": 500_000}, BondingCurveType.STANDARD),
        ({"chain": "bsc", "liquidity": 500_000}, BondingCurveType.UNKNOWN),
    ])
    def test_detect_curve_type(self, pair_args, expected):
        assert detect_curve_type(event_for(**pair_args)) == expected

    def test_progress_in_flight(self):
        """A pump.fun token at $50k market cap is about 72% along."""
        # Execute
        status = analyze_bonding_curve(event_for(market_cap=50_000, age_minutes=30), NOW)

        # Verify
        assert status.curve_type == BondingCurveType.PUMP_FUN
        assert status.progress == 72
        assert status.is_completed is False
        assert status.estimated_completion_time > NOW

    def test_completed_curve(self):
        """Market cap beyond the threshold completes and migrates liquidity."""
        status = analyze_bonding_curve(event_for(market_cap=80_000, liquidity=60_000), NOW)
        assert status.progress == 100
        assert status.is_completed
        assert status.liquidity_migrated
        assert status.estimated_completion_time is None

    def test_unknown_curve(self):
        assert analyze_bonding_curve(event_for(chain="bsc", liquidity=500_000), NOW) is None

    def test_completion_estimate(self):
        """50% after 10 minutes leaves 10 minutes to go."""
        assert estimate_completion_time(50, 10, NOW) == NOW + timedelta(minutes=10)

    def test_completion_estimate_at_age_zero(self):
        assert estimate_completion_time(50, 0, NOW) == NOW

    def test_slow_progress_is_floored(self):
        """Progress slower than 0.1%/minute is extrapolated at 0.1%/minute."""
        assert estimate_completion_time(1, 1000, NOW) == NOW + timedelta(minutes=990)


class TestWhaleActivity:
    """Test suite for volume spike detection."""

    def test_spike_detected(self):
        """A 5m volume above 20% of the hour and above the threshold is a spike."""
        # Execute
        activity = detect_whale_activity(
            [make_pair(volume_m5=3_000, volume_h1=8_000, change_m5=4.5)], 1_000, NOW
        )

        # Verify
        assert len(activity) == 1
        assert activity[0].type == "buy"
        assert activity[0].amount_usd == 3_000
        assert activity[0].impact == 4.5
        assert activity[0].timestamp == NOW

    @pytest.mark.parametrize("volume_m5,volume_h1", [
        (1_000, 2_000),
        (1_500, 10_000),
        (0, 0),
    ])
    def test_no_spike(self, volume_m5, volume_h1):
        pairs = [make_pair(volume_m5=volume_m5, volume_h1=volume_h1)]
        assert detect_whale_activity(pairs, 1_000, NOW) == []
