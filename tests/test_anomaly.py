"""
Tests for the anomaly baselines, detectors, heat scoring and engine.
"""

from datetime import datetime, timezone
from itertools import count

import pytest

from alithos.anomaly import (
    AnomalyEngine,
    AnomalyFilters,
    AnomalyType,
    DEFAULT_CONFIG,
    MarketMetadata,
    OrderBookSnapshot,
    Severity,
    Trade,
    compute_heat_score,
    get_severity_band,
    merge_config,
)
from alithos.anomaly.baselines import compute_z_score, get_percentile, get_volume_stats
from alithos.anomaly.detectors.cross_market import (
    detect_cross_market_mispricing,
    detect_linked_event_anomalies,
    detect_pre_expiry_anomalies,
)
from alithos.anomaly.detectors.liquidity import detect_spread_widening
from alithos.anomaly.detectors.participant import detect_whale_trades
from alithos.anomaly.detectors.price_volatility import (
    detect_breakout,
    detect_price_jump,
    detect_volatility_spike,
)
from alithos.anomaly.detectors.volume_flow import detect_flow_imbalance, detect_volume_spike
from alithos.anomaly.types import AnomalyEvent, to_ms
from alithos.clients.clob_client import OrderBookLevel

NOW = 1_700_000_000_000
MINUTE = 60 * 1000
HOUR = 60 * MINUTE
WINDOW = 5 * MINUTE
MARKET = "m1"

_ids = count()


def trade(timestamp, amount=100.0, price=0.5, outcome="YES", market_id=MARKET, user="0xabc"):
    return Trade(
        id=f"t{next(_ids)}",
        market_id=market_id,
        outcome=outcome,
        amount=amount,
        price=price,
        timestamp=timestamp,
        user=user,
    )


def hourly(n, **kwargs):
    """One trade per hour, each in its own 5-minute bucket."""
    return [trade(NOW - k * HOUR - 150000, **kwargs) for k in range(1, n + 1)]


def snapshot(bid, ask, timestamp=NOW, market_id=MARKET):
    return OrderBookSnapshot(
        market_id=market_id,
        timestamp=timestamp,
        bids=[OrderBookLevel(bid, 1000)],
        asks=[OrderBookLevel(ask, 1000)],
    )


def event(market_id, severity, anomaly_type=AnomalyType.VOLUME_SPIKE, score=100.0):
    return AnomalyEvent(
        id=f"{market_id}-{anomaly_type.value}",
        market_id=market_id,
        type=anomaly_type,
        severity=severity,
        score=score,
        timestamp=NOW,
        label="test",
        message="test",
    )


class TestBaselines:
    """Statistical helpers."""

    def test_z_score(self):
        assert compute_z_score(12, 10, 2) == pytest.approx(1.0)

    def test_z_score_undefined_is_zero(self):
        assert compute_z_score(12, 10, 0) == 0.0
        assert compute_z_score(float("nan"), 10, 2) == 0.0

    def test_percentile(self):
        assert get_percentile([], 90) == 0.0
        assert get_percentile([7], 90) == 7.0
        assert get_percentile([1, 2, 3, 4], 50) == pytest.approx(2.5)

    def test_seconds_are_normalised(self):
        assert to_ms(1_700_000_000) == 1_700_000_000_000
        assert to_ms(NOW) == NOW

    def test_volume_stats_ignore_empty_buckets(self):
        stats = get_volume_stats(MARKET, WINDOW, hourly(12), NOW)
        assert stats.count == 12
        assert stats.mean == pytest.approx(100)
        assert stats.std == 0

    def test_volume_stats_need_enough_buckets(self):
        assert get_volume_stats(MARKET, WINDOW, hourly(5), NOW) is None

    def test_trade_from_dict(self):
        parsed = Trade.from_dict({
            "id": 7,
            "marketId": "m9",
            "outcome": "yes",
            "amount": "250.5",
            "price": "0.42",
            "timestamp": 1_700_000_000,
            "transactionHash": "0xdead",
        })
        assert parsed.market_id == "m9"
        assert parsed.outcome == "YES"
        assert parsed.amount == pytest.approx(250.5)
        assert parsed.timestamp_ms == 1_700_000_000_000
        assert parsed.transaction_hash == "0xdead"


class TestVolumeFlow:
    """Volume spike and flow imbalance."""

    def test_volume_spike(self):
        trades = hourly(20) + [trade(NOW - MINUTE, amount=5000)]
        anomaly = detect_volume_spike(MARKET, WINDOW, trades, NOW, DEFAULT_CONFIG)
        assert anomaly.type is AnomalyType.VOLUME_SPIKE
        assert anomaly.severity is Severity.EXTREME
        assert anomaly.context["volume_ratio"] == pytest.approx(15)
        assert anomaly.score == 100
        assert anomaly.id.startswith(f"{MARKET}-volume-spike-")

    def test_quiet_window_is_not_a_spike(self):
        trades = hourly(20) + [trade(NOW - MINUTE, amount=100)]
        assert detect_volume_spike(MARKET, WINDOW, trades, NOW, DEFAULT_CONFIG) is None

    def test_below_minimum_notional(self):
        trades = hourly(20, amount=1) + [trade(NOW - MINUTE, amount=50)]
        assert detect_volume_spike(MARKET, WINDOW, trades, NOW, DEFAULT_CONFIG) is None

    def test_thin_history_stays_quiet(self):
        trades = hourly(3) + [trade(NOW - MINUTE, amount=5000)]
        assert detect_volume_spike(MARKET, WINDOW, trades, NOW, DEFAULT_CONFIG) is None

    def test_flow_imbalance(self):
        trades = hourly(12, outcome="YES") + hourly(12, outcome="NO")
        trades.append(trade(NOW - MINUTE, amount=1000, outcome="YES"))
        anomaly = detect_flow_imbalance(MARKET, WINDOW, trades, NOW, DEFAULT_CONFIG)
        assert anomaly.type is AnomalyType.FLOW_IMBALANCE
        assert anomaly.severity is Severity.HIGH
        assert anomaly.score == pytest.approx(100)
        assert anomaly.context["buy_volume"] == 1000

    def test_balanced_flow(self):
        trades = hourly(12, outcome="YES") + hourly(12, outcome="NO")
        trades += [trade(NOW - MINUTE, outcome="YES"), trade(NOW - MINUTE, outcome="NO")]
        assert detect_flow_imbalance(MARKET, WINDOW, trades, NOW, DEFAULT_CONFIG) is None


class TestPriceVolatility:
    """Price jump, volatility spike and breakout."""

    @pytest.fixture
    def calm_returns(self):
        """Twelve 1% trade-to-trade moves, an hour apart."""
        trades = []
        for k in range(1, 13):
            trades.append(trade(NOW - k * HOUR, price=0.50))
            trades.append(trade(NOW - k * HOUR + MINUTE, price=0.505))
        return trades

    def test_price_jump(self, calm_returns):
        trades = calm_returns + [
            trade(NOW - 4 * MINUTE, price=0.50),
            trade(NOW - MINUTE, price=0.60),
        ]
        anomaly = detect_price_jump(MARKET, WINDOW, trades, NOW, DEFAULT_CONFIG)
        assert anomaly.type is AnomalyType.PRICE_JUMP
        assert anomaly.severity is Severity.HIGH
        assert anomaly.label == "Price jump"
        assert anomaly.context["abs_price_change"] == pytest.approx(20)

    def test_price_drop_label(self, calm_returns):
        trades = calm_returns + [
            trade(NOW - 4 * MINUTE, price=0.60),
            trade(NOW - MINUTE, price=0.40),
        ]
        anomaly = detect_price_jump(MARKET, WINDOW, trades, NOW, DEFAULT_CONFIG)
        assert anomaly.label == "Price drop"
        assert anomaly.severity is Severity.EXTREME

    def test_small_move_ignored(self, calm_returns):
        trades = calm_returns + [
            trade(NOW - 4 * MINUTE, price=0.50),
            trade(NOW - MINUTE, price=0.52),
        ]
        assert detect_price_jump(MARKET, WINDOW, trades, NOW, DEFAULT_CONFIG) is None

    def test_volatility_spike(self):
        trades = []
        # Short-horizon pairs alternating +10% / -10%
        for i in range(12):
            start = NOW - 23 * HOUR + i * 65 * MINUTE
            trades.append(trade(start, price=0.50))
            trades.append(trade(start + MINUTE, price=0.55 if i % 2 == 0 else 0.45))
        # Flat prices ten minutes apart only count towards the long horizon
        for i in range(60):
            trades.append(trade(NOW - 600 * MINUTE + i * 10 * MINUTE, price=0.50))

        anomaly = detect_volatility_spike(MARKET, WINDOW, HOUR, trades, NOW, DEFAULT_CONFIG)
        assert anomaly.type is AnomalyType.VOLATILITY_SPIKE
        assert anomaly.severity is Severity.MEDIUM
        assert anomaly.context["vol_ratio"] == pytest.approx(10 / (1200 / 71) ** 0.5, rel=1e-6)

    def test_breakout_up(self):
        trades = [trade(NOW - k * HOUR, price=0.50) for k in range(1, 21)]
        trades.append(trade(NOW - MINUTE, price=0.60))
        anomaly = detect_breakout(MARKET, WINDOW, trades, NOW, DEFAULT_CONFIG)
        assert anomaly.type is AnomalyType.BREAKOUT
        assert anomaly.label == "Breakout up"
        assert anomaly.severity is Severity.HIGH
        assert anomaly.context["percentile95"] == pytest.approx(0.50)

    def test_price_inside_range(self):
        trades = [trade(NOW - k * HOUR, price=0.40 + k * 0.01) for k in range(1, 21)]
        trades.append(trade(NOW - MINUTE, price=0.50))
        assert detect_breakout(MARKET, WINDOW, trades, NOW, DEFAULT_CONFIG) is None


class TestLiquidityAndParticipants:
    """Spread and whale detectors."""

    @pytest.fixture
    def spread_history(self):
        """Spreads alternating 2% and 4% of mid."""
        return [
            snapshot(0.495, 0.505, NOW - i * MINUTE) if i % 2 else snapshot(0.49, 0.51, NOW - i * MINUTE)
            for i in range(1, 13)
        ]

    def test_spread_widening(self, spread_history):
        anomaly = detect_spread_widening(MARKET, snapshot(0.45, 0.55), spread_history, DEFAULT_CONFIG)
        assert anomaly.type is AnomalyType.SPREAD_WIDENING
        assert anomaly.severity is Severity.HIGH
        assert anomaly.context["current_spread"] == pytest.approx(20)
        assert anomaly.timestamp == NOW

    def test_normal_spread(self, spread_history):
        assert detect_spread_widening(MARKET, snapshot(0.49, 0.51), spread_history, DEFAULT_CONFIG) is None

    def test_whale_trade(self):
        trades = hourly(12) + [trade(NOW - MINUTE, amount=25000, user="0xwhale")]
        events = detect_whale_trades(MARKET, WINDOW, trades, NOW, DEFAULT_CONFIG)
        assert len(events) == 1
        assert events[0].severity is Severity.EXTREME
        assert events[0].label == "Whale buy"
        assert events[0].meta.wallet == "0xwhale"

    def test_whale_needs_history(self):
        trades = [trade(NOW - MINUTE, amount=25000)]
        assert detect_whale_trades(MARKET, WINDOW, trades, NOW, DEFAULT_CONFIG) == []


class TestCrossMarket:
    """Grouped-market detectors."""

    @pytest.fixture
    def metadata(self):
        return {m: MarketMetadata(id=m, event_id="e1") for m in ("m1", "m2", "m3", "m4")}

    def test_mispricing(self, metadata):
        trades = [
            trade(NOW - MINUTE, price=0.60, market_id="m1"),
            trade(NOW - MINUTE, price=0.50, market_id="m2"),
            trade(NOW - MINUTE, price=0.52, market_id="m3"),
            trade(NOW - MINUTE, price=0.48, market_id="m4"),
        ]
        anomaly = detect_cross_market_mispricing("m1", trades, metadata, NOW, DEFAULT_CONFIG)
        assert anomaly.type is AnomalyType.CROSS_MARKET_MISPRICING
        assert anomaly.severity is Severity.HIGH
        assert anomaly.meta.group_id == "e1"

    def test_no_metadata_no_group(self):
        trades = [trade(NOW - MINUTE, price=0.60)]
        assert detect_cross_market_mispricing("m1", trades, {}, NOW, DEFAULT_CONFIG) is None

    def test_linked_event_out_of_sync(self, metadata):
        anomalies = [event("m1", Severity.HIGH), event("m2", Severity.MEDIUM)]
        anomaly = detect_linked_event_anomalies("m1", anomalies, metadata, NOW)
        assert anomaly.type is AnomalyType.COMPOSITE_EVENT
        assert anomaly.label == "Out of sync"

    def test_linked_event_group_reacting(self, metadata):
        anomalies = [event("m1", Severity.HIGH), event("m2", Severity.EXTREME)]
        assert detect_linked_event_anomalies("m1", anomalies, metadata, NOW) is None

    def test_pre_expiry(self):
        end = datetime.fromtimestamp((NOW + 30 * MINUTE) / 1000, tz=timezone.utc)
        metadata = {MARKET: MarketMetadata(id=MARKET, end_date=end)}
        trades = [trade(NOW - 7 * MINUTE, amount=100), trade(NOW - MINUTE, amount=500)]
        anomaly = detect_pre_expiry_anomalies(MARKET, WINDOW, trades, NOW, metadata, DEFAULT_CONFIG)
        assert anomaly.type is AnomalyType.PRE_EXPIRY_ANOMALY
        assert anomaly.severity is Severity.HIGH
        assert anomaly.context["volume_ratio"] == pytest.approx(5)

    def test_pre_expiry_far_from_end(self):
        end = datetime.fromtimestamp((NOW + 3 * HOUR) / 1000, tz=timezone.utc)
        metadata = {MARKET: MarketMetadata(id=MARKET, end_date=end)}
        trades = [trade(NOW - 7 * MINUTE, amount=100), trade(NOW - MINUTE, amount=500)]
        assert detect_pre_expiry_anomalies(MARKET, WINDOW, trades, NOW, metadata, DEFAULT_CONFIG) is None


class TestScoring:
    """Heat scores and bands."""

    def test_weighted_heat_score(self):
        heat = compute_heat_score(MARKET, [event(MARKET, Severity.HIGH)], DEFAULT_CONFIG, NOW)
        assert heat.score == pytest.approx(30)
        assert heat.components == {"volume-spike": pytest.approx(0.3)}
        assert heat.last_updated == NOW

    def test_heat_score_is_clamped(self):
        anomalies = [event(MARKET, Severity.HIGH, t) for t in AnomalyType]
        heat = compute_heat_score(MARKET, anomalies * 3, DEFAULT_CONFIG, NOW)
        assert heat.score == 100

    @pytest.mark.parametrize("score,band", [(0, "calm"), (19.9, "calm"), (20, "mild"), (60, "hot"), (80, "on-fire")])
    def test_severity_bands(self, score, band):
        assert get_severity_band(score, DEFAULT_CONFIG) == band


class TestConfig:
    """Config overrides."""

    def test_no_overrides_returns_defaults(self):
        assert merge_config() is DEFAULT_CONFIG

    def test_section_override_keeps_other_fields(self):
        config = merge_config({"thresholds": {"volume_z_score": 3.0}})
        assert config.thresholds.volume_z_score == 3.0
        assert config.thresholds.price_z_score == DEFAULT_CONFIG.thresholds.price_z_score
        assert config.windows == DEFAULT_CONFIG.windows

    def test_unknown_section_rejected(self):
        with pytest.raises(ValueError):
            merge_config({"bogus": {"x": 1}})


class TestEngine:
    """Engine caching and queries."""

    @pytest.fixture
    def engine(self):
        return AnomalyEngine()

    @pytest.fixture
    def spike_trades(self):
        return {MARKET: hourly(20) + [trade(NOW - MINUTE, amount=5000)], "m2": []}

    def test_compute_caches_results(self, engine, spike_trades):
        result = engine.compute_market_anomalies(spike_trades, NOW)
        types = {a.type for a in result.anomalies}
        assert AnomalyType.VOLUME_SPIKE in types
        assert result.heat_scores[0].market_id == MARKET
        assert engine.get_heat_score_for_market(MARKET).score > 0
        assert engine.get_heat_score_for_market("m2") is None

    def test_query_filters(self, engine, spike_trades):
        engine.compute_market_anomalies(spike_trades, NOW)
        spikes = engine.query(AnomalyFilters(types=[AnomalyType.VOLUME_SPIKE]))
        assert [a.type for a in spikes] == [AnomalyType.VOLUME_SPIKE]
        assert engine.query(AnomalyFilters(since=NOW + 1)) == []
        assert engine.query(AnomalyFilters(market_ids=["m2"])) == []

    def test_clear_cache(self, engine, spike_trades):
        engine.compute_market_anomalies(spike_trades, NOW)
        engine.clear_cache()
        assert engine.get_all_anomalies() == []
        assert engine.get_all_heat_scores() == []

    def test_snapshots_feed_liquidity_detectors(self, engine):
        history = [
            snapshot(0.495, 0.505, NOW - i * MINUTE) if i % 2 else snapshot(0.49, 0.51, NOW - i * MINUTE)
            for i in range(12, 0, -1)
        ]
        history.append(snapshot(0.45, 0.55))
        result = engine.compute_market_anomalies(
            {MARKET: [trade(NOW - MINUTE)]}, NOW, snapshots_by_market={MARKET: history}
        )
        assert AnomalyType.SPREAD_WIDENING in {a.type for a in result.anomalies}
