"""
Volume spike and flow imbalance detectors.
"""

from typing import Optional, Sequence

from ..baselines import (
    compute_z_score,
    get_current_imbalance,
    get_current_volume,
    get_imbalance_stats,
    get_volume_stats,
    trades_in_window,
)
from ..config import AnomalyDetectionConfig
from ..types import AnomalyEvent, AnomalyType, Severity, Trade
from .common import clamp_score, minutes, time_bucket


def detect_volume_spike(
    market_id: str,
    window_ms: float,
    trades: Sequence[Trade],
    now: float,
    config: AnomalyDetectionConfig
) -> Optional[AnomalyEvent]:
    """
    Flag windows whose notional volume is both a z-score outlier and in
    the top decile of the 24h baseline.
    """
    current = get_current_volume(market_id, window_ms, trades, now)
    if current < config.minimums.volume_notional:
        return None

    stats = get_volume_stats(market_id, window_ms, trades, now, config.minimums.data_points)
    if not stats or stats.count < config.minimums.data_points:
        return None

    z = compute_z_score(current, stats.mean, stats.std)
    ratio = current / stats.mean if stats.mean > 0 else 0.0

    if z < config.thresholds.volume_z_score or current < stats.percentile90:
        return None

    if z >= 4 or ratio >= 10:
        severity = Severity.EXTREME
    elif z >= 3 or ratio >= 5:
        severity = Severity.HIGH
    else:
        severity = Severity.MEDIUM

    return AnomalyEvent(
        id=f"{market_id}-volume-spike-{time_bucket(now)}",
        market_id=market_id,
        type=AnomalyType.VOLUME_SPIKE,
        severity=severity,
        score=clamp_score(z / 5 * 50 + ratio / 10 * 50),
        timestamp=now,
        label="Volume spike",
        message=(
            f"Last {minutes(window_ms)}m volume: {current:,.0f} USDC vs avg "
            f"{stats.mean:,.0f} USDC (+{ratio:.1f}x, z={z:.2f})"
        ),
        context={
            "current_volume": current,
            "mean_volume": stats.mean,
            "std_volume": stats.std,
            "z_score": z,
            "volume_ratio": ratio,
            "window_ms": window_ms,
        },
    )


def detect_flow_imbalance(
    market_id: str,
    window_ms: float,
    trades: Sequence[Trade],
    now: float,
    config: AnomalyDetectionConfig
) -> Optional[AnomalyEvent]:
    """Flag one-sided YES/NO flow that is unusual for this market."""
    imbalance = get_current_imbalance(market_id, window_ms, trades, now)
    if imbalance is None or imbalance < config.flow_imbalance.threshold:
        return None

    stats = get_imbalance_stats(market_id, window_ms, trades, now, config.minimums.data_points)
    if not stats or stats.count < config.minimums.data_points:
        return None
    if imbalance < stats.percentile90:
        return None

    window = trades_in_window([t for t in trades if t.market_id == market_id], window_ms, now)
    buy = sum(t.amount for t in window if t.outcome == "YES")
    sell = sum(t.amount for t in window if t.outcome == "NO")
    total = buy + sell
    buy_pct = buy / total * 100 if total > 0 else 0.0
    sell_pct = sell / total * 100 if total > 0 else 0.0

    if imbalance >= stats.percentile99:
        rank = 99
    elif imbalance >= stats.percentile90:
        rank = 90
    else:
        rank = 50

    return AnomalyEvent(
        id=f"{market_id}-flow-imbalance-{time_bucket(now)}",
        market_id=market_id,
        type=AnomalyType.FLOW_IMBALANCE,
        severity=Severity.HIGH if imbalance >= 0.9 else Severity.MEDIUM,
        score=clamp_score(imbalance * 100),
        timestamp=now,
        label="Flow imbalance",
        message=(
            f"Flow imbalance: {imbalance * 100:.0f}% ({buy_pct:.0f}% Buy, "
            f"{sell_pct:.0f}% Sell in last {minutes(window_ms)}m, top {rank}% historically)"
        ),
        context={
            "imbalance": imbalance,
            "buy_volume": buy,
            "sell_volume": sell,
            "total_volume": total,
            "mean_imbalance": stats.mean,
            "percentile_rank": rank,
            "window_ms": window_ms,
        },
    )


def detect_volume_flow_anomalies(
    market_id: str,
    window_ms: float,
    trades: Sequence[Trade],
    now: float,
    config: AnomalyDetectionConfig
) -> list[AnomalyEvent]:
    found = [
        detect_volume_spike(market_id, window_ms, trades, now, config),
        detect_flow_imbalance(market_id, window_ms, trades, now, config),
    ]
    return [a for a in found if a]
