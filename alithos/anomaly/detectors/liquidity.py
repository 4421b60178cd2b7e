"""
Order book liquidity detectors: spread, depth and slippage.

All liquidity events are stamped with the current snapshot's timestamp
rather than wall-clock time.
"""

import math
from typing import Optional, Sequence

import numpy as np

from ..baselines import compute_z_score, get_spread_stats, snapshot_spread_percent
from ..config import AnomalyDetectionConfig
from ..types import AnomalyEvent, AnomalyType, OrderBookSnapshot, Severity
from .common import clamp_score, time_bucket

DEPTH_LEVELS_PCT = (1, 3, 5)
SLIPPAGE_TEST_SIZES = (1000, 5000)


def _mid_price(snapshot: OrderBookSnapshot) -> Optional[float]:
    if not snapshot.bids or not snapshot.asks:
        return None
    bid, ask = snapshot.bids[0].price, snapshot.asks[0].price
    if not (math.isfinite(bid) and math.isfinite(ask)) or bid <= 0 or ask <= 0:
        return None
    return (bid + ask) / 2


def _spread_event(
    market_id: str,
    snapshot: OrderBookSnapshot,
    kind: AnomalyType,
    current: float,
    mean: float,
    std: float,
    z: float
) -> AnomalyEvent:
    ratio = current / mean if mean > 0 else 0.0
    if kind is AnomalyType.SPREAD_WIDENING:
        high = ratio >= 2.0 or z >= 3.0
        score = ratio / 3 * 100
        label, verb = "Spread widening", "widened"
    else:
        high = ratio <= 0.5 or z <= -3.0
        score = (1 - ratio) / 0.5 * 100
        label, verb = "Spread tightening", "tightened"

    return AnomalyEvent(
        id=f"{market_id}-{kind.value}-{time_bucket(snapshot.timestamp)}",
        market_id=market_id,
        type=kind,
        severity=Severity.HIGH if high else Severity.MEDIUM,
        score=clamp_score(score),
        timestamp=snapshot.timestamp,
        label=label,
        message=f"Spread {verb} to {current:.2f}% (avg {mean:.2f}%, {ratio:.1f}x, z={z:.2f})",
        context={
            "current_spread": current,
            "mean_spread": mean,
            "std_spread": std,
            "spread_ratio": ratio,
            "z_score": z,
        },
    )


def _spread_z(
    market_id: str,
    current: OrderBookSnapshot,
    history: Sequence[OrderBookSnapshot],
    config: AnomalyDetectionConfig
):
    spread = snapshot_spread_percent(current)
    if spread is None:
        return None
    stats = get_spread_stats(market_id, history, config.minimums.data_points)
    if not stats or stats.count < config.minimums.data_points:
        return None
    return spread, stats, compute_z_score(spread, stats.mean, stats.std)


def detect_spread_widening(
    market_id: str,
    current: OrderBookSnapshot,
    history: Sequence[OrderBookSnapshot],
    config: AnomalyDetectionConfig
) -> Optional[AnomalyEvent]:
    result = _spread_z(market_id, current, history, config)
    if result is None:
        return None
    spread, stats, z = result
    if z >= config.thresholds.spread_z_score and spread > stats.mean:
        return _spread_event(market_id, current, AnomalyType.SPREAD_WIDENING,
                             spread, stats.mean, stats.std, z)
    return None


def detect_spread_tightening(
    market_id: str,
    current: OrderBookSnapshot,
    history: Sequence[OrderBookSnapshot],
    config: AnomalyDetectionConfig
) -> Optional[AnomalyEvent]:
    result = _spread_z(market_id, current, history, config)
    if result is None:
        return None
    spread, stats, z = result
    if z <= -config.thresholds.spread_z_score and spread < stats.mean:
        return _spread_event(market_id, current, AnomalyType.SPREAD_TIGHTENING,
                             spread, stats.mean, stats.std, z)
    return None


def detect_spread_anomalies(
    market_id: str,
    current: OrderBookSnapshot,
    history: Sequence[OrderBookSnapshot],
    config: AnomalyDetectionConfig
) -> list[AnomalyEvent]:
    found = [
        detect_spread_widening(market_id, current, history, config),
        detect_spread_tightening(market_id, current, history, config),
    ]
    return [a for a in found if a]


def depth_at_distance(snapshot: OrderBookSnapshot, distance_pct: float) -> float:
    """Resting size within distance_pct of mid on both sides."""
    mid = _mid_price(snapshot)
    if mid is None:
        return 0.0
    bid_floor = mid * (1 - distance_pct / 100)
    ask_cap = mid * (1 + distance_pct / 100)
    bids = sum(l.size or 0 for l in snapshot.bids if l.price >= bid_floor)
    asks = sum(l.size or 0 for l in snapshot.asks if l.price <= ask_cap)
    return bids + asks


def detect_depth_changes(
    market_id: str,
    current: OrderBookSnapshot,
    history: Sequence[OrderBookSnapshot],
    config: AnomalyDetectionConfig
) -> Optional[AnomalyEvent]:
    """First depth band (1%, 3%, 5%) whose depth is a z-score outlier."""
    market_history = [s for s in history if s.market_id == market_id]
    if len(market_history) < config.minimums.data_points:
        return None

    for level in DEPTH_LEVELS_PCT:
        depths = [d for d in (depth_at_distance(s, level) for s in market_history) if d > 0]
        if len(depths) < config.minimums.data_points:
            continue
        arr = np.asarray(depths, dtype=float)
        mean, std = float(arr.mean()), float(arr.std())
        if mean == 0:
            continue

        depth = depth_at_distance(current, level)
        z = compute_z_score(depth, mean, std)
        if abs(z) < config.thresholds.spread_z_score:
            continue

        collapse = depth < mean
        ratio = depth / mean
        return AnomalyEvent(
            id=f"{market_id}-depth-change-{time_bucket(current.timestamp)}-{level}",
            market_id=market_id,
            type=AnomalyType.DEPTH_CHANGE,
            severity=Severity.HIGH if abs(z) >= 3.0 else Severity.MEDIUM,
            score=clamp_score(abs(z) * 20),
            timestamp=current.timestamp,
            label="Depth collapse" if collapse else "Depth spike",
            message=(
                f"Depth at {level}% {'collapsed' if collapse else 'spiked'} to {depth:.0f} "
                f"(avg {mean:.0f}, {ratio:.1f}x, z={z:.2f})"
            ),
            context={
                "current_depth": depth,
                "mean_depth": mean,
                "std_depth": std,
                "depth_ratio": ratio,
                "z_score": z,
                "distance_percent": level,
            },
        )
    return None


def slippage_percent(snapshot: OrderBookSnapshot, size: float, side: str) -> Optional[float]:
    """Distance of the last level touched by a market order from mid, in percent."""
    mid = _mid_price(snapshot)
    if mid is None:
        return None
    executed = mid
    remaining = size
    for level in snapshot.asks if side == "buy" else snapshot.bids:
        if remaining <= 0:
            break
        executed = level.price
        remaining -= min(remaining, level.size or 0)
    slippage = abs(executed - mid) / mid * 100
    return slippage if math.isfinite(slippage) else None


def detect_slippage_changes(
    market_id: str,
    current: OrderBookSnapshot,
    history: Sequence[OrderBookSnapshot],
    config: AnomalyDetectionConfig
) -> Optional[AnomalyEvent]:
    """First (size, side) pair whose slippage deviates from its baseline."""
    market_history = [s for s in history if s.market_id == market_id]

    for size in SLIPPAGE_TEST_SIZES:
        for side in ("buy", "sell"):
            slippage = slippage_percent(current, size, side)
            if slippage is None:
                continue
            past = [s for s in (slippage_percent(h, size, side) for h in market_history) if s is not None]
            if len(past) < config.minimums.data_points:
                continue
            arr = np.asarray(past, dtype=float)
            mean, std = float(arr.mean()), float(arr.std())
            if mean == 0:
                continue

            z = compute_z_score(slippage, mean, std)
            if abs(z) < config.thresholds.spread_z_score:
                continue

            increase = slippage > mean
            ratio = slippage / mean
            return AnomalyEvent(
                id=f"{market_id}-slippage-change-{time_bucket(current.timestamp)}-{size}-{side}",
                market_id=market_id,
                type=AnomalyType.SLIPPAGE_CHANGE,
                severity=Severity.HIGH if abs(z) >= 3.0 else Severity.MEDIUM,
                score=clamp_score(abs(z) * 20),
                timestamp=current.timestamp,
                label="Slippage increase" if increase else "Slippage decrease",
                message=(
                    f"Slippage for ${size:,} {side} {'increased' if increase else 'decreased'} "
                    f"to {slippage:.2f}% (avg {mean:.2f}%, {ratio:.1f}x, z={z:.2f})"
                ),
                context={
                    "current_slippage": slippage,
                    "mean_slippage": mean,
                    "std_slippage": std,
                    "slippage_ratio": ratio,
                    "z_score": z,
                    "trade_size": size,
                    "side": side,
                },
            )
    return None


def detect_liquidity_anomalies(
    market_id: str,
    current: OrderBookSnapshot,
    history: Sequence[OrderBookSnapshot],
    config: AnomalyDetectionConfig
) -> list[AnomalyEvent]:
    found = detect_spread_anomalies(market_id, current, history, config)
    found.append(detect_depth_changes(market_id, current, history, config))
    found.append(detect_slippage_changes(market_id, current, history, config))
    return [a for a in found if a]
