"""
Price jump, volatility spike and breakout detectors.
"""

import math
from typing import Optional, Sequence

from ..baselines import compute_z_score, get_return_stats, trades_in_window
from ..config import AnomalyDetectionConfig
from ..types import AnomalyEvent, AnomalyType, Severity, Trade
from .common import clamp_score, minutes, time_bucket

BREAKOUT_HISTORY_MS = 7 * 24 * 60 * 60 * 1000
# Absolute move (percent) that fires regardless of the z-score
LARGE_MOVE_PCT = 20


def _valid_price(price: float) -> bool:
    return math.isfinite(price) and price > 0


def detect_price_jump(
    market_id: str,
    window_ms: float,
    trades: Sequence[Trade],
    now: float,
    config: AnomalyDetectionConfig
) -> Optional[AnomalyEvent]:
    """
    Compare first and last price of the busier outcome inside the window
    against the distribution of trade-to-trade returns.
    """
    market_trades = [t for t in trades if t.market_id == market_id]
    if len(market_trades) < 2:
        return None

    window = trades_in_window(market_trades, window_ms, now)
    if len(window) < 2:
        return None

    yes_count = sum(1 for t in window if t.outcome == "YES")
    no_count = sum(1 for t in window if t.outcome == "NO")
    outcome = "YES" if yes_count >= no_count else "NO"
    tracked = sorted((t for t in window if t.outcome == outcome), key=lambda t: t.timestamp_ms)
    if len(tracked) < 2:
        return None

    price1, price2 = tracked[0].price, tracked[-1].price
    if not (_valid_price(price1) and _valid_price(price2)):
        return None

    change = (price2 - price1) / price1 * 100
    abs_change = abs(change)
    if abs_change < config.minimums.price_move_points:
        return None

    stats = get_return_stats(market_id, window_ms, trades, now, config.minimums.data_points)
    if not stats or stats.count < config.minimums.data_points:
        return None

    z = compute_z_score(abs_change, abs(stats.mean), stats.std)
    if z < config.thresholds.price_z_score and abs_change < LARGE_MOVE_PCT:
        return None

    if abs_change >= 30 or z >= 4:
        severity = Severity.EXTREME
    elif abs_change >= LARGE_MOVE_PCT or z >= 3:
        severity = Severity.HIGH
    else:
        severity = Severity.MEDIUM

    direction = "up" if change > 0 else "down"
    points = abs((price2 - price1) * 100)

    return AnomalyEvent(
        id=f"{market_id}-price-jump-{time_bucket(now)}",
        market_id=market_id,
        type=AnomalyType.PRICE_JUMP,
        severity=severity,
        score=clamp_score(abs_change / 50 * 100),
        timestamp=now,
        label="Price jump" if direction == "up" else "Price drop",
        message=(
            f"Price moved {direction} {points:.1f} percentage points ({abs_change:.1f}% change) "
            f"in {minutes(window_ms)}m (z={z:.2f}, from {price1 * 100:.1f}% to {price2 * 100:.1f}%)"
        ),
        context={
            "price_change": change,
            "abs_price_change": abs_change,
            "price1": price1,
            "price2": price2,
            "z_score": z,
            "mean_return": stats.mean,
            "std_return": stats.std,
            "window_ms": window_ms,
        },
    )


def detect_volatility_spike(
    market_id: str,
    short_window_ms: float,
    long_window_ms: float,
    trades: Sequence[Trade],
    now: float,
    config: AnomalyDetectionConfig
) -> Optional[AnomalyEvent]:
    """Short-horizon realised volatility at 2x or more of the long horizon."""
    short_stats = get_return_stats(market_id, short_window_ms, trades, now, config.minimums.data_points)
    long_stats = get_return_stats(market_id, long_window_ms, trades, now, config.minimums.data_points)
    if not short_stats or not long_stats:
        return None

    short_vol, long_vol = short_stats.volatility, long_stats.volatility
    if long_vol == 0 or not (math.isfinite(short_vol) and math.isfinite(long_vol)):
        return None

    ratio = short_vol / long_vol
    if ratio < 2.0:
        return None

    if ratio >= 4.0:
        severity = Severity.EXTREME
    elif ratio >= 3.0:
        severity = Severity.HIGH
    else:
        severity = Severity.MEDIUM

    return AnomalyEvent(
        id=f"{market_id}-volatility-spike-{time_bucket(now)}",
        market_id=market_id,
        type=AnomalyType.VOLATILITY_SPIKE,
        severity=severity,
        score=clamp_score(ratio / 5 * 100),
        timestamp=now,
        label="Volatility spike",
        message=(
            f"Short-term volatility ({short_vol:.2f}%) is {ratio:.1f}x "
            f"long-term volatility ({long_vol:.2f}%)"
        ),
        context={
            "short_vol": short_vol,
            "long_vol": long_vol,
            "vol_ratio": ratio,
            "short_window_ms": short_window_ms,
            "long_window_ms": long_window_ms,
        },
    )


def detect_breakout(
    market_id: str,
    window_ms: float,
    trades: Sequence[Trade],
    now: float,
    config: AnomalyDetectionConfig
) -> Optional[AnomalyEvent]:
    """Latest price outside the 5th/95th percentile of the prior 7 days."""
    market_trades = [t for t in trades if t.market_id == market_id]
    if not market_trades:
        return None

    recent = trades_in_window(market_trades, window_ms, now)
    if not recent:
        return None

    current_price = max(recent, key=lambda t: t.timestamp_ms).price
    if not _valid_price(current_price):
        return None

    history_start = now - BREAKOUT_HISTORY_MS
    historical = [
        t for t in market_trades
        if history_start <= t.timestamp_ms < now - window_ms
    ]
    if len(historical) < config.minimums.data_points:
        return None

    prices = sorted(t.price for t in historical if _valid_price(t.price))
    if len(prices) < config.minimums.data_points:
        return None

    # Nearest-rank quantiles
    p5 = prices[int(len(prices) * 0.05)]
    p95 = prices[int(len(prices) * 0.95)]

    if current_price > p95:
        direction, threshold = "up", p95
        distance = (current_price - threshold) / threshold * 100
    elif current_price < p5:
        direction, threshold = "down", p5
        distance = (threshold - current_price) / threshold * 100
    else:
        return None

    bound = "upper" if direction == "up" else "lower"
    return AnomalyEvent(
        id=f"{market_id}-breakout-{time_bucket(now)}",
        market_id=market_id,
        type=AnomalyType.BREAKOUT,
        severity=Severity.HIGH if distance >= 5 else Severity.MEDIUM,
        score=clamp_score(distance * 10),
        timestamp=now,
        label=f"Breakout {direction}",
        message=(
            f"Price broke {direction} {current_price * 100:.1f}% ({threshold * 100:.1f}% "
            f"{bound} quantile, {distance:.1f}% beyond)"
        ),
        context={
            "current_price": current_price,
            "percentile5": p5,
            "percentile95": p95,
            "distance": distance,
            "direction": direction,
            "window_ms": window_ms,
        },
    )


def detect_price_volatility_anomalies(
    market_id: str,
    window_ms: float,
    trades: Sequence[Trade],
    now: float,
    config: AnomalyDetectionConfig
) -> list[AnomalyEvent]:
    found = [
        detect_price_jump(market_id, window_ms, trades, now, config),
        detect_volatility_spike(market_id, window_ms, config.windows.long, trades, now, config),
        detect_breakout(market_id, window_ms, trades, now, config),
    ]
    return [a for a in found if a]
