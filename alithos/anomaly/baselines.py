"""
Statistical baselines for anomaly detection.

Baselines are built from the trailing 24 hours of trades bucketed into
fixed windows. A baseline with fewer than `min_data_points` observations
is reported as None so detectors stay quiet on thin markets.
"""

import math
from typing import Iterable, Optional, Sequence

import numpy as np

from .types import DistributionStats, OrderBookSnapshot, ReturnStats, Trade

HISTORY_MS = 24 * 60 * 60 * 1000


def compute_z_score(value: float, mean: float, std: float) -> float:
    """(value - mean) / std, or 0 when undefined."""
    if not all(math.isfinite(v) for v in (value, mean, std)):
        return 0.0
    if std == 0:
        return 0.0
    return (value - mean) / std


def get_percentile(values: Sequence[float], percentile: float) -> float:
    """Percentile (0-100) with linear interpolation between ranks."""
    if len(values) == 0:
        return 0.0
    if len(values) == 1:
        return float(values[0])
    return float(np.percentile(np.asarray(values, dtype=float), percentile))


def compute_distribution_stats(values: Iterable[float]) -> DistributionStats:
    arr = np.asarray([v for v in values if math.isfinite(v)], dtype=float)
    if arr.size == 0:
        return DistributionStats(0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0)
    return DistributionStats(
        mean=float(arr.mean()),
        std=float(arr.std()),
        min=float(arr.min()),
        max=float(arr.max()),
        percentile90=get_percentile(arr, 90),
        percentile99=get_percentile(arr, 99),
        count=int(arr.size),
    )


def _market_trades(market_id: str, trades: Sequence[Trade]) -> list[Trade]:
    return [t for t in trades if t.market_id == market_id]


def _volume(trades: Iterable[Trade], outcome: Optional[str] = None) -> float:
    total = 0.0
    for t in trades:
        if outcome is not None and t.outcome != outcome:
            continue
        if math.isfinite(t.amount):
            total += t.amount
    return total


def _window_buckets(trades: Sequence[Trade], window_ms: float, now: float) -> Iterable[list[Trade]]:
    """Yield trades for each window over the last 24h, oldest first."""
    start = now - HISTORY_MS
    while start < now:
        end = start + window_ms
        yield [t for t in trades if start <= t.timestamp_ms < end]
        start = end


def get_volume_stats(
    market_id: str,
    window_ms: float,
    trades: Sequence[Trade],
    now: float,
    min_data_points: int = 10
) -> Optional[DistributionStats]:
    """Distribution of per-window notional volume (non-empty windows only)."""
    market_trades = _market_trades(market_id, trades)
    if not market_trades:
        return None

    volumes = []
    for bucket in _window_buckets(market_trades, window_ms, now):
        volume = _volume(bucket)
        if volume > 0:
            volumes.append(volume)

    if len(volumes) < min_data_points:
        return None
    return compute_distribution_stats(volumes)


def _imbalance(trades: Sequence[Trade]) -> Optional[float]:
    yes = _volume(trades, "YES")
    no = _volume(trades, "NO")
    total = yes + no
    if total <= 0:
        return None
    return abs(yes - no) / total


def get_imbalance_stats(
    market_id: str,
    window_ms: float,
    trades: Sequence[Trade],
    now: float,
    min_data_points: int = 10
) -> Optional[DistributionStats]:
    """Distribution of |YES - NO| / total per window."""
    market_trades = _market_trades(market_id, trades)
    if not market_trades:
        return None

    imbalances = []
    for bucket in _window_buckets(market_trades, window_ms, now):
        if not bucket:
            continue
        imbalance = _imbalance(bucket)
        if imbalance is not None:
            imbalances.append(imbalance)

    if len(imbalances) < min_data_points:
        return None
    return compute_distribution_stats(imbalances)


def snapshot_spread_percent(snapshot: OrderBookSnapshot) -> Optional[float]:
    """Top-of-book spread as a percentage of mid."""
    if not snapshot.bids or not snapshot.asks:
        return None
    bid = snapshot.bids[0].price
    ask = snapshot.asks[0].price
    if not (math.isfinite(bid) and math.isfinite(ask)) or bid <= 0 or ask <= 0:
        return None
    mid = (bid + ask) / 2
    spread = (ask - bid) / mid * 100
    if not math.isfinite(spread) or spread < 0:
        return None
    return spread


def get_spread_stats(
    market_id: str,
    snapshots: Sequence[OrderBookSnapshot],
    min_data_points: int = 10
) -> Optional[DistributionStats]:
    market_snapshots = [s for s in snapshots if s.market_id == market_id]
    if len(market_snapshots) < min_data_points:
        return None

    spreads = [s for s in map(snapshot_spread_percent, market_snapshots) if s is not None]
    if len(spreads) < min_data_points:
        return None
    return compute_distribution_stats(spreads)


def get_return_stats(
    market_id: str,
    horizon_ms: float,
    trades: Sequence[Trade],
    now: float,
    min_data_points: int = 10
) -> Optional[ReturnStats]:
    """
    Percentage returns between consecutive trades no more than
    `horizon_ms` apart; volatility is the std of those returns.
    """
    market_trades = _market_trades(market_id, trades)
    if len(market_trades) < 2:
        return None

    ordered = sorted(market_trades, key=lambda t: t.timestamp_ms)
    returns = []
    for first, second in zip(ordered, ordered[1:]):
        t1, t2 = first.timestamp_ms, second.timestamp_ms
        if t2 - t1 > horizon_ms:
            continue
        if t1 < now - HISTORY_MS:
            continue
        p1, p2 = first.price, second.price
        if not (math.isfinite(p1) and math.isfinite(p2)) or p1 <= 0 or p2 <= 0:
            continue
        returns.append((p2 - p1) / p1 * 100)

    if len(returns) < min_data_points:
        return None

    stats = compute_distribution_stats(returns)
    return ReturnStats(**vars(stats), volatility=stats.std)


def trades_in_window(trades: Sequence[Trade], window_ms: float, now: float) -> list[Trade]:
    """Trades with timestamps in [now - window, now]."""
    start = now - window_ms
    return [t for t in trades if start <= t.timestamp_ms <= now]


def get_current_volume(
    market_id: str,
    window_ms: float,
    trades: Sequence[Trade],
    now: float
) -> float:
    return _volume(trades_in_window(_market_trades(market_id, trades), window_ms, now))


def get_current_imbalance(
    market_id: str,
    window_ms: float,
    trades: Sequence[Trade],
    now: float
) -> Optional[float]:
    window = trades_in_window(_market_trades(market_id, trades), window_ms, now)
    if not window:
        return None
    return _imbalance(window)
