"""
Cross-market and structural detectors.

Markets are grouped by event id, falling back to series id. Grouping
requires metadata; markets without it are skipped.
"""

from typing import Mapping, Optional, Sequence

import numpy as np

from ..baselines import compute_z_score, trades_in_window
from ..config import AnomalyDetectionConfig
from ..types import AnomalyEvent, AnomalyMeta, AnomalyType, MarketMetadata, Severity, Trade
from .common import clamp_score, time_bucket

HOUR_MS = 60 * 60 * 1000


def _group(market_id: str, metadata: Mapping[str, MarketMetadata]):
    meta = metadata.get(market_id)
    if not meta:
        return None, []
    group_id = meta.event_id or meta.series_id
    if not group_id:
        return None, []
    related = [
        m for m in metadata.values()
        if m.id != market_id and (m.event_id == group_id or m.series_id == group_id)
    ]
    return group_id, related


def _latest_price(market_id: str, trades: Sequence[Trade]) -> Optional[float]:
    market_trades = [t for t in trades if t.market_id == market_id]
    if not market_trades:
        return None
    price = max(market_trades, key=lambda t: t.timestamp_ms).price
    return price if price > 0 else None


def detect_cross_market_mispricing(
    market_id: str,
    trades: Sequence[Trade],
    metadata: Mapping[str, MarketMetadata],
    now: float,
    config: AnomalyDetectionConfig
) -> Optional[AnomalyEvent]:
    """Latest price far from the latest prices of the rest of its group."""
    group_id, related = _group(market_id, metadata)
    if not related:
        return None

    current = _latest_price(market_id, trades)
    if current is None:
        return None

    prices = [p for p in (_latest_price(m.id, trades) for m in related) if p is not None]
    if len(prices) < 2:
        return None

    arr = np.asarray(prices, dtype=float)
    mean, std = float(arr.mean()), float(arr.std())
    if std == 0:
        return None

    z = compute_z_score(current, mean, std)
    if abs(z) < config.cross_market.std_dev_threshold:
        return None

    deviation = (current - mean) / mean * 100
    direction = "above" if current > mean else "below"
    high = abs(z) >= 3.5 or abs(deviation) >= 15

    return AnomalyEvent(
        id=f"{market_id}-cross-market-mispricing-{time_bucket(now)}",
        market_id=market_id,
        type=AnomalyType.CROSS_MARKET_MISPRICING,
        severity=Severity.HIGH if high else Severity.MEDIUM,
        score=clamp_score(abs(z) * 20),
        timestamp=now,
        label="Cross-market mispricing",
        message=(
            f"Price {current * 100:.1f}% is {abs(deviation):.1f}% {direction} group average "
            f"{mean * 100:.1f}% (z={z:.2f})"
        ),
        context={
            "current_price": current,
            "mean_price": mean,
            "std_price": std,
            "z_score": z,
            "deviation": deviation,
            "group_size": len(prices),
        },
        meta=AnomalyMeta(group_id=group_id),
    )


def _is_severe(event: AnomalyEvent) -> bool:
    return event.severity in (Severity.HIGH, Severity.EXTREME)


def detect_linked_event_anomalies(
    market_id: str,
    anomalies: Sequence[AnomalyEvent],
    metadata: Mapping[str, MarketMetadata],
    now: float
) -> Optional[AnomalyEvent]:
    """A severe anomaly in this market with no severe reaction elsewhere in the group."""
    group_id, related = _group(market_id, metadata)
    if not related:
        return None

    own = [a for a in anomalies if a.market_id == market_id]
    if not any(_is_severe(a) for a in own):
        return None

    related_ids = {m.id for m in related}
    related_events = [a for a in anomalies if a.market_id in related_ids]
    if any(_is_severe(a) for a in related_events):
        return None

    return AnomalyEvent(
        id=f"{market_id}-linked-event-{time_bucket(now)}",
        market_id=market_id,
        type=AnomalyType.COMPOSITE_EVENT,
        severity=Severity.MEDIUM,
        score=50,
        timestamp=now,
        label="Out of sync",
        message=(
            "High-severity anomaly detected but related markets in group not reacting "
            f"({len(related)} related markets)"
        ),
        context={
            "market_anomaly_count": len(own),
            "related_anomaly_count": len(related_events),
            "group_size": len(related),
        },
        meta=AnomalyMeta(group_id=group_id),
    )


def detect_pre_expiry_anomalies(
    market_id: str,
    window_ms: float,
    trades: Sequence[Trade],
    now: float,
    metadata: Mapping[str, MarketMetadata],
    config: AnomalyDetectionConfig
) -> Optional[AnomalyEvent]:
    """Volume in the last window at 3x the window before, inside the final hour."""
    meta = metadata.get(market_id)
    if not meta or not meta.end_date:
        return None

    time_to_expiry = meta.end_date.timestamp() * 1000 - now
    if time_to_expiry <= 0 or time_to_expiry > config.pre_expiry.time_threshold:
        return None

    market_trades = [t for t in trades if t.market_id == market_id]
    if not market_trades:
        return None

    recent_volume = sum(t.amount for t in trades_in_window(market_trades, window_ms, now))
    prev_start, prev_end = now - 2 * window_ms, now - window_ms
    previous_volume = sum(
        t.amount for t in market_trades if prev_start <= t.timestamp_ms < prev_end
    )

    hours = time_to_expiry / HOUR_MS
    if hours >= 1 or recent_volume <= 0 or previous_volume <= 0:
        return None

    ratio = recent_volume / previous_volume
    if ratio < 3.0:
        return None

    return AnomalyEvent(
        id=f"{market_id}-pre-expiry-{time_bucket(now)}",
        market_id=market_id,
        type=AnomalyType.PRE_EXPIRY_ANOMALY,
        severity=Severity.HIGH if ratio >= 5.0 or hours < 0.5 else Severity.MEDIUM,
        score=clamp_score(ratio / 5 * 100),
        timestamp=now,
        label="Pre-expiry anomaly",
        message=(
            f"Unusual volume spike ({ratio:.1f}x) {hours:.1f}h before expiry: "
            f"{recent_volume:,.0f} USDC"
        ),
        context={
            "recent_volume": recent_volume,
            "historical_volume": previous_volume,
            "volume_ratio": ratio,
            "hours_to_expiry": hours,
            "time_to_expiry": time_to_expiry,
            "window_ms": window_ms,
        },
    )


def detect_cross_market_anomalies(
    market_id: str,
    window_ms: float,
    trades: Sequence[Trade],
    now: float,
    anomalies: Sequence[AnomalyEvent],
    metadata: Mapping[str, MarketMetadata],
    config: AnomalyDetectionConfig
) -> list[AnomalyEvent]:
    """`trades` must include the related markets' trades for mispricing to fire."""
    found = [
        detect_cross_market_mispricing(market_id, trades, metadata, now, config),
        detect_linked_event_anomalies(market_id, anomalies, metadata, now),
        detect_pre_expiry_anomalies(market_id, window_ms, trades, now, metadata, config),
    ]
    return [a for a in found if a]
