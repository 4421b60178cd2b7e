"""
Participant detectors: whale trades, wallet concentration and
price impact from wallets with little history.
"""

from collections import defaultdict
from typing import Optional, Sequence

from ..baselines import get_percentile, trades_in_window
from ..config import AnomalyDetectionConfig
from ..types import AnomalyEvent, AnomalyMeta, AnomalyType, Severity, Trade
from .common import clamp_score, minutes, time_bucket

CONCENTRATION_HISTORY_MS = 7 * 24 * 60 * 60 * 1000
NEW_WALLET_MAX_TRADES = 3
IMPACT_WINDOW_MS = 2 * 60 * 1000


def _split(market_id: str, window_ms: float, trades: Sequence[Trade], now: float):
    market_trades = [t for t in trades if t.market_id == market_id]
    window_start = now - window_ms
    recent = trades_in_window(market_trades, window_ms, now)
    historical = [t for t in market_trades if t.timestamp_ms < window_start]
    return market_trades, recent, historical


def detect_whale_trades(
    market_id: str,
    window_ms: float,
    trades: Sequence[Trade],
    now: float,
    config: AnomalyDetectionConfig
) -> list[AnomalyEvent]:
    """One event per recent trade above the absolute or percentile whale bar."""
    _, recent, historical = _split(market_id, window_ms, trades, now)
    if not recent:
        return []

    sizes = [t.amount for t in historical if t.amount > 0]
    if len(sizes) < config.minimums.data_points:
        return []

    whale = config.whale
    p_whale = get_percentile(sizes, whale.percentile_threshold * 100)
    p99 = get_percentile(sizes, 99)
    p995 = get_percentile(sizes, 99.5)

    events = []
    for trade in recent:
        size = trade.amount
        if size <= 0:
            continue
        if size < whale.absolute_threshold and size < p_whale:
            continue

        if size >= whale.absolute_threshold * 2 or size >= p995:
            severity = Severity.EXTREME
        elif size >= whale.absolute_threshold * 1.5 or size >= p99:
            severity = Severity.HIGH
        else:
            severity = Severity.MEDIUM

        ratio = size / p_whale if p_whale > 0 else 0.0
        direction = "buy" if trade.outcome == "YES" else "sell"
        top = "2%" if size >= p_whale else "1%"
        ts = trade.timestamp_ms

        events.append(AnomalyEvent(
            id=f"{market_id}-whale-trade-{trade.id}-{time_bucket(ts)}",
            market_id=market_id,
            type=AnomalyType.WHALE_TRADE,
            severity=severity,
            score=clamp_score(ratio / 2 * 100),
            timestamp=ts,
            label=f"Whale {direction}",
            message=f"Whale {direction}: {size:,.0f} USDC trade (top {top} historically)",
            context={
                "trade_size": size,
                "percentile98": p_whale,
                "absolute_threshold": whale.absolute_threshold,
                "window_ms": window_ms,
            },
            meta=AnomalyMeta(wallet=trade.user, outcome_id=trade.outcome),
        ))
    return events


def _wallet_volumes(trades: Sequence[Trade]) -> tuple[dict[str, float], float]:
    volumes: dict[str, float] = defaultdict(float)
    total = 0.0
    for t in trades:
        if t.amount <= 0:
            continue
        volumes[t.user or "unknown"] += t.amount
        total += t.amount
    return volumes, total


def detect_wallet_concentration(
    market_id: str,
    window_ms: float,
    trades: Sequence[Trade],
    now: float,
    config: AnomalyDetectionConfig
) -> Optional[AnomalyEvent]:
    """Top wallet share of window volume vs. its 7-day per-window history."""
    _, recent, historical = _split(market_id, window_ms, trades, now)
    if not recent:
        return None

    volumes, total = _wallet_volumes(recent)
    if total == 0:
        return None
    top_wallet, top_volume = max(volumes.items(), key=lambda kv: kv[1])
    share = top_volume / total

    wc = config.wallet_concentration
    if share < wc.threshold:
        return None

    window_start = now - window_ms
    shares = []
    start = now - CONCENTRATION_HISTORY_MS
    while start < window_start:
        end = start + window_ms
        bucket = [t for t in historical if start <= t.timestamp_ms < end]
        start = end
        if not bucket:
            continue
        hist_volumes, hist_total = _wallet_volumes(bucket)
        if hist_total > 0:
            shares.append(max(hist_volumes.values()) / hist_total)

    if len(shares) < config.minimums.data_points:
        return None

    p_top = get_percentile(shares, wc.percentile_threshold * 100)
    if share < p_top:
        return None

    return AnomalyEvent(
        id=f"{market_id}-wallet-concentration-{time_bucket(now)}",
        market_id=market_id,
        type=AnomalyType.WALLET_CONCENTRATION,
        severity=Severity.HIGH if share >= 0.9 else Severity.MEDIUM,
        score=clamp_score(share * 100),
        timestamp=now,
        label="Wallet concentration",
        message=(
            f"Top wallet controls {share * 100:.0f}% of volume in last "
            f"{minutes(window_ms)}m (top 5% historically)"
        ),
        context={
            "top_wallet_share": share,
            "top_wallet_volume": top_volume,
            "total_volume": total,
            "percentile95": p_top,
            "window_ms": window_ms,
        },
        meta=AnomalyMeta(wallet=top_wallet),
    )


def detect_new_wallet_impact(
    market_id: str,
    window_ms: float,
    trades: Sequence[Trade],
    now: float,
    config: AnomalyDetectionConfig
) -> list[AnomalyEvent]:
    """
    Large trades from wallets with fewer than three prior trades that
    coincide with a 5+ point (or 5%+) move in the same outcome.
    """
    market_trades, recent, historical = _split(market_id, window_ms, trades, now)
    if not recent:
        return []

    history_counts: dict[str, int] = defaultdict(int)
    for t in historical:
        history_counts[t.user or "unknown"] += 1

    threshold = config.whale.absolute_threshold
    by_outcome: dict[str, list[Trade]] = defaultdict(list)
    for t in sorted(market_trades, key=lambda t: t.timestamp_ms):
        by_outcome[t.outcome].append(t)

    events = []
    for trade in recent:
        size = trade.amount
        if size <= 0:
            continue
        prior_count = history_counts[trade.user or "unknown"]
        if prior_count >= NEW_WALLET_MAX_TRADES or size < threshold * 0.5:
            continue

        ts = trade.timestamp_ms
        same = by_outcome[trade.outcome]
        index = next(
            (i for i, t in enumerate(same) if t.id == trade.id and abs(t.timestamp_ms - ts) < 1000),
            -1,
        )
        if index == -1:
            continue

        before = trade.price
        for t in reversed(same[:index]):
            if ts - IMPACT_WINDOW_MS <= t.timestamp_ms < ts:
                before = t.price
                break
        after = trade.price
        for t in same[index + 1:]:
            if ts < t.timestamp_ms <= ts + IMPACT_WINDOW_MS:
                after = t.price
                break

        if before == trade.price and after == trade.price:
            continue
        if before <= 0:
            continue

        change_pct = abs((after - before) / before * 100)
        points = abs((after - before) * 100)
        if change_pct < 5 and points < 5:
            continue

        high = size >= threshold or change_pct >= 10 or points >= 10
        direction = "buy" if trade.outcome == "YES" else "sell"
        events.append(AnomalyEvent(
            id=f"{market_id}-new-wallet-impact-{trade.id}-{time_bucket(ts)}",
            market_id=market_id,
            type=AnomalyType.NEW_WALLET_IMPACT,
            severity=Severity.HIGH if high else Severity.MEDIUM,
            score=clamp_score(change_pct / 20 * 50 + points / 20 * 50 + size / threshold * 50),
            timestamp=ts,
            label="New wallet impact",
            message=(
                f"New wallet {direction}: {size:,.0f} USDC moved price {points:.1f} percentage "
                f"points ({change_pct:.1f}% change, from {before * 100:.1f}% to {after * 100:.1f}%)"
            ),
            context={
                "trade_size": size,
                "price_change": change_pct,
                "price_point_change": points,
                "price_before": before,
                "price_after": after,
                "historical_trade_count": prior_count,
                "window_ms": window_ms,
            },
            meta=AnomalyMeta(wallet=trade.user, outcome_id=trade.outcome),
        ))
    return events


def detect_participant_anomalies(
    market_id: str,
    window_ms: float,
    trades: Sequence[Trade],
    now: float,
    config: AnomalyDetectionConfig
) -> list[AnomalyEvent]:
    events = detect_whale_trades(market_id, window_ms, trades, now, config)
    concentration = detect_wallet_concentration(market_id, window_ms, trades, now, config)
    if concentration:
        events.append(concentration)
    events.extend(detect_new_wallet_impact(market_id, window_ms, trades, now, config))
    return events
