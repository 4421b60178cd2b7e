"""
Composite heat scores.

Each anomaly contributes score/100 scaled by the weight of its category;
the sum is put back on a 0-100 scale and clamped.
"""

from typing import Mapping, Sequence

from .config import AnomalyDetectionConfig
from .types import AnomalyEvent, AnomalyType, MarketHeatScore

CATEGORY_BY_TYPE = {
    AnomalyType.VOLUME_SPIKE: "volume",
    AnomalyType.FLOW_IMBALANCE: "volume",
    AnomalyType.PRICE_JUMP: "price",
    AnomalyType.VOLATILITY_SPIKE: "price",
    AnomalyType.BREAKOUT: "price",
    AnomalyType.SPREAD_WIDENING: "liquidity",
    AnomalyType.SPREAD_TIGHTENING: "liquidity",
    AnomalyType.DEPTH_CHANGE: "liquidity",
    AnomalyType.SLIPPAGE_CHANGE: "liquidity",
    AnomalyType.WHALE_TRADE: "participant",
    AnomalyType.WALLET_CONCENTRATION: "participant",
    AnomalyType.NEW_WALLET_IMPACT: "participant",
    AnomalyType.CROSS_MARKET_MISPRICING: "cross_market",
    AnomalyType.PRE_EXPIRY_ANOMALY: "cross_market",
    AnomalyType.COMPOSITE_EVENT: "cross_market",
}


def anomaly_weight(anomaly_type: AnomalyType, config: AnomalyDetectionConfig) -> float:
    category = CATEGORY_BY_TYPE.get(anomaly_type, "volume")
    return getattr(config.weights, category, 0.0)


def compute_heat_score(
    market_id: str,
    anomalies: Sequence[AnomalyEvent],
    config: AnomalyDetectionConfig,
    now: float
) -> MarketHeatScore:
    weighted_sum = 0.0
    components: dict[str, float] = {}

    for anomaly in anomalies:
        contribution = anomaly.score / 100 * anomaly_weight(anomaly.type, config)
        weighted_sum += contribution
        key = anomaly.type.value
        components[key] = components.get(key, 0.0) + contribution

    score = max(0.0, min(100.0, weighted_sum * 100))
    return MarketHeatScore(market_id=market_id, score=score, components=components, last_updated=now)


def get_severity_band(score: float, config: AnomalyDetectionConfig) -> str:
    bands = config.severity_bands
    if score < bands.calm:
        return "calm"
    if score < bands.mild:
        return "mild"
    if score < bands.hot:
        return "hot"
    return "on-fire"


def compute_heat_scores(
    anomalies_by_market: Mapping[str, Sequence[AnomalyEvent]],
    config: AnomalyDetectionConfig,
    now: float
) -> list[MarketHeatScore]:
    """Heat score per market, hottest first."""
    scores = [
        compute_heat_score(market_id, anomalies, config, now)
        for market_id, anomalies in anomalies_by_market.items()
    ]
    scores.sort(key=lambda h: h.score, reverse=True)
    return scores
