"""
Anomaly detection for prediction market activity.

Pure detectors over trades, order book snapshots and market metadata,
combined into per-market heat scores by `AnomalyEngine`.
"""

from .config import AnomalyDetectionConfig, DEFAULT_CONFIG, merge_config
from .engine import AnomalyEngine
from .scoring import compute_heat_score, compute_heat_scores, get_severity_band
from .types import (
    AnomalyDetectionResult,
    AnomalyEvent,
    AnomalyFilters,
    AnomalyType,
    MarketHeatScore,
    MarketMetadata,
    OrderBookSnapshot,
    Severity,
    Trade,
)

__all__ = [
    "AnomalyDetectionConfig",
    "DEFAULT_CONFIG",
    "merge_config",
    "AnomalyEngine",
    "compute_heat_score",
    "compute_heat_scores",
    "get_severity_band",
    "AnomalyDetectionResult",
    "AnomalyEvent",
    "AnomalyFilters",
    "AnomalyType",
    "MarketHeatScore",
    "MarketMetadata",
    "OrderBookSnapshot",
    "Severity",
    "Trade",
]
