"""
Default configuration for anomaly detection.

Values are tuned for prediction markets; override any section with
merge_config({"thresholds": {"volume_z_score": 3.0}}).
"""

from dataclasses import dataclass, field, fields, replace
from typing import Optional

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS


@dataclass(frozen=True)
class Windows:
    short: int = 5 * MINUTE_MS
    medium: int = 15 * MINUTE_MS
    long: int = 60 * MINUTE_MS


@dataclass(frozen=True)
class Thresholds:
    volume_z_score: float = 2.5
    price_z_score: float = 2.5
    volatility_z_score: float = 2.0
    spread_z_score: float = 2.0


@dataclass(frozen=True)
class Minimums:
    volume_notional: float = 100  # USDC
    data_points: int = 10
    price_move_points: float = 10  # percent


@dataclass(frozen=True)
class FlowImbalance:
    threshold: float = 0.7
    percentile_threshold: float = 0.95


@dataclass(frozen=True)
class Weights:
    volume: float = 0.3
    price: float = 0.3
    liquidity: float = 0.2
    participant: float = 0.15
    cross_market: float = 0.05


@dataclass(frozen=True)
class SeverityBands:
    calm: float = 20
    mild: float = 50
    hot: float = 80
    on_fire: float = 100


@dataclass(frozen=True)
class Whale:
    absolute_threshold: float = 10000  # USDC
    percentile_threshold: float = 0.98


@dataclass(frozen=True)
class WalletConcentration:
    threshold: float = 0.7
    percentile_threshold: float = 0.95


@dataclass(frozen=True)
class CrossMarket:
    std_dev_threshold: float = 2.5


@dataclass(frozen=True)
class PreExpiry:
    time_threshold: int = 24 * HOUR_MS


@dataclass(frozen=True)
class AnomalyDetectionConfig:
    windows: Windows = field(default_factory=Windows)
    thresholds: Thresholds = field(default_factory=Thresholds)
    minimums: Minimums = field(default_factory=Minimums)
    flow_imbalance: FlowImbalance = field(default_factory=FlowImbalance)
    weights: Weights = field(default_factory=Weights)
    severity_bands: SeverityBands = field(default_factory=SeverityBands)
    whale: Whale = field(default_factory=Whale)
    wallet_concentration: WalletConcentration = field(default_factory=WalletConcentration)
    cross_market: CrossMarket = field(default_factory=CrossMarket)
    pre_expiry: PreExpiry = field(default_factory=PreExpiry)


DEFAULT_CONFIG = AnomalyDetectionConfig()


def merge_config(overrides: Optional[dict] = None) -> AnomalyDetectionConfig:
    """
    Merge per-section overrides onto the defaults.

    Args:
        overrides: {section: {field: value}}; unknown sections or fields raise

    Returns:
        New config; DEFAULT_CONFIG itself when there is nothing to merge
    """
    if not overrides:
        return DEFAULT_CONFIG

    sections = {f.name for f in fields(AnomalyDetectionConfig)}
    merged = {}
    for name, values in overrides.items():
        if name not in sections:
            raise ValueError(f"Unknown anomaly config section: {name}")
        if values:
            merged[name] = replace(getattr(DEFAULT_CONFIG, name), **values)
    return replace(DEFAULT_CONFIG, **merged)
