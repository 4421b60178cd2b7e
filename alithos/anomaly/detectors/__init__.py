# Anomaly detectors, one module per family
from .volume_flow import detect_volume_flow_anomalies
from .price_volatility import detect_price_volatility_anomalies
from .liquidity import detect_liquidity_anomalies
from .participant import detect_participant_anomalies
from .cross_market import detect_cross_market_anomalies

__all__ = [
    "detect_volume_flow_anomalies",
    "detect_price_volatility_anomalies",
    "detect_liquidity_anomalies",
    "detect_participant_anomalies",
    "detect_cross_market_anomalies",
]
