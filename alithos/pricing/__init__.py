# Pricing math, sizing and liquidity
from .pm_math import break_even_prob, ev_per_dollar, kelly_fraction
from .sizing import RiskTolerance, calculate_kelly, calculate_position_size
from .liquidity import calculate_liquidity_metrics, calculate_price_impact, calculate_common_impact_sizes

__all__ = [
    "break_even_prob",
    "ev_per_dollar",
    "kelly_fraction",
    "RiskTolerance",
    "calculate_kelly",
    "calculate_position_size",
    "calculate_liquidity_metrics",
    "calculate_price_impact",
    "calculate_common_impact_sizes",
]
