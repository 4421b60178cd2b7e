"""
Kelly calculator and position sizing.

All probabilities are fractions in (0, 1); percentage outputs are scaled
by 100 for display, matching the dashboard cards that consume them.
"""
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .pm_math import break_even_cost, break_even_prob, ev_per_dollar, kelly_fraction


@dataclass(frozen=True)
class RiskPreset:
    """Fractional Kelly multiplier and bankroll cap."""
    kelly_fraction: float
    max_position: float


class RiskTolerance(Enum):
    """Risk tolerance presets for position sizing."""
    CONSERVATIVE = RiskPreset(kelly_fraction=0.25, max_position=0.10)
    MODERATE = RiskPreset(kelly_fraction=0.50, max_position=0.25)
    AGGRESSIVE = RiskPreset(kelly_fraction=1.0, max_position=0.50)

    @classmethod
    def from_name(cls, name: str) -> "RiskTolerance":
        try:
            return cls[name.upper()]
        except KeyError:
            raise ValueError(f"Unknown risk tolerance: {name}") from None


@dataclass
class KellyResult:
    """Output of the Kelly calculator."""
    break_even: float  # percent
    ev: float  # per dollar
    ev_percent: float
    kelly_fraction: float
    kelly_percent: float
    position_size: float  # USDC
    edge: float  # percentage points above break-even
    is_positive_ev: bool
    is_above_break_even: bool


@dataclass
class PositionSizeResult:
    """Output of the position sizing calculator."""
    break_even: float
    recommended_entry: float
    ev: float
    full_kelly: float
    adjusted_kelly: float
    position_percent: float
    position_size: float
    edge: float
    risk_of_ruin: float  # percent
    expected_profit: float
    expected_profit_percent: float
    is_positive_ev: bool
    is_above_break_even: bool


def _validate_inputs(belief: float, entry: float, fee: float) -> None:
    for name, value in (("belief", belief), ("entry", entry), ("fee", fee)):
        if value is None or math.isnan(value):
            raise ValueError(f"{name} must be a number")
    if not 0 < belief < 1:
        raise ValueError("belief must be between 0 and 1 (exclusive)")
    if not 0 < entry < 1:
        raise ValueError("entry must be between 0 and 1 (exclusive)")


def calculate_kelly(
    belief: float,
    entry: float,
    fee: float = 0.02,
    fraction: float = 1.0,
    max_position: float = 1.0,
    bankroll: float = 1000.0
) -> KellyResult:
    """
    Calculate Kelly sizing for buying YES at `entry` with belief `belief`.

    Args:
        belief: Believed probability of YES
        entry: Entry price
        fee: Profit fee on wins
        fraction: Fractional Kelly multiplier
        max_position: Cap as a fraction of bankroll
        bankroll: Bankroll in USDC

    Returns:
        KellyResult with break-even, EV, Kelly and edge
    """
    _validate_inputs(belief, entry, fee)

    breakeven = break_even_prob(entry, fee)
    ev = ev_per_dollar(belief, entry, fee)
    kelly = kelly_fraction(belief, entry, fee, fraction, max_position, False)

    return KellyResult(
        break_even=breakeven * 100,
        ev=ev,
        ev_percent=ev * 100,
        kelly_fraction=kelly,
        kelly_percent=kelly * 100,
        position_size=kelly * bankroll,
        edge=(belief - breakeven) * 100,
        is_positive_ev=ev > 0,
        is_above_break_even=belief > breakeven,
    )


def calculate_position_size(
    bankroll: float,
    belief: float,
    entry: float,
    fee: float = 0.02,
    risk: RiskTolerance = RiskTolerance.MODERATE,
    use_kelly: bool = True,
    custom_percent: Optional[float] = None
) -> PositionSizeResult:
    """
    Size a position from risk tolerance, or from a custom bankroll percentage.

    Risk of ruin uses the gambler's-ruin approximation
    exp(-2 * bankroll * edge / position_size).
    """
    _validate_inputs(belief, entry, fee)
    if bankroll <= 0:
        raise ValueError("bankroll must be positive")

    preset = risk.value
    breakeven = break_even_prob(entry, fee)
    fair_entry = break_even_cost(belief, fee)
    ev = ev_per_dollar(belief, entry, fee)

    full_kelly = kelly_fraction(belief, entry, fee, 1, 1, False)
    adjusted_kelly = kelly_fraction(
        belief, entry, fee, preset.kelly_fraction, preset.max_position, False
    )

    if use_kelly:
        position_percent = adjusted_kelly * 100
        position_size = adjusted_kelly * bankroll
    else:
        position_percent = custom_percent or 0.0
        position_size = position_percent / 100 * bankroll

    edge = belief - breakeven
    risk_of_ruin = math.exp(-2 * bankroll * edge / position_size) if position_percent > 0 else 0.0
    expected_profit = ev * position_size

    return PositionSizeResult(
        break_even=breakeven * 100,
        recommended_entry=fair_entry * 100,
        ev=ev,
        full_kelly=full_kelly * 100,
        adjusted_kelly=adjusted_kelly * 100,
        position_percent=position_percent,
        position_size=position_size,
        edge=edge * 100,
        risk_of_ruin=min(risk_of_ruin, 1.0) * 100,
        expected_profit=expected_profit,
        expected_profit_percent=expected_profit / bankroll * 100,
        is_positive_ev=ev > 0,
        is_above_break_even=belief > breakeven,
    )
