"""
Order book liquidity metrics: depth, spread and price impact.

Bids are expected sorted by price descending, asks ascending.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from ..clients.clob_client import OrderBookLevel

COMMON_IMPACT_SIZES_USDC = (100, 500, 1000, 5000)


@dataclass
class LiquidityMetrics:
    depth: float  # bid + ask size
    spread: float  # percent of mid
    spread_abs: float
    mid_price: float
    best_bid: Optional[float]
    best_ask: Optional[float]
    bid_depth: float
    ask_depth: float


@dataclass
class PriceImpact:
    impact_percent: float
    average_price: float
    execution_price: float
    total_cost: float


def calculate_liquidity_metrics(
    bids: Sequence[OrderBookLevel],
    asks: Sequence[OrderBookLevel]
) -> LiquidityMetrics:
    """Calculate depth and spread from the top of the book."""
    best_bid = bids[0].price if bids and bids[0].price else None
    best_ask = asks[0].price if asks and asks[0].price else None

    bid_depth = sum(level.size for level in bids)
    ask_depth = sum(level.size for level in asks)

    if best_bid is not None and best_ask is not None:
        spread_abs = best_ask - best_bid
        mid_price = (best_bid + best_ask) / 2
    else:
        spread_abs = 0.0
        mid_price = 0.0
    spread = spread_abs / mid_price * 100 if mid_price > 0 else 0.0

    return LiquidityMetrics(
        depth=bid_depth + ask_depth,
        spread=spread,
        spread_abs=spread_abs,
        mid_price=mid_price,
        best_bid=best_bid,
        best_ask=best_ask,
        bid_depth=bid_depth,
        ask_depth=ask_depth,
    )


def calculate_price_impact(
    bids: Sequence[OrderBookLevel],
    asks: Sequence[OrderBookLevel],
    trade_size: float,
    side: str
) -> PriceImpact:
    """
    Walk the book to estimate the price impact of a market order.

    Args:
        bids: Bid levels, best first
        asks: Ask levels, best first
        trade_size: Size in outcome tokens
        side: "buy" consumes asks, "sell" consumes bids

    Returns:
        PriceImpact with impact as a non-negative percentage of mid
    """
    if side not in ("buy", "sell"):
        raise ValueError(f"side must be 'buy' or 'sell', got {side!r}")
    if trade_size <= 0:
        return PriceImpact(0.0, 0.0, 0.0, 0.0)

    best_bid = bids[0].price if bids else 0.0
    best_ask = asks[0].price if asks else 0.0
    if best_bid and best_ask:
        mid_price = (best_bid + best_ask) / 2
    else:
        mid_price = best_bid or best_ask or 0.0

    levels = asks if side == "buy" else bids
    remaining = trade_size
    notional = 0.0
    filled = 0.0
    for level in levels:
        if remaining <= 0:
            break
        take = min(remaining, level.size)
        notional += take * level.price
        filled += take
        remaining -= take

    touch = best_ask if side == "buy" else best_bid
    if filled == 0:
        return PriceImpact(0.0, touch, touch, 0.0)

    average_price = notional / filled
    if mid_price > 0:
        move = average_price - mid_price if side == "buy" else mid_price - average_price
        impact = move / mid_price * 100
    else:
        impact = 0.0

    return PriceImpact(
        impact_percent=max(0.0, impact),
        average_price=average_price,
        execution_price=average_price,
        total_cost=notional,
    )


def calculate_common_impact_sizes(
    bids: Sequence[OrderBookLevel],
    asks: Sequence[OrderBookLevel],
    current_price: float
) -> dict[str, list[dict]]:
    """Impact for $100/$500/$1k/$5k notional on both sides."""
    if current_price <= 0:
        raise ValueError("current_price must be positive")

    result: dict[str, list[dict]] = {"buy": [], "sell": []}
    for side in ("buy", "sell"):
        for usdc in COMMON_IMPACT_SIZES_USDC:
            impact = calculate_price_impact(bids, asks, usdc / current_price, side)
            result[side].append({"size": usdc, "impact": impact.impact_percent})
    return result
