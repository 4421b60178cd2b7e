"""
Sizing, odds and liquidity calculators behind the dashboard cards.
"""
from dataclasses import asdict

from fastapi import APIRouter

from ...clients.clob_client import OrderBookLevel
from ...pricing import pm_math
from ...pricing.liquidity import (
    calculate_common_impact_sizes,
    calculate_liquidity_metrics,
    calculate_price_impact,
)
from ...pricing.sizing import RiskTolerance, calculate_kelly, calculate_position_size
from ..deps import camelize
from ..errors import BadRequest
from ..schemas import KellyBody, LiquidityBody, OddsBody, PositionSizeBody

router = APIRouter(prefix="/api/calculators", tags=["calculators"])


@router.post("/kelly")
async def kelly(body: KellyBody):
    try:
        result = calculate_kelly(
            belief=body.belief,
            entry=body.entry,
            fee=body.fee,
            fraction=body.fraction,
            max_position=body.max_position,
            bankroll=body.bankroll,
        )
    except ValueError as e:
        raise BadRequest("Invalid calculator input", details=str(e))
    return camelize(asdict(result))


@router.post("/position-size")
async def position_size(body: PositionSizeBody):
    try:
        result = calculate_position_size(
            bankroll=body.bankroll,
            belief=body.belief,
            entry=body.entry,
            fee=body.fee,
            risk=RiskTolerance.from_name(body.risk_level),
            use_kelly=body.use_kelly,
            custom_percent=body.custom_percent,
        )
    except ValueError as e:
        raise BadRequest("Invalid calculator input", details=str(e))
    return camelize(asdict(result))


@router.post("/odds")
async def odds(body: OddsBody):
    """Convert one odds format to all the others."""
    try:
        if body.probability is not None:
            p = body.probability
        elif body.decimal is not None:
            p = pm_math.decimal_odds_to_prob(body.decimal)
        elif body.us is not None:
            p = pm_math.us_odds_to_prob(body.us)
        else:
            p = pm_math.logit_to_prob(body.logit)
    except OverflowError:
        raise BadRequest("Invalid calculator input", details="Odds value out of range")

    p = pm_math.clamp_prob(p)
    return {
        "probability": p,
        "decimal": pm_math.prob_to_decimal_odds(p),
        "us": pm_math.prob_to_us_odds(p),
        "logit": pm_math.prob_to_logit(p),
    }


@router.post("/liquidity")
async def liquidity(body: LiquidityBody):
    bids = sorted((OrderBookLevel(l.price, l.size) for l in body.bids), key=lambda l: l.price, reverse=True)
    asks = sorted((OrderBookLevel(l.price, l.size) for l in body.asks), key=lambda l: l.price)

    metrics = calculate_liquidity_metrics(bids, asks)
    current_price = body.current_price or metrics.mid_price
    response = {"metrics": camelize(asdict(metrics)), "impacts": None}

    if current_price and current_price > 0:
        try:
            response["impacts"] = calculate_common_impact_sizes(bids, asks, current_price)
        except ValueError as e:
            raise BadRequest("Invalid calculator input", details=str(e))
    return response


@router.post("/price-impact")
async def price_impact(body: LiquidityBody, size: float, side: str = "buy"):
    if side not in ("buy", "sell"):
        raise BadRequest("side must be buy or sell")
    if size <= 0:
        raise BadRequest("size must be positive")
    bids = sorted((OrderBookLevel(l.price, l.size) for l in body.bids), key=lambda l: l.price, reverse=True)
    asks = sorted((OrderBookLevel(l.price, l.size) for l in body.asks), key=lambda l: l.price)
    return camelize(asdict(calculate_price_impact(bids, asks, size, side)))
