"""
Prediction-market math helpers.

Covers probability/odds conversions, fee-aware break-even, EV and Kelly
sizing (profit-fee model: the fee is charged on winnings only), and the two
common automated market makers:

- LMSR (logarithmic market scoring rule) with liquidity parameter b
- CPMM (constant product, x*y=k) YES/NO pools where x is the YES reserve
  and y is the NO reserve, so price p = y / (x + y)
"""

import math
from dataclasses import dataclass

EPS = 1e-12


def clamp(x: float, lo: float, hi: float) -> float:
    return min(hi, max(lo, x))


def clamp_prob(p: float) -> float:
    """Clamp a probability into the open interval (0, 1)."""
    return clamp(p, EPS, 1 - EPS)


# ---------- Conversions ----------

def prob_to_logit(p: float) -> float:
    p = clamp_prob(p)
    return math.log(p / (1 - p))


def logit_to_prob(z: float) -> float:
    return 1 / (1 + math.exp(-z))


def prob_to_decimal_odds(p: float) -> float:
    return 1 / clamp_prob(p)


def decimal_odds_to_prob(odds: float) -> float:
    return 1 / odds


def prob_to_us_odds(p: float) -> float:
    """American odds: favourites are negative, underdogs positive."""
    if p >= 0.5:
        return -(p / (1 - p)) * 100
    return ((1 - p) / p) * 100


def us_odds_to_prob(us: float) -> float:
    if us > 0:
        return 100 / (us + 100)
    return -us / (100 - us)


# ---------- Break-even, EV, Kelly ----------

def break_even_prob(cost: float, fee: float) -> float:
    """Break-even probability for entry price `cost` and win-only profit fee."""
    return cost / (cost + (1 - fee) * (1 - cost))


def break_even_cost(p: float, fee: float) -> float:
    """Highest entry price that is still fair for belief p."""
    return (p * (1 - fee)) / (1 - p + p * (1 - fee))


def ev_per_dollar(p: float, cost: float, fee: float) -> float:
    """Expected profit per share bought at `cost` paying 1 on YES."""
    return p * (1 - fee) * (1 - cost) - (1 - p) * cost


def kelly_fraction(
    p: float,
    cost: float,
    fee: float = 0.0,
    frac: float = 1.0,
    f_max: float = 1.0,
    allow_negative: bool = False
) -> float:
    """
    Kelly fraction of bankroll for buying YES.

    Kelly formula: f* = (b*p - q) / b
    where b = net odds per dollar staked = (1 - fee) * (1 - cost) / cost

    Args:
        p: Believed probability of YES
        cost: Entry price (0..1)
        fee: Profit fee charged on wins
        frac: Fractional Kelly multiplier
        f_max: Cap on the returned fraction
        allow_negative: Return negative sizes when the edge is negative

    Returns:
        Bankroll fraction clamped to [0, f_max] (or [-f_max, f_max])
    """
    b = ((1 - fee) * (1 - cost)) / cost
    f_star = (b * p - (1 - p)) / b
    f_adj = f_star * frac
    if allow_negative:
        return clamp(f_adj, -f_max, f_max)
    return clamp(max(0.0, f_adj), 0.0, f_max)


# ---------- LMSR ----------

@dataclass
class LmsrTrade:
    """Result of moving an LMSR market to a target price."""
    dq_yes: float
    cost: float
    qy_new: float
    qn_new: float
    p0: float
    p_new: float


def lmsr_cost(q_yes: float, q_no: float, b: float) -> float:
    """C(qy, qn) = b * ln(e^(qy/b) + e^(qn/b)), evaluated without overflow."""
    a, c = q_yes / b, q_no / b
    m = max(a, c)
    return b * (m + math.log(math.exp(a - m) + math.exp(c - m)))


def lmsr_price(q_yes: float, q_no: float, b: float) -> float:
    return 1 / (1 + math.exp((q_no - q_yes) / b))


def lmsr_price_from_skew(skew: float, b: float) -> float:
    """Price from skew s = qy - qn."""
    return 1 / (1 + math.exp(-skew / b))


def lmsr_skew_from_price(p: float, b: float) -> float:
    return b * prob_to_logit(p)


def lmsr_cost_delta_yes(q_yes: float, q_no: float, b: float, d_yes: float) -> float:
    """Cost of buying d_yes YES shares with q_no held fixed."""
    return lmsr_cost(q_yes + d_yes, q_no, b) - lmsr_cost(q_yes, q_no, b)


def lmsr_trade_to_target_price(q_yes: float, q_no: float, b: float, p_target: float) -> LmsrTrade:
    """Buy (or sell) YES only until the price reaches p_target."""
    p0 = lmsr_price(q_yes, q_no, b)
    dq = b * (prob_to_logit(p_target) - prob_to_logit(p0))
    cost = lmsr_cost_delta_yes(q_yes, q_no, b, dq)
    qy_new = q_yes + dq
    return LmsrTrade(
        dq_yes=dq,
        cost=cost,
        qy_new=qy_new,
        qn_new=q_no,
        p0=p0,
        p_new=lmsr_price(qy_new, q_no, b),
    )


# ---------- CPMM ----------

@dataclass
class CpmmBuy:
    """Buying dx YES out of the pool by paying NO in."""
    dy_eff: float  # NO actually added to the pool
    dy_paid: float  # NO paid by trader including fee
    avg_price_no_per_yes: float
    x1: float
    y1: float
    r_end: float
    p_end: float


@dataclass
class CpmmTarget:
    """Trade required to push the pool to a target probability."""
    dx_out_yes: float
    dy_eff_in: float
    dy_paid: float
    avg_price_no_per_yes: float
    x1: float
    y1: float
    r_target: float
    p0: float
    p_new: float


@dataclass
class CpmmSell:
    """Selling YES into the pool for NO."""
    dy_to_user: float
    dy_out_eff: float
    avg_no_per_yes: float
    x1: float
    y1: float
    p_end: float


@dataclass
class CpmmSlippage:
    r0: float
    r1: float
    r_avg: float
    slip_pct: float
    p0: float
    p1: float


def cpmm_prob(x: float, y: float) -> float:
    return y / (x + y)


def cpmm_spot_ratio(x: float, y: float) -> float:
    """NO per YES at the margin."""
    return y / x


def cpmm_buy_yes_cost(x: float, y: float, dx: float, fee_in: float = 0.0) -> CpmmBuy:
    """NO cost to take dx YES out of the pool; fee applies to NO sent in."""
    if dx <= 0:
        raise ValueError("dx must be > 0")
    if dx >= x:
        raise ValueError("dx too large")
    k = x * y
    x1 = x - dx
    y1 = k / x1
    dy_eff = y1 - y
    dy_paid = dy_eff / (1 - fee_in)
    return CpmmBuy(
        dy_eff=dy_eff,
        dy_paid=dy_paid,
        avg_price_no_per_yes=dy_paid / dx,
        x1=x1,
        y1=y1,
        r_end=y1 / x1,
        p_end=y1 / (x1 + y1),
    )


def cpmm_trade_to_target_prob(x: float, y: float, p_target: float, fee_in: float = 0.0) -> CpmmTarget:
    """YES bought and NO paid to move the pool to p_target (buy side only)."""
    if not 0 < p_target < 1:
        raise ValueError("p_target must be in (0, 1)")
    k = x * y
    r_target = p_target / (1 - p_target)
    x1 = math.sqrt(k / r_target)
    y1 = math.sqrt(k * r_target)
    if x1 >= x:
        raise ValueError("Target probability is below current; use sell path or adjust")
    dx_out = x - x1
    dy_eff_in = y1 - y
    dy_paid = dy_eff_in / (1 - fee_in)
    return CpmmTarget(
        dx_out_yes=dx_out,
        dy_eff_in=dy_eff_in,
        dy_paid=dy_paid,
        avg_price_no_per_yes=dy_paid / dx_out,
        x1=x1,
        y1=y1,
        r_target=r_target,
        p0=y / (x + y),
        p_new=y1 / (x1 + y1),
    )


def cpmm_sell_yes_receive_no(x: float, y: float, dx_in: float, fee_out: float = 0.0) -> CpmmSell:
    """Add dx_in YES to the pool and receive NO; fee applies to NO leaving."""
    if dx_in <= 0:
        raise ValueError("dx_in must be > 0")
    k = x * y
    x1 = x + dx_in
    y1 = k / x1
    dy_out_eff = y - y1
    dy_to_user = dy_out_eff * (1 - fee_out)
    return CpmmSell(
        dy_to_user=dy_to_user,
        dy_out_eff=dy_out_eff,
        avg_no_per_yes=dy_to_user / dx_in,
        x1=x1,
        y1=y1,
        p_end=y1 / (x1 + y1),
    )


def cpmm_slippage_summary(x: float, y: float, dx: float, fee_in: float = 0.0) -> CpmmSlippage:
    """Average vs spot ratio for buying dx YES."""
    r0 = y / x
    trade = cpmm_buy_yes_cost(x, y, dx, fee_in)
    r_avg = trade.dy_paid / dx
    return CpmmSlippage(
        r0=r0,
        r1=trade.y1 / trade.x1,
        r_avg=r_avg,
        slip_pct=(r_avg / r0 - 1) * 100,
        p0=y / (x + y),
        p1=trade.p_end,
    )
