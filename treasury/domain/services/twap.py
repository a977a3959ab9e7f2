"""
TWAP helpers for concentrated-liquidity reference pools.

Pools report cumulative ticks; price(token1 per token0) = 1.0001 ** tick,
scaled by 10 ** (decimals0 - decimals1) into whole-token units.
"""

import math
from decimal import ROUND_CEILING, Decimal, localcontext
from typing import List

TICK_BASE = Decimal("1.0001")


def mean_tick(tick_cumulatives: List[int], lookback_seconds: int) -> int:
    """
    Arithmetic-mean tick over the lookback window.

    tick_cumulatives is the pool's answer to observe([lookback, 0]).
    Rounds toward negative infinity like the on-chain oracle library.
    """
    if len(tick_cumulatives) != 2:
        raise ValueError("Expected two tick cumulatives")
    if lookback_seconds <= 0:
        raise ValueError("Lookback must be positive")
    delta = int(tick_cumulatives[1]) - int(tick_cumulatives[0])
    return delta // lookback_seconds


def tick_to_price(tick: int, token0_decimals: int, token1_decimals: int, invert: bool = False) -> Decimal:
    """Whole-token price of token0 in token1 (or the inverse)."""
    with localcontext() as ctx:
        ctx.prec = 40
        raw = TICK_BASE ** tick
        price = raw * (Decimal(10) ** (token0_decimals - token1_decimals))
        if invert:
            price = Decimal(1) / price
        return +price


def price_to_tick(price: Decimal, token0_decimals: int, token1_decimals: int, invert: bool = False) -> int:
    """Nearest tick for a whole-token price (paper pools and fixtures)."""
    value = Decimal(price)
    if value <= 0:
        raise ValueError("Price must be positive")
    if invert:
        value = Decimal(1) / value
    raw = value / (Decimal(10) ** (token0_decimals - token1_decimals))
    return round(math.log(float(raw)) / math.log(1.0001))


def deviation_bps(price: Decimal, reference: Decimal) -> int:
    """Relative deviation of price from reference, in whole bps (rounded up)."""
    if reference <= 0:
        raise ValueError("Reference price must be positive")
    ratio = abs(price - reference) * 10_000 / reference
    return int(ratio.to_integral_value(rounding=ROUND_CEILING))
