"""
Paper chain adapters.

In-memory price feeds, reference pools and a fixed-rate router driven by the
injected clock. Used for dry runs and local development.
"""

from __future__ import annotations

import itertools
from decimal import Decimal
from typing import List, Optional

from treasury.domain.services.twap import price_to_tick
from treasury.infrastructure.chain.types import FeedRound, SwapReceipt
from treasury.utils.clock import Clock


class PaperPriceFeed:
    """Aggregator feed that answers a new round with the current price on every read."""

    def __init__(self, price: Decimal, clock: Clock, decimals: int = 8):
        self.clock = clock
        self.decimals = decimals
        self.round_id = 0
        self._rounds = itertools.count(1)
        self.price = Decimal(str(price))
        self.updated_at: Optional[int] = None

    def set_price(self, price: Decimal, updated_at: Optional[int] = None) -> None:
        self.price = Decimal(str(price))
        self.updated_at = updated_at

    async def latest_round_data(self) -> FeedRound:
        self.round_id = next(self._rounds)
        updated_at = self.updated_at if self.updated_at is not None else self.clock.now()
        answer = int(self.price.scaleb(self.decimals))
        return FeedRound(
            round_id=self.round_id,
            answer=answer,
            started_at=updated_at,
            updated_at=updated_at,
            answered_in_round=self.round_id,
        )


class PaperPool:
    """
    Reference pool holding a constant tick.

    price is token1 per token0 in whole-token units.
    """

    def __init__(self, price: Decimal, token0_decimals: int, token1_decimals: int, clock: Clock):
        self.clock = clock
        self.token0_decimals = token0_decimals
        self.token1_decimals = token1_decimals
        self.tick = price_to_tick(Decimal(str(price)), token0_decimals, token1_decimals)

    def set_price(self, price: Decimal) -> None:
        self.tick = price_to_tick(Decimal(str(price)), self.token0_decimals, self.token1_decimals)

    async def observe(self, seconds_agos: List[int]) -> List[int]:
        now = self.clock.now()
        return [self.tick * (now - int(ago)) for ago in seconds_agos]


class PaperRouter:
    """Fixed-rate router; rate 1 mirrors a 1:1 wrapped-asset swap."""

    def __init__(self, rate: Decimal = Decimal("1"), gas_cost: Decimal = Decimal("0")):
        self.rate = Decimal(str(rate))
        self.gas_cost = Decimal(str(gas_cost))
        self._tx = itertools.count(1)

    async def get_amounts_out(self, amount_in: Decimal, path: List[str]) -> List[Decimal]:
        return [amount_in, amount_in * self.rate]

    async def swap(
        self,
        amount_in: Decimal,
        min_amount_out: Decimal,
        path: List[str],
        fee_bps: int,
    ) -> SwapReceipt:
        amount_out = amount_in * self.rate
        if amount_out < min_amount_out:
            raise RuntimeError(f"insufficient output: {amount_out} < {min_amount_out}")
        return SwapReceipt(
            amounts=[amount_in, amount_out],
            gas_cost=self.gas_cost,
            tx_hash=f"paper-{next(self._tx)}",
            extra={"path": list(path), "fee_bps": fee_bps},
        )
