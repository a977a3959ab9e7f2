"""
Chain collaborator protocols for type hints.

Price feeds, reference pools and swap routers live outside the controller;
these are the shapes it consumes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Protocol


@dataclass(frozen=True)
class FeedRound:
    """latestRoundData() of an aggregator feed; answer is scaled by decimals."""
    round_id: int
    answer: int
    started_at: int
    updated_at: int
    answered_in_round: int


@dataclass(frozen=True)
class SwapReceipt:
    amounts: List[Decimal]
    gas_cost: Decimal = Decimal("0")
    tx_hash: str = ""
    extra: dict = field(default_factory=dict)

    @property
    def amount_out(self) -> Decimal:
        return self.amounts[-1] if self.amounts else Decimal("0")


class PriceFeed(Protocol):
    decimals: int

    async def latest_round_data(self) -> FeedRound:
        ...


class TwapPool(Protocol):
    async def observe(self, seconds_agos: List[int]) -> List[int]:
        ...


class SwapRouter(Protocol):
    async def get_amounts_out(self, amount_in: Decimal, path: List[str]) -> List[Decimal]:
        ...

    async def swap(
        self,
        amount_in: Decimal,
        min_amount_out: Decimal,
        path: List[str],
        fee_bps: int,
    ) -> SwapReceipt:
        ...
