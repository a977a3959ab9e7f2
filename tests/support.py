"""Dummy chain collaborators shared by unit and integration tests."""

import asyncio
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Optional

from treasury.domain.services.config_engine import ConfigEngine, StrategyConfig
from treasury.domain.services.treasury_controller import TreasuryController
from treasury.domain.services.twap import price_to_tick
from treasury.infrastructure.chain.types import FeedRound, SwapReceipt

CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


def load_strategy() -> StrategyConfig:
    engine = ConfigEngine(CONFIG_DIR)
    engine.load_all()
    return engine.strategy


class DummyFeed:
    def __init__(self, clock, price, decimals: int = 8, round_id: int = 1):
        self.clock = clock
        self.price = Decimal(str(price))
        self.decimals = decimals
        self.round_id = round_id
        self.answered_in_round: Optional[int] = None
        self.updated_at: Optional[int] = None
        self.error: Optional[Exception] = None

    async def latest_round_data(self) -> FeedRound:
        if self.error is not None:
            raise self.error
        updated_at = self.clock.now() if self.updated_at is None else self.updated_at
        rnd = FeedRound(
            round_id=self.round_id,
            answer=int(self.price.scaleb(self.decimals)),
            started_at=updated_at,
            updated_at=updated_at,
            answered_in_round=self.round_id if self.answered_in_round is None else self.answered_in_round,
        )
        # next read answers a new round
        self.round_id += 1
        return rnd


class DummyPool:
    def __init__(self, clock, price, token0_decimals: int, token1_decimals: int):
        self.clock = clock
        self.token0_decimals = token0_decimals
        self.token1_decimals = token1_decimals
        self.error: Optional[Exception] = None
        self.set_price(price)

    def set_price(self, price) -> None:
        self.tick = price_to_tick(Decimal(str(price)), self.token0_decimals, self.token1_decimals)

    async def observe(self, seconds_agos: List[int]) -> List[int]:
        if self.error is not None:
            raise self.error
        now = self.clock.now()
        return [self.tick * (now - ago) for ago in seconds_agos]


class DummyRouter:
    def __init__(self, rate="1", quote_rate=None, gas_cost="0.00002"):
        self.rate = Decimal(str(rate))
        self.quote_rate = Decimal(str(quote_rate)) if quote_rate is not None else None
        self.gas_cost = Decimal(str(gas_cost))
        self.error: Optional[Exception] = None
        self.swaps: List[dict] = []
        self.hold: Optional[asyncio.Event] = None
        self.entered = asyncio.Event()

    async def get_amounts_out(self, amount_in: Decimal, path: List[str]) -> List[Decimal]:
        rate = self.quote_rate if self.quote_rate is not None else self.rate
        return [amount_in, amount_in * rate]

    async def swap(self, amount_in, min_amount_out, path, fee_bps) -> SwapReceipt:
        self.entered.set()
        if self.hold is not None:
            await self.hold.wait()
        if self.error is not None:
            raise self.error
        self.swaps.append({"amount_in": amount_in, "min_amount_out": min_amount_out, "path": path, "fee_bps": fee_bps})
        return SwapReceipt(amounts=[amount_in, amount_in * self.rate], gas_cost=self.gas_cost)


class DummyAlert:
    def __init__(self):
        self.calls: List[tuple] = []

    async def __call__(self, tier: str, title: str, body: str) -> bool:
        self.calls.append((tier, title, body))
        return True


def build_market(clock, btc="100000", eth="4000") -> Dict[str, dict]:
    """Feeds and pools whose TWAPs agree with the feed prices."""
    btc = Decimal(str(btc))
    eth = Decimal(str(eth))
    feeds = {
        "btc_usd": DummyFeed(clock, btc),
        "btc_usd_fallback": DummyFeed(clock, btc),
        "eth_usd": DummyFeed(clock, eth),
        "eth_usd_fallback": DummyFeed(clock, eth),
    }
    pools = {
        "cbbtc_usdc": DummyPool(clock, btc, 8, 6),
        "wbtc_weth": DummyPool(clock, btc / eth, 8, 18),
    }
    return {"feeds": feeds, "pools": pools}


def build_controller(clock, config=None, router=None, market=None, alert=None, balances=None) -> TreasuryController:
    config = config or load_strategy()
    market = market or build_market(clock)
    return TreasuryController.build(
        config,
        clock,
        feeds=market["feeds"],
        pools=market["pools"],
        router=router or DummyRouter(),
        alert=alert,
        balances=balances,
    )
