"""
SWAP EXECUTOR
Bounded swaps through the external router

RESPONSIBILITIES:
- Enforce fee and slippage bounds
- Quote before swapping; refuse when the quote is already below minimum
- Verify the realized output against min_amount_out

RULES:
❌ Setters never clamp (ConfigOutOfBounds)
❌ No retry on router failure
"""

import logging
from decimal import Decimal
from typing import List, Optional

from treasury.domain.errors import ConfigOutOfBounds, FeeMismatch, RouterError, SlippageExceeded
from treasury.domain.models import BPS, ZERO, SwapDirection, SwapResult
from treasury.domain.models.entities import quantize_amount
from treasury.domain.services.config_engine import SwapSettings
from treasury.infrastructure.chain.types import SwapRouter

logger = logging.getLogger(__name__)


class SwapExecutor:
    def __init__(self, router: SwapRouter, settings: SwapSettings, asset_a: str, asset_b: str):
        self.router = router
        self.asset_a = asset_a
        self.asset_b = asset_b

        self.min_slippage_bps, self.max_slippage_limit_bps = settings.slippage_bounds
        self.min_fee_bps, self.max_fee_bps = settings.fee_bounds
        self.max_slippage_bps = settings.max_slippage_bps
        self.swap_fee_bps = settings.swap_fee_bps

        self.router_operational = True
        self.last_gas_cost = ZERO

    # ------------------------------------------------------------------
    # Admin setters
    # ------------------------------------------------------------------

    def set_max_slippage(self, bps: int) -> None:
        if not self.min_slippage_bps <= bps <= self.max_slippage_limit_bps:
            raise ConfigOutOfBounds(
                f"max_slippage_bps={bps} outside [{self.min_slippage_bps}, {self.max_slippage_limit_bps}]"
            )
        self.max_slippage_bps = bps

    def set_swap_fee(self, bps: int) -> None:
        if not self.min_fee_bps <= bps <= self.max_fee_bps:
            raise ConfigOutOfBounds(f"swap_fee_bps={bps} outside [{self.min_fee_bps}, {self.max_fee_bps}]")
        self.swap_fee_bps = bps

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def path(self, direction: SwapDirection) -> List[str]:
        if direction == SwapDirection.A_TO_B:
            return [self.asset_a, self.asset_b]
        return [self.asset_b, self.asset_a]

    async def execute(
        self,
        direction: SwapDirection,
        amount_in: Decimal,
        min_amount_out: Decimal,
        fee_bps: Optional[int] = None,
    ) -> SwapResult:
        fee = self.swap_fee_bps if fee_bps is None else fee_bps
        if not self.min_fee_bps <= fee <= self.max_fee_bps:
            raise FeeMismatch(f"fee {fee} bps outside [{self.min_fee_bps}, {self.max_fee_bps}]")
        if amount_in <= 0:
            raise RouterError("amount_in must be positive")

        path = self.path(direction)

        try:
            amounts = await self.router.get_amounts_out(amount_in, path)
            quoted = quantize_amount(amounts[-1])
        except Exception as exc:
            self.router_operational = False
            raise RouterError(f"quote failed: {exc}")

        if quoted < min_amount_out:
            self.router_operational = True
            raise SlippageExceeded(f"quote {quoted} below minimum {min_amount_out}")

        try:
            receipt = await self.router.swap(amount_in, min_amount_out, path, fee)
        except Exception as exc:
            self.router_operational = False
            raise RouterError(f"swap reverted: {exc}")

        self.router_operational = True
        self.last_gas_cost = quantize_amount(receipt.gas_cost)
        amount_out = quantize_amount(receipt.amount_out)

        if amount_out < min_amount_out:
            raise SlippageExceeded(
                f"output {amount_out} below minimum {min_amount_out}",
                amount_out=amount_out,
                gas_cost=self.last_gas_cost,
            )

        slippage = 0
        if quoted > 0 and amount_out < quoted:
            slippage = int((quoted - amount_out) * BPS / quoted)

        logger.info(
            "🔄 Swapped %s %s -> %s %s (gas %s, slippage %s bps)",
            amount_in, path[0], amount_out, path[1], self.last_gas_cost, slippage,
        )
        return SwapResult(amount_out=amount_out, gas_cost=self.last_gas_cost, slippage_bps=slippage)
