"""
TREASURY CONTROLLER
Facade over the decision engine: keeper entry, admin ops, vault hooks

RESPONSIBILITIES:
- Wire oracle, limiter, breaker, executor and engine from configuration
- Run one cycle per keeper trigger and alert on trips
- Apply operator actions (pause, shutdown, oracle override, bounded setters)
- Track vault deposits and withdrawals against the deposit cap

RULES:
❌ report()/tend() never raise
❌ Shutdown is terminal
✅ Bounded setters reject instead of clamping
"""

import logging
from decimal import Decimal
from typing import Awaitable, Callable, Dict, Optional

from treasury.domain.errors import ConfigOutOfBounds, EmergencyWithdrawNotAllowed
from treasury.domain.models import ZERO, CycleResult, CycleStatus, StrategyMode, quantize_amount
from treasury.domain.services.circuit_breaker import CircuitBreaker
from treasury.domain.services.config_engine import StrategyConfig
from treasury.domain.services.price_oracle_service import PriceOracleService
from treasury.domain.services.rate_limiter import RateLimiter
from treasury.domain.services.rebalance_engine import RebalanceDecisionEngine, TreasuryState
from treasury.domain.services.status_reporter import StatusReporter
from treasury.domain.services.swap_executor import SwapExecutor
from treasury.infrastructure.chain.types import PriceFeed, SwapRouter, TwapPool
from treasury.utils.clock import Clock

logger = logging.getLogger(__name__)

# (tier, title, body) -> delivered
AlertSender = Callable[[str, str, str], Awaitable[bool]]


class TreasuryController:
    def __init__(
        self,
        config: StrategyConfig,
        clock: Clock,
        engine: RebalanceDecisionEngine,
        alert: Optional[AlertSender] = None,
    ):
        self.config = config
        self.clock = clock
        self.engine = engine
        self.reporter = StatusReporter(engine, clock)
        self.alert = alert
        self.deposit_cap = config.vault.deposit_cap

    @classmethod
    def build(
        cls,
        config: StrategyConfig,
        clock: Clock,
        feeds: Dict[str, PriceFeed],
        pools: Dict[str, TwapPool],
        router: SwapRouter,
        alert: Optional[AlertSender] = None,
        balances: Optional[Dict[str, Decimal]] = None,
    ) -> "TreasuryController":
        rate_limiter = RateLimiter(
            daily_limit=config.rate_limit.daily_limit,
            window_seconds=config.rate_limit.window_seconds,
            start=clock.now(),
        )
        balances = balances or {}
        state = TreasuryState(
            balance_a=quantize_amount(Decimal(str(balances.get(config.asset_a.symbol, "0")))),
            balance_b=quantize_amount(Decimal(str(balances.get(config.asset_b.symbol, "0")))),
        )
        engine = RebalanceDecisionEngine(
            config=config,
            clock=clock,
            oracle=PriceOracleService(config.oracles, feeds, pools, clock),
            rate_limiter=rate_limiter,
            breaker=CircuitBreaker(config.circuit_breaker, rate_limiter),
            swap_executor=SwapExecutor(router, config.swap, config.asset_a.symbol, config.asset_b.symbol),
            state=state,
        )
        return cls(config, clock, engine, alert=alert)

    @property
    def state(self) -> TreasuryState:
        return self.engine.state

    # ------------------------------------------------------------------
    # Keeper entry
    # ------------------------------------------------------------------

    async def report(self) -> CycleResult:
        return await self._trigger("report")

    async def tend(self) -> CycleResult:
        return await self._trigger("tend")

    async def _trigger(self, name: str) -> CycleResult:
        was_open = self.engine.breaker.is_open
        was_oracle_failure = self.state.oracle_failure_auto

        try:
            result = await self.engine.run_cycle()
        except Exception:
            logger.exception("❌ Unexpected error during %s cycle", name)
            return CycleResult(
                status=CycleStatus.FAILED,
                mode=self.engine.mode(self.clock.now()),
                reason="unexpected_error",
            )

        if self.engine.breaker.is_open and not was_open:
            await self._send_alert(
                "BLOCKED",
                "Circuit breaker tripped",
                f"{self.engine.breaker.fail_count} consecutive swap failures ({result.reason}). "
                f"Daily limit reduced to {self.engine.rate_limiter.daily_limit}.",
            )
        if self.state.oracle_failure_auto and not was_oracle_failure:
            await self._send_alert(
                "BLOCKED",
                "Oracle failure mode",
                f"Price validation failed ({result.reason}). Rebalancing halted until oracles recover.",
            )
        return result

    async def _send_alert(self, tier: str, title: str, body: str) -> None:
        if self.alert is None:
            return
        try:
            await self.alert(tier, title, body)
        except Exception as exc:
            logger.error(f"Alert delivery failed: {exc}")

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    def pause(self) -> None:
        self.state.paused = True
        logger.info("⏸️ Rebalancing paused")

    def unpause(self) -> None:
        if self.state.shutdown:
            logger.info("Unpause ignored: strategy is shut down")
            return
        self.state.paused = False
        logger.info("▶️ Rebalancing resumed")

    def enable_oracle_failure_mode(self) -> None:
        self.state.oracle_failure_override = True
        logger.warning("⚠️ Oracle failure mode enabled by operator")

    def disable_oracle_failure_mode(self) -> None:
        self.state.oracle_failure_override = False
        self.state.oracle_failure_auto = False
        logger.info("✅ Oracle failure mode cleared by operator")

    def set_max_slippage(self, bps: int) -> None:
        self.engine.swap_executor.set_max_slippage(bps)
        logger.info(f"Max slippage set to {bps} bps")

    def set_swap_fee(self, bps: int) -> None:
        self.engine.swap_executor.set_swap_fee(bps)
        logger.info(f"Swap fee set to {bps} bps")

    def set_deposit_cap(self, cap: Decimal) -> None:
        low, high = self.config.vault.deposit_cap_bounds
        if not low <= cap <= high:
            raise ConfigOutOfBounds(f"deposit_cap={cap} outside [{low}, {high}]")
        self.deposit_cap = cap
        logger.info(f"Deposit cap set to {cap}")

    def shutdown(self) -> None:
        if self.state.shutdown:
            return
        self.state.shutdown = True
        self.state.paused = True
        logger.warning("🛑 Strategy shut down")

    def emergency_withdraw(self, amount: Decimal) -> Dict[str, Decimal]:
        """
        Withdraw up to amount after shutdown, larger balance first.

        Returns the amount taken per asset symbol.
        """
        if not self.state.shutdown:
            raise EmergencyWithdrawNotAllowed("Emergency withdraw requires shutdown")
        if amount <= 0:
            raise ValueError("Withdraw amount must be positive")

        symbol_a = self.config.asset_a.symbol
        symbol_b = self.config.asset_b.symbol
        remaining = quantize_amount(min(amount, self.state.balance_a + self.state.balance_b))

        if self.state.balance_a >= self.state.balance_b:
            order = (symbol_a, symbol_b)
        else:
            order = (symbol_b, symbol_a)

        withdrawn = {symbol_a: ZERO, symbol_b: ZERO}
        for symbol in order:
            take = min(remaining, self._balance(symbol))
            if take > 0:
                self._adjust(symbol, -take)
                withdrawn[symbol] = take
                remaining -= take

        logger.warning(f"🚨 Emergency withdraw: {withdrawn}")
        return withdrawn

    # ------------------------------------------------------------------
    # Vault hooks
    # ------------------------------------------------------------------

    def _balance(self, symbol: str) -> Decimal:
        if symbol == self.config.asset_a.symbol:
            return self.state.balance_a
        if symbol == self.config.asset_b.symbol:
            return self.state.balance_b
        raise ValueError(f"Unknown asset: {symbol}")

    def _adjust(self, symbol: str, delta: Decimal) -> None:
        if symbol == self.config.asset_a.symbol:
            self.state.balance_a += delta
        else:
            self.state.balance_b += delta

    def credit(self, asset: str, amount: Decimal) -> Decimal:
        amount = quantize_amount(amount)
        if amount <= 0:
            raise ValueError("Credit amount must be positive")
        self._balance(asset)
        self._adjust(asset, amount)
        return self._balance(asset)

    def debit(self, asset: str, amount: Decimal) -> Decimal:
        amount = quantize_amount(amount)
        if amount <= 0:
            raise ValueError("Debit amount must be positive")
        if amount > self._balance(asset):
            raise ValueError(f"Debit {amount} exceeds {asset} balance {self._balance(asset)}")
        self._adjust(asset, -amount)
        return self._balance(asset)

    def available_deposit_limit(self) -> Decimal:
        if self.state.shutdown or self.state.paused:
            return ZERO
        total = self.state.balance_a + self.state.balance_b
        return max(ZERO, self.deposit_cap - total)

    @property
    def mode(self) -> StrategyMode:
        return self.reporter.get_mode()
