"""
REBALANCE DECISION ENGINE
One gated, drift-triggered rebalance per keeper trigger

RESPONSIBILITIES:
- Evaluate gates (shutdown, pause, breaker, oracle health, interval)
- Size the swap toward the target split within position and budget limits
- Execute through the swap executor and book the outcome

RULES:
❌ Never re-entered while a cycle is in flight
❌ Never raises for cycle-internal errors (CycleResult carries the reason)
✅ Budget reservation and last_rebalance_time are applied before the router call
✅ Failed swaps consume budget and feed the circuit breaker
"""

import logging
from collections import deque
from dataclasses import dataclass
from decimal import Decimal
from typing import Deque, Dict, Optional, Tuple

from treasury.domain.errors import (
    CircuitBreakerOpen,
    CycleGate,
    DailyLimitExceeded,
    MinIntervalNotElapsed,
    OracleError,
    OracleFailureModeActive,
    SlippageExceeded,
    StrategyPaused,
    StrategyShutdown,
    SwapError,
)
from treasury.domain.models import (
    BPS,
    ZERO,
    BreakerPhase,
    CycleResult,
    CycleStatus,
    OracleReading,
    RebalanceAttempt,
    RebalanceCounters,
    RebalanceOutcome,
    StrategyMode,
    SwapDirection,
    quantize_amount,
)
from treasury.domain.services.allocation_calculator import AllocationCalculator
from treasury.domain.services.circuit_breaker import CircuitBreaker
from treasury.domain.services.config_engine import StrategyConfig
from treasury.domain.services.price_oracle_service import PriceOracleService
from treasury.domain.services.rate_limiter import RateLimiter
from treasury.domain.services.swap_executor import SwapExecutor
from treasury.utils.clock import Clock

logger = logging.getLogger(__name__)

CYCLE_IN_PROGRESS = "cycle_in_progress"
NO_HOLDINGS = "no_holdings"
WITHIN_THRESHOLD = "within_threshold"
POSITION_BELOW_MINIMUM = "position_below_minimum"


@dataclass
class TreasuryState:
    """Balances ledger and operator flags shared by engine, reporter and controller"""
    balance_a: Decimal = ZERO
    balance_b: Decimal = ZERO
    paused: bool = False
    shutdown: bool = False
    oracle_failure_override: bool = False
    oracle_failure_auto: bool = False

    @property
    def in_oracle_failure_mode(self) -> bool:
        return self.oracle_failure_override or self.oracle_failure_auto


class RebalanceDecisionEngine:
    def __init__(
        self,
        config: StrategyConfig,
        clock: Clock,
        oracle: PriceOracleService,
        rate_limiter: RateLimiter,
        breaker: CircuitBreaker,
        swap_executor: SwapExecutor,
        state: Optional[TreasuryState] = None,
        calculator: Optional[AllocationCalculator] = None,
    ):
        self.config = config
        self.clock = clock
        self.oracle = oracle
        self.rate_limiter = rate_limiter
        self.breaker = breaker
        self.swap_executor = swap_executor
        self.state = state or TreasuryState()
        self.calculator = calculator or AllocationCalculator()

        self.counters = RebalanceCounters()
        self.attempts: Deque[RebalanceAttempt] = deque(maxlen=config.vault.attempt_log_size)
        self.last_rebalance_time: Optional[int] = None
        self._in_flight = False

    @property
    def last_attempt(self) -> Optional[RebalanceAttempt]:
        return self.attempts[-1] if self.attempts else None

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def mode(self, now: int) -> StrategyMode:
        """Controller mode by priority: shutdown, pause, breaker, oracle, recovery."""
        if self.state.shutdown:
            return StrategyMode.SHUTDOWN
        if self.state.paused:
            return StrategyMode.PAUSED
        phase = self.breaker.view(now).phase
        if phase == BreakerPhase.OPEN:
            return StrategyMode.CIRCUIT_BREAKER_TRIPPED
        if self.state.in_oracle_failure_mode:
            return StrategyMode.ORACLE_FAILURE_MODE
        if phase == BreakerPhase.RECOVERING:
            return StrategyMode.GRADUAL_RECOVERY
        return StrategyMode.NORMAL

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    async def run_cycle(self) -> CycleResult:
        now = self.clock.now()
        if self._in_flight:
            return self._result(CycleStatus.SKIPPED, now, CYCLE_IN_PROGRESS)

        self._in_flight = True
        try:
            return await self._run(now)
        finally:
            self._in_flight = False

    def _check_gates(self) -> None:
        if self.state.shutdown:
            raise StrategyShutdown()
        if self.state.paused:
            raise StrategyPaused()
        if self.breaker.is_open:
            raise CircuitBreakerOpen()
        if self.state.oracle_failure_override:
            raise OracleFailureModeActive()

    async def _run(self, now: int) -> CycleResult:
        self.breaker.refresh(now)

        try:
            self._check_gates()
        except CycleGate as gate:
            return self._result(CycleStatus.SKIPPED, now, gate.code)

        try:
            readings = await self.oracle.get_validated_prices()
        except OracleError as exc:
            if not self.state.oracle_failure_auto:
                logger.warning("⚠️ Entering oracle failure mode: %s", exc.message)
            self.state.oracle_failure_auto = True
            return self._result(CycleStatus.SKIPPED, now, exc.code)
        if self.state.oracle_failure_auto:
            logger.info("✅ Oracles validated again; leaving oracle failure mode")
        self.state.oracle_failure_auto = False

        interval = self.config.rebalance.min_interval_seconds
        if self.last_rebalance_time is not None and now - self.last_rebalance_time < interval:
            return self._result(CycleStatus.SKIPPED, now, MinIntervalNotElapsed.code)

        snapshot = self.calculator.snapshot(self.state.balance_a, self.state.balance_b)
        if snapshot.is_empty:
            return self._result(CycleStatus.SKIPPED, now, NO_HOLDINGS)

        target = self.config.rebalance.target_asset_a_bps
        if self.calculator.drift_bps(snapshot, target) < self.config.rebalance.threshold_bps:
            return self._result(CycleStatus.SKIPPED, now, WITHIN_THRESHOLD)

        direction, amount_in = self._size(snapshot.asset_a_balance, snapshot.asset_b_balance, snapshot.total_holdings, now)
        if amount_in is None:
            return self._result(CycleStatus.SKIPPED, now, POSITION_BELOW_MINIMUM)

        price_in, price_out = self._prices(direction, readings)
        slippage_bps = self.swap_executor.max_slippage_bps
        fee_bps = self.swap_executor.swap_fee_bps
        min_amount_out = quantize_amount(amount_in * price_in / price_out * (BPS - slippage_bps) / BPS)

        try:
            self.rate_limiter.try_reserve(amount_in, now)
        except DailyLimitExceeded as exc:
            attempt = self._record(
                now, direction, amount_in, min_amount_out, slippage_bps, fee_bps,
                RebalanceOutcome.LIMIT_EXCEEDED, reason=exc.code,
            )
            logger.info("⏸️ Rebalance skipped: %s", exc.message)
            return self._result(CycleStatus.SKIPPED, now, exc.code, attempt)

        # Effects before the router call
        self.last_rebalance_time = now
        self._move(direction, -amount_in, ZERO)

        try:
            result = await self.swap_executor.execute(direction, amount_in, min_amount_out, fee_bps)
        except SwapError as exc:
            if exc.amount_out is None:
                self._move(direction, amount_in, ZERO)
            else:
                self._move(direction, ZERO, exc.amount_out)
            self.breaker.record_failure(now)
            self.counters.rebalances_failed += 1
            self.counters.swaps_failed += 1
            outcome = (
                RebalanceOutcome.SLIPPAGE_EXCEEDED
                if isinstance(exc, SlippageExceeded)
                else RebalanceOutcome.REVERTED
            )
            attempt = self._record(
                now, direction, amount_in, min_amount_out, slippage_bps, fee_bps,
                outcome, gas_cost=exc.gas_cost, amount_out=exc.amount_out or ZERO, reason=exc.code,
            )
            logger.warning("❌ Rebalance failed (%s): %s", exc.code, exc.message)
            return self._result(CycleStatus.FAILED, now, exc.code, attempt)

        self._move(direction, ZERO, result.amount_out)
        self.breaker.record_success(now)
        self.counters.rebalances_executed += 1
        self.counters.swaps_executed += 1
        attempt = self._record(
            now, direction, amount_in, min_amount_out, slippage_bps, fee_bps,
            RebalanceOutcome.SUCCESS, gas_cost=result.gas_cost, amount_out=result.amount_out,
        )
        logger.info("✅ Rebalance executed: %s %s -> %s", direction.value, amount_in, result.amount_out)
        return self._result(CycleStatus.EXECUTED, now, None, attempt)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _size(
        self,
        balance_a: Decimal,
        balance_b: Decimal,
        total: Decimal,
        now: int,
    ) -> Tuple[SwapDirection, Optional[Decimal]]:
        """Direction and amount to sell; amount is None when no valid size exists."""
        settings = self.config.rebalance
        target_a = total * settings.target_asset_a_bps / BPS

        if balance_a > target_a:
            direction, balance, excess = SwapDirection.A_TO_B, balance_a, balance_a - target_a
        else:
            direction, balance, excess = SwapDirection.B_TO_A, balance_b, balance_b - (total - target_a)

        amount = min(max(excess, settings.min_position_size), settings.max_position_size, balance)
        remaining = self.rate_limiter.remaining(now)
        if settings.min_position_size <= remaining < amount:
            amount = remaining

        amount = quantize_amount(amount)
        if amount < settings.min_position_size:
            return direction, None
        return direction, amount

    def _prices(self, direction: SwapDirection, readings: Dict[str, OracleReading]) -> Tuple[Decimal, Decimal]:
        price_a = readings[self.config.asset_a.price_asset].price
        price_b = readings[self.config.asset_b.price_asset].price
        if direction == SwapDirection.A_TO_B:
            return price_a, price_b
        return price_b, price_a

    def _move(self, direction: SwapDirection, sold_delta: Decimal, bought_delta: Decimal) -> None:
        if direction == SwapDirection.A_TO_B:
            self.state.balance_a += sold_delta
            self.state.balance_b += bought_delta
        else:
            self.state.balance_b += sold_delta
            self.state.balance_a += bought_delta

    def _record(
        self,
        now: int,
        direction: SwapDirection,
        amount_in: Decimal,
        min_amount_out: Decimal,
        slippage_bps: int,
        fee_bps: int,
        outcome: RebalanceOutcome,
        gas_cost: Decimal = ZERO,
        amount_out: Decimal = ZERO,
        reason: Optional[str] = None,
    ) -> RebalanceAttempt:
        attempt = RebalanceAttempt(
            timestamp=now,
            direction=direction,
            amount_in=amount_in,
            min_amount_out=min_amount_out,
            slippage_bps=slippage_bps,
            fee_bps=fee_bps,
            outcome=outcome,
            gas_cost=gas_cost,
            amount_out=amount_out,
            reason=reason,
        )
        self.attempts.append(attempt)
        return attempt

    def _result(
        self,
        status: CycleStatus,
        now: int,
        reason: Optional[str],
        attempt: Optional[RebalanceAttempt] = None,
    ) -> CycleResult:
        if status == CycleStatus.SKIPPED and attempt is None:
            logger.info("⏭️ Cycle skipped: %s", reason)
        return CycleResult(status=status, mode=self.mode(now), reason=reason, attempt=attempt)
