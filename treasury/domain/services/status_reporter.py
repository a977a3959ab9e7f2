"""
STATUS REPORTER
Read-only aggregation of controller state

RULES:
❌ Never mutates state (uses non-rolling views of limiter and breaker)
❌ Never raises, including with zero holdings or no oracle readings yet
"""

from typing import Optional

from treasury.domain.models import (
    ZERO,
    AllocationDetails,
    CircuitBreakerStatus,
    OracleStatus,
    RateLimitStatus,
    StrategyMode,
    StrategyStatus,
    SystemDiagnostics,
)
from treasury.domain.services.allocation_calculator import AllocationCalculator
from treasury.domain.services.config_engine import MIN_INTERVAL_BOUNDS
from treasury.domain.services.rebalance_engine import RebalanceDecisionEngine
from treasury.utils.clock import Clock

STATUS_TEXT = {
    StrategyMode.SHUTDOWN: "SHUTDOWN",
    StrategyMode.PAUSED: "PAUSED",
    StrategyMode.CIRCUIT_BREAKER_TRIPPED: "CIRCUIT_BREAKER",
    StrategyMode.ORACLE_FAILURE_MODE: "ORACLE_FAILURE",
    StrategyMode.GRADUAL_RECOVERY: "RECOVERING",
}


class StatusReporter:
    def __init__(self, engine: RebalanceDecisionEngine, clock: Clock):
        self.engine = engine
        self.clock = clock

    @property
    def _reference_assets(self):
        assets = self.engine.config.reference_assets
        asset_a = assets[0] if assets else None
        asset_b = assets[1] if len(assets) > 1 else None
        return asset_a, asset_b

    def _snapshot(self):
        state = self.engine.state
        return AllocationCalculator.snapshot(state.balance_a, state.balance_b)

    def get_mode(self) -> StrategyMode:
        return self.engine.mode(self.clock.now())

    def get_strategy_status(self) -> StrategyStatus:
        now = self.clock.now()
        snapshot = self._snapshot()
        limits = self.engine.rate_limiter.view(now)
        breaker = self.engine.breaker.view(now)
        counters = self.engine.counters
        state = self.engine.state

        return StrategyStatus(
            is_paused=state.paused,
            is_circuit_breaker_triggered=breaker.tripped,
            is_in_oracle_failure_mode=state.in_oracle_failure_mode,
            total_holdings=snapshot.total_holdings,
            daily_swap_used=min(limits.daily_used, breaker.daily_limit),
            daily_swap_limit=breaker.daily_limit,
            last_gas_cost=self.engine.swap_executor.last_gas_cost,
            rebalances_executed=counters.rebalances_executed,
            rebalances_failed=counters.rebalances_failed,
            swaps_executed=counters.swaps_executed,
            swaps_failed=counters.swaps_failed,
            asset_a_alloc_bps=snapshot.asset_a_percent_bps,
            asset_b_alloc_bps=snapshot.asset_b_percent_bps,
            fail_count=breaker.fail_count,
            time_until_reset=breaker.time_until_reset,
        )

    def get_allocation_details(self) -> AllocationDetails:
        snapshot = self._snapshot()
        return AllocationDetails(
            asset_a_balance=snapshot.asset_a_balance,
            asset_b_balance=snapshot.asset_b_balance,
            third_balance=ZERO,
            total_balance=snapshot.total_holdings,
            asset_a_percent_bps=snapshot.asset_a_percent_bps,
            asset_b_percent_bps=snapshot.asset_b_percent_bps,
            asset_c_percent_bps=0,
        )

    def get_circuit_breaker_status(self) -> CircuitBreakerStatus:
        view = self.engine.breaker.view(self.clock.now())
        return CircuitBreakerStatus(
            tripped=view.tripped,
            fail_count=view.fail_count,
            time_since_last_failure=view.time_since_last_failure,
            time_until_reset=view.time_until_reset,
        )

    def get_oracle_status(self) -> OracleStatus:
        now = self.clock.now()
        oracle = self.engine.oracle
        asset_a, asset_b = self._reference_assets

        def price(asset: Optional[str]):
            reading = oracle.last_reading(asset) if asset else None
            return reading.price if reading else ZERO

        def healthy(asset: Optional[str]) -> bool:
            return bool(asset) and oracle.is_healthy(asset, now)

        return OracleStatus(
            price_a=price(asset_a),
            price_b=price(asset_b),
            healthy_a=healthy(asset_a),
            healthy_b=healthy(asset_b),
            in_failure_mode=self.engine.state.in_oracle_failure_mode,
        )

    def get_rate_limit_status(self) -> RateLimitStatus:
        now = self.clock.now()
        limits = self.engine.rate_limiter.view(now)
        breaker = self.engine.breaker.view(now)
        last = self.engine.last_rebalance_time
        return RateLimitStatus(
            daily_used=min(limits.daily_used, breaker.daily_limit),
            daily_limit=breaker.daily_limit,
            time_until_window_reset=limits.time_until_reset,
            time_since_last_rebalance=None if last is None else max(0, now - last),
            min_rebalance_interval=self.engine.config.rebalance.min_interval_seconds,
        )

    def get_system_diagnostics(self) -> SystemDiagnostics:
        now = self.clock.now()
        mode = self.engine.mode(now)
        oracle = self.engine.oracle
        config = self.engine.config

        oracles_operational = all(oracle.is_healthy(asset, now) for asset in config.reference_assets)
        router_operational = self.engine.swap_executor.router_operational
        position_size_valid = (
            ZERO < config.rebalance.min_position_size < config.rebalance.max_position_size
        )
        config_valid = (
            config.swap.slippage_bounds[0] <= self.engine.swap_executor.max_slippage_bps <= config.swap.slippage_bounds[1]
            and config.swap.fee_bounds[0] <= self.engine.swap_executor.swap_fee_bps <= config.swap.fee_bounds[1]
            and config.rebalance.min_interval_seconds >= MIN_INTERVAL_BOUNDS[0]
        )

        system_healthy = (
            mode == StrategyMode.NORMAL
            and oracles_operational
            and router_operational
            and config_valid
            and position_size_valid
        )
        if mode in STATUS_TEXT:
            status_text = STATUS_TEXT[mode]
        else:
            status_text = "HEALTHY" if system_healthy else "UNHEALTHY"

        return SystemDiagnostics(
            system_healthy=system_healthy,
            oracles_operational=oracles_operational,
            router_operational=router_operational,
            config_valid=config_valid,
            position_size_valid=position_size_valid,
            status_text=status_text,
        )
