"""
DOMAIN MODELS — READ SURFACE

Immutable status structures returned by the status reporter.
Field order is part of the external contract; do not reorder.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class StrategyStatus:
    is_paused: bool
    is_circuit_breaker_triggered: bool
    is_in_oracle_failure_mode: bool
    total_holdings: Decimal
    daily_swap_used: Decimal
    daily_swap_limit: Decimal
    last_gas_cost: Decimal
    rebalances_executed: int
    rebalances_failed: int
    swaps_executed: int
    swaps_failed: int
    asset_a_alloc_bps: int
    asset_b_alloc_bps: int
    fail_count: int
    time_until_reset: int


@dataclass(frozen=True)
class AllocationDetails:
    """
    Per-asset balances.

    third_balance and asset_c_percent_bps are always zero: the base asset is
    never counted next to the two rebalanced assets.
    """
    asset_a_balance: Decimal
    asset_b_balance: Decimal
    third_balance: Decimal
    total_balance: Decimal
    asset_a_percent_bps: int
    asset_b_percent_bps: int
    asset_c_percent_bps: int


@dataclass(frozen=True)
class CircuitBreakerStatus:
    tripped: bool
    fail_count: int
    time_since_last_failure: Optional[int]
    time_until_reset: int


@dataclass(frozen=True)
class OracleStatus:
    price_a: Decimal
    price_b: Decimal
    healthy_a: bool
    healthy_b: bool
    in_failure_mode: bool


@dataclass(frozen=True)
class RateLimitStatus:
    daily_used: Decimal
    daily_limit: Decimal
    time_until_window_reset: int
    time_since_last_rebalance: Optional[int]
    min_rebalance_interval: int


@dataclass(frozen=True)
class SystemDiagnostics:
    system_healthy: bool
    oracles_operational: bool
    router_operational: bool
    config_valid: bool
    position_size_valid: bool
    status_text: str
