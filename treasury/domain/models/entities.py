"""
Domain Models - Entities
Pure domain objects with no infrastructure dependencies
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_DOWN
from enum import Enum
from typing import Optional


BPS = 10_000
AMOUNT_QUANTUM = Decimal("0.00000001")
PRICE_QUANTUM = Decimal("0.00000001")
ZERO = Decimal("0")


def quantize_amount(value: Decimal) -> Decimal:
    """Round an asset amount down to 8 decimal places."""
    return Decimal(value).quantize(AMOUNT_QUANTUM, rounding=ROUND_DOWN)


class PriceSource(str, Enum):
    """Feed a validated price came from"""
    PRIMARY = "PRIMARY"
    FALLBACK = "FALLBACK"


class SwapDirection(str, Enum):
    """Which rebalanced asset is sold"""
    A_TO_B = "A_TO_B"
    B_TO_A = "B_TO_A"


class RebalanceOutcome(str, Enum):
    """Outcome of a cycle that reached execution"""
    SUCCESS = "SUCCESS"
    REVERTED = "REVERTED"
    SLIPPAGE_EXCEEDED = "SLIPPAGE_EXCEEDED"
    LIMIT_EXCEEDED = "LIMIT_EXCEEDED"


class BreakerPhase(str, Enum):
    """Circuit breaker state machine phase"""
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    RECOVERING = "RECOVERING"


class StrategyMode(str, Enum):
    """Controller-wide mode, derived from component states"""
    NORMAL = "NORMAL"
    PAUSED = "PAUSED"
    ORACLE_FAILURE_MODE = "ORACLE_FAILURE_MODE"
    CIRCUIT_BREAKER_TRIPPED = "CIRCUIT_BREAKER_TRIPPED"
    GRADUAL_RECOVERY = "GRADUAL_RECOVERY"
    SHUTDOWN = "SHUTDOWN"


class CycleStatus(str, Enum):
    EXECUTED = "executed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class OracleReading:
    """Validated price reading - Immutable, produced per query"""
    asset: str
    price: Decimal
    updated_at: int
    round_id: int
    source: PriceSource


@dataclass(frozen=True)
class AllocationSnapshot:
    """
    Holdings split between the two rebalanced assets - Immutable.

    total_holdings never includes a third (base asset) balance.
    """
    asset_a_balance: Decimal
    asset_b_balance: Decimal
    total_holdings: Decimal
    asset_a_percent_bps: int
    asset_b_percent_bps: int

    def __post_init__(self):
        if self.asset_a_percent_bps + self.asset_b_percent_bps not in (0, BPS):
            raise ValueError("Allocation percentages must sum to 0 or 10000 bps")

    @property
    def is_empty(self) -> bool:
        return self.total_holdings == ZERO


@dataclass(frozen=True)
class RebalanceAttempt:
    """One cycle that reached the execution stage - Immutable"""
    timestamp: int
    direction: SwapDirection
    amount_in: Decimal
    min_amount_out: Decimal
    slippage_bps: int
    fee_bps: int
    outcome: RebalanceOutcome
    gas_cost: Decimal = ZERO
    amount_out: Decimal = ZERO
    reason: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == RebalanceOutcome.SUCCESS


@dataclass(frozen=True)
class SwapResult:
    """Router outcome accepted by the swap executor"""
    amount_out: Decimal
    gas_cost: Decimal
    slippage_bps: int


@dataclass
class RebalanceCounters:
    """Monotonic cycle counters, only incremented by the decision engine"""
    rebalances_executed: int = 0
    rebalances_failed: int = 0
    swaps_executed: int = 0
    swaps_failed: int = 0


@dataclass(frozen=True)
class CycleResult:
    """What one keeper trigger produced"""
    status: CycleStatus
    mode: StrategyMode
    reason: Optional[str] = None
    attempt: Optional[RebalanceAttempt] = None

    @property
    def executed(self) -> bool:
        return self.status == CycleStatus.EXECUTED
