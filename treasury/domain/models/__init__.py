"""
Domain Models Package
Export all domain entities
"""

from .entities import (
    # Constants / helpers
    BPS,
    ZERO,
    quantize_amount,

    # Enums
    BreakerPhase,
    CycleStatus,
    PriceSource,
    RebalanceOutcome,
    StrategyMode,
    SwapDirection,

    # Entities
    AllocationSnapshot,
    CycleResult,
    OracleReading,
    RebalanceAttempt,
    RebalanceCounters,
    SwapResult,
)
from .status import (
    AllocationDetails,
    CircuitBreakerStatus,
    OracleStatus,
    RateLimitStatus,
    StrategyStatus,
    SystemDiagnostics,
)

__all__ = [
    "BPS",
    "ZERO",
    "quantize_amount",

    # Enums
    "BreakerPhase",
    "CycleStatus",
    "PriceSource",
    "RebalanceOutcome",
    "StrategyMode",
    "SwapDirection",

    # Entities
    "AllocationSnapshot",
    "CycleResult",
    "OracleReading",
    "RebalanceAttempt",
    "RebalanceCounters",
    "SwapResult",

    # Read surface
    "AllocationDetails",
    "CircuitBreakerStatus",
    "OracleStatus",
    "RateLimitStatus",
    "StrategyStatus",
    "SystemDiagnostics",
]
