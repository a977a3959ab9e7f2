"""
Treasury error taxonomy.

Every error carries a stable ``code`` used as the skip/failure reason in
cycle results, logs and the attempt audit log.
"""

from decimal import Decimal
from typing import Optional


class TreasuryError(Exception):
    code = "treasury_error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.code)
        self.message = message or self.code


# ----------------------------------------------------------------------
# Oracle
# ----------------------------------------------------------------------

class OracleError(TreasuryError):
    code = "oracle_error"


class OracleStale(OracleError):
    code = "oracle_stale"


class OracleOutOfBounds(OracleError):
    code = "oracle_out_of_bounds"


class OracleDeviationExceeded(OracleError):
    code = "oracle_deviation_exceeded"


# ----------------------------------------------------------------------
# Swap execution (counted as rebalance failures)
# ----------------------------------------------------------------------

class SwapError(TreasuryError):
    code = "swap_error"

    def __init__(
        self,
        message: Optional[str] = None,
        amount_out: Optional[Decimal] = None,
        gas_cost: Decimal = Decimal("0"),
    ):
        super().__init__(message)
        # Set only when the router settled the swap
        self.amount_out = amount_out
        self.gas_cost = gas_cost


class SlippageExceeded(SwapError):
    code = "slippage_exceeded"


class RouterError(SwapError):
    code = "router_error"


class FeeMismatch(SwapError):
    code = "fee_mismatch"


# ----------------------------------------------------------------------
# Cycle gates (skips, never counted as failures)
# ----------------------------------------------------------------------

class CycleGate(TreasuryError):
    code = "cycle_gate"


class DailyLimitExceeded(CycleGate):
    code = "daily_limit_exceeded"


class MinIntervalNotElapsed(CycleGate):
    code = "min_interval_not_elapsed"


class CircuitBreakerOpen(CycleGate):
    code = "circuit_breaker_open"


class StrategyPaused(CycleGate):
    code = "strategy_paused"


class StrategyShutdown(CycleGate):
    code = "strategy_shutdown"


class OracleFailureModeActive(CycleGate):
    code = "oracle_failure_mode"


# ----------------------------------------------------------------------
# Admin / configuration
# ----------------------------------------------------------------------

class ConfigOutOfBounds(TreasuryError):
    code = "config_out_of_bounds"


class EmergencyWithdrawNotAllowed(TreasuryError):
    code = "emergency_withdraw_not_allowed"
