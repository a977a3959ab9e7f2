"""
Allocation Calculator
Pure split of holdings between the two rebalanced assets
"""

from decimal import Decimal

from treasury.domain.models import BPS, ZERO, AllocationSnapshot
from treasury.domain.models.entities import quantize_amount


class AllocationCalculator:

    @staticmethod
    def snapshot(balance_a: Decimal, balance_b: Decimal) -> AllocationSnapshot:
        """
        Percentages are floored for asset A; asset B takes the remainder so
        the pair always sums to exactly 10000 bps (or 0 with no holdings).
        """
        if balance_a < 0 or balance_b < 0:
            raise ValueError("Balances cannot be negative")

        a = quantize_amount(balance_a)
        b = quantize_amount(balance_b)
        total = a + b

        if total == ZERO:
            return AllocationSnapshot(
                asset_a_balance=a,
                asset_b_balance=b,
                total_holdings=ZERO,
                asset_a_percent_bps=0,
                asset_b_percent_bps=0,
            )

        a_bps = int(a * BPS // total)
        return AllocationSnapshot(
            asset_a_balance=a,
            asset_b_balance=b,
            total_holdings=total,
            asset_a_percent_bps=a_bps,
            asset_b_percent_bps=BPS - a_bps,
        )

    @staticmethod
    def drift_bps(snapshot: AllocationSnapshot, target_a_bps: int) -> int:
        return abs(snapshot.asset_a_percent_bps - target_a_bps)
