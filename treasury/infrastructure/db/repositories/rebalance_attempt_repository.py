"""
Rebalance Attempt Repository
Audit log for keeper cycles
"""

from typing import Dict, List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from treasury.domain.models import CycleResult
from treasury.infrastructure.db.models import RebalanceAttemptModel


class RebalanceAttemptRepository:
    """Repository for rebalance attempt audit logs"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, result: CycleResult, trigger: str = "report") -> int:
        attempt = result.attempt
        model = RebalanceAttemptModel(
            trigger=trigger,
            cycle_status=result.status.value,
            mode=result.mode.value,
            reason=result.reason,
        )
        if attempt is not None:
            model.direction = attempt.direction.value
            model.amount_in = attempt.amount_in
            model.min_amount_out = attempt.min_amount_out
            model.amount_out = attempt.amount_out
            model.slippage_bps = attempt.slippage_bps
            model.fee_bps = attempt.fee_bps
            model.outcome = attempt.outcome.value
            model.gas_cost = attempt.gas_cost
            model.attempted_at = attempt.timestamp
        self.session.add(model)
        await self.session.flush()
        return model.id

    async def list_recent(self, limit: int = 20) -> List[RebalanceAttemptModel]:
        result = await self.session.execute(
            select(RebalanceAttemptModel).order_by(RebalanceAttemptModel.id.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def count_by_outcome(self) -> Dict[str, int]:
        result = await self.session.execute(
            select(RebalanceAttemptModel.outcome, func.count(RebalanceAttemptModel.id))
            .where(RebalanceAttemptModel.outcome.is_not(None))
            .group_by(RebalanceAttemptModel.outcome)
        )
        return {outcome: count for outcome, count in result.all()}
