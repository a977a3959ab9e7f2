"""
Read-only status surface.
Field order of every payload matches the controller's status contract.
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from treasury.api.deps import get_controller, to_payload
from treasury.domain.services.treasury_controller import TreasuryController
from treasury.infrastructure.db.database import get_db
from treasury.infrastructure.db.repositories.rebalance_attempt_repository import RebalanceAttemptRepository

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/strategy")
async def strategy_status(controller: TreasuryController = Depends(get_controller)):
    return to_payload(controller.reporter.get_strategy_status())


@router.get("/allocation")
async def allocation_details(controller: TreasuryController = Depends(get_controller)):
    return to_payload(controller.reporter.get_allocation_details())


@router.get("/circuit-breaker")
async def circuit_breaker_status(controller: TreasuryController = Depends(get_controller)):
    return to_payload(controller.reporter.get_circuit_breaker_status())


@router.get("/oracle")
async def oracle_status(controller: TreasuryController = Depends(get_controller)):
    return to_payload(controller.reporter.get_oracle_status())


@router.get("/rate-limit")
async def rate_limit_status(controller: TreasuryController = Depends(get_controller)):
    return to_payload(controller.reporter.get_rate_limit_status())


@router.get("/diagnostics")
async def system_diagnostics(controller: TreasuryController = Depends(get_controller)):
    return to_payload(controller.reporter.get_system_diagnostics())


@router.get("/mode")
async def strategy_mode(controller: TreasuryController = Depends(get_controller)):
    return {"mode": controller.reporter.get_mode().value}


@router.get("/attempts")
async def recent_attempts(
    limit: int = Query(20, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    repo = RebalanceAttemptRepository(db)
    rows = await repo.list_recent(limit)
    return {
        "count": len(rows),
        "outcomes": await repo.count_by_outcome(),
        "attempts": [
            to_payload({
                "id": row.id,
                "trigger": row.trigger,
                "cycle_status": row.cycle_status,
                "mode": row.mode,
                "reason": row.reason,
                "direction": row.direction,
                "amount_in": row.amount_in,
                "min_amount_out": row.min_amount_out,
                "amount_out": row.amount_out,
                "slippage_bps": row.slippage_bps,
                "fee_bps": row.fee_bps,
                "outcome": row.outcome,
                "gas_cost": row.gas_cost,
                "attempted_at": row.attempted_at,
                "created_at": row.created_at,
            })
            for row in rows
        ],
    }
