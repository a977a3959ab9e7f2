"""Keeper triggers: run one rebalance cycle and record it."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from treasury.api.deps import get_controller, to_payload
from treasury.domain.models import CycleResult
from treasury.domain.services.treasury_controller import TreasuryController
from treasury.infrastructure.db.database import get_db
from treasury.infrastructure.db.repositories.rebalance_attempt_repository import RebalanceAttemptRepository

logger = logging.getLogger(__name__)

router = APIRouter()


async def _record(result: CycleResult, trigger: str, db: AsyncSession) -> dict:
    record_id = await RebalanceAttemptRepository(db).create(result, trigger=trigger)
    logger.info("📥 %s cycle %s (reason=%s)", trigger, result.status.value, result.reason)
    payload = to_payload(result)
    payload["record_id"] = record_id
    return payload


@router.post("/report")
async def report(
    controller: TreasuryController = Depends(get_controller),
    db: AsyncSession = Depends(get_db),
):
    result = await controller.report()
    return await _record(result, "report", db)


@router.post("/tend")
async def tend(
    controller: TreasuryController = Depends(get_controller),
    db: AsyncSession = Depends(get_db),
):
    result = await controller.tend()
    return await _record(result, "tend", db)
