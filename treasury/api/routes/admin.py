"""
Operator actions.
Bounded setters reject out-of-range values (400); nothing is clamped.
"""

import logging
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from treasury.api.deps import get_controller, to_payload
from treasury.domain.errors import ConfigOutOfBounds, EmergencyWithdrawNotAllowed
from treasury.domain.services.treasury_controller import TreasuryController

logger = logging.getLogger(__name__)

router = APIRouter()


class BpsRequest(BaseModel):
    bps: int = Field(..., examples=[50], description="Value in basis points")


class WithdrawRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, examples=["1.5"], description="Total amount to withdraw, in BTC")


def _state(controller: TreasuryController) -> dict:
    return {"mode": controller.mode.value, "status": to_payload(controller.reporter.get_system_diagnostics())}


@router.post("/pause")
async def pause(controller: TreasuryController = Depends(get_controller)):
    controller.pause()
    return _state(controller)


@router.post("/unpause")
async def unpause(controller: TreasuryController = Depends(get_controller)):
    controller.unpause()
    return _state(controller)


@router.post("/shutdown")
async def shutdown(controller: TreasuryController = Depends(get_controller)):
    controller.shutdown()
    return _state(controller)


@router.post("/oracle-failure-mode/enable")
async def enable_oracle_failure_mode(controller: TreasuryController = Depends(get_controller)):
    controller.enable_oracle_failure_mode()
    return _state(controller)


@router.post("/oracle-failure-mode/disable")
async def disable_oracle_failure_mode(controller: TreasuryController = Depends(get_controller)):
    controller.disable_oracle_failure_mode()
    return _state(controller)


@router.post("/max-slippage")
async def set_max_slippage(payload: BpsRequest, controller: TreasuryController = Depends(get_controller)):
    try:
        controller.set_max_slippage(payload.bps)
    except ConfigOutOfBounds as e:
        logger.warning("⚠️ Max slippage rejected: %s", e.message)
        raise HTTPException(status_code=400, detail=e.message)
    return {"max_slippage_bps": controller.engine.swap_executor.max_slippage_bps}


@router.post("/swap-fee")
async def set_swap_fee(payload: BpsRequest, controller: TreasuryController = Depends(get_controller)):
    try:
        controller.set_swap_fee(payload.bps)
    except ConfigOutOfBounds as e:
        logger.warning("⚠️ Swap fee rejected: %s", e.message)
        raise HTTPException(status_code=400, detail=e.message)
    return {"swap_fee_bps": controller.engine.swap_executor.swap_fee_bps}


@router.post("/emergency-withdraw")
async def emergency_withdraw(payload: WithdrawRequest, controller: TreasuryController = Depends(get_controller)):
    try:
        withdrawn = controller.emergency_withdraw(payload.amount)
    except EmergencyWithdrawNotAllowed as e:
        logger.warning("⚠️ Emergency withdraw blocked: %s", e.message)
        raise HTTPException(status_code=409, detail=e.message)
    return to_payload({
        "withdrawn": withdrawn,
        "allocation": controller.reporter.get_allocation_details(),
    })
