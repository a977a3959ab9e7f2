"""Vault-shell boundary: deposits, withdrawals and the deposit limit."""

import logging
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from treasury.api.deps import get_controller, to_payload
from treasury.domain.services.treasury_controller import TreasuryController

logger = logging.getLogger(__name__)

router = APIRouter()


class BalanceChangeRequest(BaseModel):
    asset: str = Field(..., examples=["WBTC"], description="Rebalanced asset symbol")
    amount: Decimal = Field(..., gt=0, examples=["0.1"], description="Amount in asset units")


@router.post("/credit")
async def credit(payload: BalanceChangeRequest, controller: TreasuryController = Depends(get_controller)):
    try:
        balance = controller.credit(payload.asset, payload.amount)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    logger.info("📥 Credited %s %s", payload.amount, payload.asset)
    return to_payload({"asset": payload.asset, "balance": balance})


@router.post("/debit")
async def debit(payload: BalanceChangeRequest, controller: TreasuryController = Depends(get_controller)):
    try:
        balance = controller.debit(payload.asset, payload.amount)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    logger.info("📤 Debited %s %s", payload.amount, payload.asset)
    return to_payload({"asset": payload.asset, "balance": balance})


@router.get("/deposit-limit")
async def deposit_limit(controller: TreasuryController = Depends(get_controller)):
    return to_payload({
        "deposit_cap": controller.deposit_cap,
        "available_deposit_limit": controller.available_deposit_limit(),
    })
