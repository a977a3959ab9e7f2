"""Shared API dependencies and response helpers."""

from decimal import Decimal
from typing import Any

from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder

from treasury.domain.services.treasury_controller import TreasuryController


async def get_controller(request: Request) -> TreasuryController:
    controller = getattr(request.app.state, "controller", None)
    if controller is None:
        raise HTTPException(status_code=503, detail="Treasury controller not initialized")
    return controller


def to_payload(value: Any) -> Any:
    """Dataclasses/enums to JSON, amounts as exact decimal strings."""
    return jsonable_encoder(value, custom_encoder={Decimal: str})
