import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from treasury.infrastructure.db.database import get_db

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request, db: AsyncSession = Depends(get_db)):
    """Ready once the audit database answers and the controller is wired."""
    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
    except SQLAlchemyError as exc:
        logger.warning("⚠️ Readiness DB check failed: %s", exc)
        db_connected = False

    controller = getattr(request.app.state, "controller", None)
    return {
        "status": "ready" if db_connected and controller is not None else "not_ready",
        "db_connected": db_connected,
        "controller_loaded": controller is not None,
        "mode": controller.mode.value if controller is not None else None,
    }
