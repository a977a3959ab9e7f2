"""
KEEPER SCHEDULER

Triggers a rebalance cycle at fixed UTC hours and records the outcome.
Scheduler is orchestration-only and contains no business logic.
"""

import logging
from typing import List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.ext.asyncio import async_sessionmaker

from treasury.domain.models import CycleResult, StrategyMode
from treasury.domain.services.treasury_controller import TreasuryController
from treasury.infrastructure.db.repositories.rebalance_attempt_repository import RebalanceAttemptRepository

_logger = logging.getLogger(__name__)

_SCHEDULER: Optional[AsyncIOScheduler] = None

SKIP_MODES = (StrategyMode.SHUTDOWN, StrategyMode.PAUSED, StrategyMode.CIRCUIT_BREAKER_TRIPPED)


def parse_hours(hours: str) -> List[int]:
    """'4,8,13' -> [4, 8, 13]; rejects hours outside 0-23."""
    parsed = sorted({int(h.strip()) for h in hours.split(",") if h.strip()})
    if not parsed or any(h < 0 or h > 23 for h in parsed):
        raise ValueError(f"Invalid keeper hours: {hours!r}")
    return parsed


async def run_keeper_job(
    controller: TreasuryController,
    session_factory: Optional[async_sessionmaker] = None,
) -> Optional[CycleResult]:
    mode = controller.mode
    if mode in SKIP_MODES:
        _logger.info("⏭️ Keeper skipped: strategy is %s", mode.value)
        return None

    result = await controller.report()
    _logger.info(
        "🤖 Keeper cycle %s (reason=%s, mode=%s)",
        result.status.value, result.reason, result.mode.value,
    )

    if session_factory is not None:
        try:
            async with session_factory() as session:
                await RebalanceAttemptRepository(session).create(result, trigger="keeper")
                await session.commit()
        except Exception:
            _logger.exception("❌ Failed to persist keeper cycle")
    return result


def start_keeper(
    controller: TreasuryController,
    hours_utc: str,
    session_factory: Optional[async_sessionmaker] = None,
) -> AsyncIOScheduler:
    """
    Start the keeper scheduler. Must be called from a running event loop.
    """
    global _SCHEDULER

    if _SCHEDULER is not None:
        return _SCHEDULER

    hours = parse_hours(hours_utc)
    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        run_keeper_job,
        trigger=CronTrigger(hour=",".join(str(h) for h in hours), minute=0, timezone="UTC"),
        kwargs={"controller": controller, "session_factory": session_factory},
        id="treasury_keeper_job",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    scheduler.start()
    _SCHEDULER = scheduler

    _logger.info("✅ Keeper scheduled at %s:00 UTC", ",".join(str(h) for h in hours))
    return scheduler


def shutdown_keeper() -> None:
    global _SCHEDULER

    if _SCHEDULER:
        _SCHEDULER.shutdown(wait=False)
        _SCHEDULER = None
        _logger.info("🛑 Keeper scheduler shut down")
