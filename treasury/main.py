"""
FastAPI Main Application
Treasury controller service: HTTP surface, keeper scheduler, audit log
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI

from treasury.config import settings
from treasury.core.logging import setup_logging
from treasury.domain.services.config_engine import ConfigEngine
from treasury.domain.services.treasury_controller import TreasuryController
from treasury.infrastructure.chain.provider_factory import build_chain_adapters
from treasury.infrastructure.db.database import async_session_factory, close_db, init_db
from treasury.scheduler.keeper import shutdown_keeper, start_keeper
from treasury.utils.clock import SystemClock
from treasury.utils.notifications import send_tiered_telegram_message

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def resolve_config_dir(value: str) -> Path:
    path = Path(value)
    return path if path.is_absolute() else PROJECT_ROOT / path


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager
    Handles startup and shutdown of all services
    """
    # ===================
    # STARTUP
    # ===================
    logger.info("=" * 60)
    logger.info("🚀 Starting Treasury Controller")
    logger.info("=" * 60)

    # 1. Load configuration
    logger.info("⚙️  Step 1/4: Loading configuration...")
    config_engine = ConfigEngine(resolve_config_dir(settings.STRATEGY_CONFIG_DIR))
    config_engine.load_all()
    strategy = config_engine.strategy
    logger.info("✅ Configuration loaded (%s, version %s)", strategy.name, config_engine.strategy_version)

    # 2. Chain adapters and controller
    logger.info("🏗️  Step 2/4: Building controller (chain provider: %s)...", settings.CHAIN_PROVIDER)
    clock = SystemClock()
    adapters = build_chain_adapters(
        strategy,
        clock,
        provider=settings.CHAIN_PROVIDER,
        gateway_url=settings.CHAIN_GATEWAY_URL,
        api_key=settings.CHAIN_GATEWAY_API_KEY,
        timeout_sec=settings.CHAIN_TIMEOUT_SECONDS,
    )
    controller = TreasuryController.build(
        strategy,
        clock,
        feeds=adapters.feeds,
        pools=adapters.pools,
        router=adapters.router,
        alert=send_tiered_telegram_message,
        balances=adapters.balances,
    )
    app.state.controller = controller
    app.state.config_engine = config_engine
    logger.info("✅ Controller ready (%s / %s)", strategy.asset_a.symbol, strategy.asset_b.symbol)

    # 3. Database
    logger.info("📊 Step 3/4: Initializing database...")
    await init_db()
    logger.info("✅ Database initialized")

    # 4. Keeper
    logger.info("🚀 Step 4/4: Starting keeper...")
    if settings.KEEPER_ENABLED:
        try:
            start_keeper(controller, settings.KEEPER_HOURS_UTC, async_session_factory)
        except Exception as e:
            logger.error(f"❌ Failed to start keeper: {e}")
    else:
        logger.info("⏰ Keeper disabled")

    logger.info("=" * 60)
    logger.info(f"   ✅ API Server: http://{settings.API_HOST}:{settings.API_PORT}")
    logger.info(f"   ✅ Keeper: {'Enabled' if settings.KEEPER_ENABLED else 'Disabled'}")
    logger.info(f"   ✅ Telegram: {'Enabled' if settings.TELEGRAM_ENABLED else 'Disabled'}")
    logger.info("=" * 60)

    yield

    # ===================
    # SHUTDOWN
    # ===================
    logger.info("🛑 Shutting down Treasury Controller...")
    shutdown_keeper()
    await close_db()
    logger.info("👋 Shutdown complete")


app = FastAPI(
    title="Wrapped BTC Treasury Controller",
    description="Oracle-guarded two-asset rebalancing with rate limiting and a circuit breaker",
    version="1.0.0",
    lifespan=lifespan,
)


from treasury.api.routes import admin, health, keeper, status, vault  # noqa: E402

app.include_router(health.router, prefix="/api/v1", tags=["Health"])
app.include_router(status.router, prefix="/api/v1/status", tags=["Status"])
app.include_router(admin.router, prefix="/api/v1/admin", tags=["Admin"])
app.include_router(keeper.router, prefix="/api/v1/keeper", tags=["Keeper"])
app.include_router(vault.router, prefix="/api/v1/vault", tags=["Vault"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("treasury.main:app", host=settings.API_HOST, port=settings.API_PORT, reload=settings.DEBUG)
