from typing import AsyncGenerator

import pytest
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from treasury.api.routes import admin, health, keeper, status, vault
from treasury.infrastructure.db import models  # noqa: F401
from treasury.infrastructure.db.database import Base, get_db
from treasury.utils.clock import ManualClock

from tests.support import DummyAlert, DummyRouter, build_controller, build_market, load_strategy


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock(start=1_700_000_000)


@pytest.fixture()
def strategy():
    return load_strategy()


@pytest.fixture()
def market(clock):
    return build_market(clock)


@pytest.fixture()
def router():
    return DummyRouter()


@pytest.fixture()
def alert():
    return DummyAlert()


@pytest.fixture()
def controller(clock, strategy, market, router, alert):
    return build_controller(clock, config=strategy, router=router, market=market, alert=alert)


@pytest.fixture()
async def db_engine(tmp_path):
    db_path = tmp_path / "test.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
async def app(db_session, controller) -> FastAPI:
    app = FastAPI()
    app.include_router(health.router, prefix="/api/v1", tags=["Health"])
    app.include_router(status.router, prefix="/api/v1/status", tags=["Status"])
    app.include_router(admin.router, prefix="/api/v1/admin", tags=["Admin"])
    app.include_router(keeper.router, prefix="/api/v1/keeper", tags=["Keeper"])
    app.include_router(vault.router, prefix="/api/v1/vault", tags=["Vault"])

    async def override_get_db():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.state.controller = controller
    return app


@pytest.fixture()
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
