import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator, Awaitable, Callable

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
)
from sqlalchemy.pool import NullPool

from payment_service.database import Base, get_db
from payment_service.domain import WalletSnapshot
from payment_service.ledger import LedgerEngine
from payment_service.main import app, get_ledger
import payment_service.models  # noqa: F401
from payment_service.repositories.memory import InMemoryLedgerStore

# По умолчанию файловая SQLite; для проверки блокировок строк нужен
# postgresql+asyncpg. NullPool: у каждого scope свое подключение.
TEST_DATABASE_URL = os.getenv(
    "TEST_DATABASE_URL", "sqlite+aiosqlite:///./test_payment.db"
)


@asynccontextmanager
async def fresh_engine() -> AsyncIterator[AsyncEngine]:
    """Движок со свежей схемой; схема удаляется на выходе."""
    engine = create_async_engine(
        TEST_DATABASE_URL, echo=False, poolclass=NullPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()


def make_session_factory(
    engine: AsyncEngine,
) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine, expire_on_commit=False, class_=AsyncSession,
        autoflush=False
    )


@pytest.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Движок и схема БД создаются и удаляются для каждого теста."""
    async with fresh_engine() as engine:
        yield engine


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(test_engine)


@pytest.fixture
def sql_ledger(session_factory) -> LedgerEngine:
    return LedgerEngine.with_session_factory(session_factory)


@pytest.fixture(params=["sql", "memory"])
async def ledger(request) -> AsyncGenerator[LedgerEngine, None]:
    """Движок на каждом из бэкендов: поведение должно совпадать."""
    if request.param == "memory":
        store = InMemoryLedgerStore()
        yield LedgerEngine(store, store, store)
        return

    async with fresh_engine() as engine:
        yield LedgerEngine.with_session_factory(make_session_factory(engine))


@pytest.fixture(params=["memory", "sql"])
async def concurrent_ledger(request) -> AsyncGenerator[LedgerEngine, None]:
    """
    Движок для конкурентных сценариев.

    SQL-вариант запускается только на Postgres: SQLite игнорирует
    SELECT ... FOR UPDATE и не допускает параллельных писателей.
    """
    if request.param == "memory":
        store = InMemoryLedgerStore()
        yield LedgerEngine(store, store, store)
        return

    if not TEST_DATABASE_URL.startswith("postgresql"):
        pytest.skip("row locks need a postgresql+asyncpg TEST_DATABASE_URL")
    async with fresh_engine() as engine:
        yield LedgerEngine.with_session_factory(make_session_factory(engine))


@pytest.fixture
def make_wallet(
    ledger,
) -> Callable[[str, int], Awaitable[WalletSnapshot]]:
    async def _make_wallet(user_id: str, balance: int = 0) -> WalletSnapshot:
        return await ledger.create_wallet(user_id, balance)
    return _make_wallet


@pytest.fixture
async def client(
    sql_ledger: LedgerEngine,
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient, None]:
    """Асинхронный клиент к приложению поверх тестовой БД."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_ledger] = lambda: sql_ledger

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        timeout=30.0
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
