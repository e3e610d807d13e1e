import os
from typing import AsyncGenerator

# Settings are read at import time by the engine and the rate limiter.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("ENVIRONMENT", "local")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("TIMEZONE", "UTC")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from libs.common.config import get_settings

# Clear cached settings to reload with new env vars
get_settings.cache_clear()

from libs.db.base import Base
from libs.db.config import build_engine, build_sessionmaker
from libs.db.session import get_async_db
from services.store_service import models as _store_models  # noqa: F401
from services.store_service.app.main import app


@pytest_asyncio.fixture
async def test_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """
    A fresh SQLite database file per test, built the same way as production.
    """
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    """Independent sessions on the test database (for concurrency tests)."""
    return build_sessionmaker(test_engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_session) -> AsyncGenerator[AsyncClient, None]:
    """
    Yield an AsyncClient with the app and overridden DB dependency.
    """
    app.dependency_overrides[get_async_db] = lambda: db_session

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
