import os

# Must be set before crabclaim.core.config is imported
os.environ.setdefault("TELEMETRY_ENABLED", "false")
os.environ.setdefault("INTERNAL_ADMIN_KEY", "test-internal")
os.environ.setdefault("API_KEY_PEPPER", "test-pepper")

import pytest  # noqa: E402
import httpx  # noqa: E402

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

# Import Base + all models so metadata is complete
from crabclaim.models import Base  # noqa: E402

from crabclaim.main import app  # noqa: E402
from crabclaim.core.db import get_db  # noqa: E402
from crabclaim.services.executor_deps import get_executor  # noqa: E402

from fixtures_seed import FakeExecutor  # noqa: E402


def _test_db_url(tmp_path) -> str:
    # Postgres when provided, otherwise a throwaway sqlite file per test
    return os.getenv("DATABASE_URL_TEST") or f"sqlite+aiosqlite:///{tmp_path / 'crabclaim-test.db'}"


@pytest.fixture
async def async_engine(tmp_path):
    engine = create_async_engine(_test_db_url(tmp_path), poolclass=NullPool)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(async_engine):
    return async_sessionmaker(bind=async_engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
async def client(session_factory, executor):
    """
    HTTP client with a fresh DB session per request and the fake executor.
    """
    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_executor] = lambda: executor

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
