"""Pytest fixtures for the vidtube backend."""

import os

# Settings and cookie flags are read at import time; pin the test
# environment before any application module is imported.
os.environ["APP_ENV"] = "test"
os.environ.setdefault("ACCESS_TOKEN_SECRET", "test-access-secret")
os.environ.setdefault("REFRESH_TOKEN_SECRET", "test-refresh-secret")

import shutil
from collections.abc import AsyncIterator, Iterator
from pathlib import Path

from alembic import command
from alembic.config import Config
import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from api.deps import get_db
from app import create_app
from core import AuthConfig, TokenIssuer
from core.config import settings
from services import RateLimiter, set_rate_limiter

TEST_AUTH_CONFIG = AuthConfig(
    access_token_secret="fixed-access-secret-for-tests",
    access_token_expire_minutes=15,
    refresh_token_secret="fixed-refresh-secret-for-tests",
    refresh_token_expire_minutes=60 * 24,
)


def _run_alembic_migrations(database_url: str) -> None:
    """Apply Alembic migrations to the given database URL."""
    backend_dir = Path(__file__).resolve().parents[1]
    alembic_cfg = Config(str(backend_dir / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(backend_dir / "alembic"))
    alembic_cfg.attributes["configure_logger"] = False

    original_database_url = settings.database_url
    try:
        settings.database_url = database_url
        command.upgrade(alembic_cfg, "head")
    finally:
        settings.database_url = original_database_url


@pytest.fixture(scope="session")
def template_database(tmp_path_factory) -> Path:
    """Migrate a SQLite file once; each test works on a copy of it."""
    db_path = tmp_path_factory.mktemp("sqlite") / "template.db"
    _run_alembic_migrations(f"sqlite+aiosqlite:///{db_path}")
    return db_path


@pytest.fixture()
def test_database_url(template_database: Path, tmp_path: Path) -> str:
    db_path = tmp_path / "backend-test.db"
    shutil.copyfile(template_database, db_path)
    return f"sqlite+aiosqlite:///{db_path}"


@pytest_asyncio.fixture()
async def test_engine(test_database_url: str) -> AsyncIterator:
    engine = create_async_engine(
        test_database_url,
        connect_args={"check_same_thread": False},
    )
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_maker(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, expire_on_commit=False)


@pytest.fixture()
def auth_config() -> AuthConfig:
    return TEST_AUTH_CONFIG


@pytest.fixture()
def token_issuer(auth_config: AuthConfig) -> TokenIssuer:
    return TokenIssuer(auth_config)


@pytest.fixture()
def app(session_maker, auth_config: AuthConfig) -> Iterator[FastAPI]:
    """Create the FastAPI app with a test database dependency override."""
    application = create_app(auth_config=auth_config)

    async def override_get_db() -> AsyncIterator[AsyncSession]:
        async with session_maker() as session:
            yield session

    application.dependency_overrides[get_db] = override_get_db
    yield application


@pytest_asyncio.fixture()
async def async_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest_asyncio.fixture()
async def db_session(session_maker) -> AsyncIterator[AsyncSession]:
    """Provide a raw database session to tests."""
    async with session_maker() as session:
        yield session


class _InMemoryRedis:
    def __init__(self) -> None:
        self.data: dict[str, int] = {}

    async def incr(self, key: str) -> int:
        value = self.data.get(key, 0) + 1
        self.data[key] = value
        return value

    async def expire(self, key: str, ttl: int) -> None:  # pragma: no cover - noop
        return None


@pytest.fixture(autouse=True)
def _rate_limiter_stub() -> Iterator[None]:
    limiter = RateLimiter(_InMemoryRedis(), limit=1_000, window_seconds=60)
    set_rate_limiter(limiter)
    yield
    set_rate_limiter(None)
