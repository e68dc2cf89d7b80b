import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Tests run against in-memory SQLite; settings must see this before libs import.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")

from libs.auth.dependencies import get_current_user  # noqa: E402
from libs.auth.models import AuthUser  # noqa: E402
from libs.common.config import get_settings  # noqa: E402
from libs.db.base import Base  # noqa: E402
from libs.db.session import get_async_db  # noqa: E402
from services.ledger_service import models as _ledger_models  # noqa: E402,F401
from services.ledger_service.app.main import app  # noqa: E402
from services.ledger_service.services.config_provider import (  # noqa: E402
    config_provider,
)

get_settings.cache_clear()
settings = get_settings()


@pytest_asyncio.fixture
async def test_engine():
    """A fresh in-memory database per test.

    StaticPool keeps every session on the single connection that owns the
    in-memory database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def file_session_factory(tmp_path):
    """Sessions on a file-backed database, each with its own connection.

    For tests where two transactions have to interleave for real.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    session = session_factory()
    try:
        yield session
    finally:
        await session.close()


@pytest.fixture(autouse=True)
def _fresh_ledger_config():
    """Business settings are cached process-wide; start each test clean."""
    config_provider.invalidate()
    yield
    config_provider.invalidate()


# ---------------------------------------------------------------------------
# Callers
# ---------------------------------------------------------------------------


@pytest.fixture
def member_user() -> AuthUser:
    return AuthUser(user_id="user-member", email="member@example.com", role="authenticated")


@pytest.fixture
def admin_user() -> AuthUser:
    return AuthUser(user_id="user-admin", email="admin@example.com", role="admin")


@pytest.fixture
def service_user() -> AuthUser:
    return AuthUser(user_id="svc-generation", role="service_role")


class Caller:
    """Mutable stand-in for the JWT-authenticated caller."""

    def __init__(self, user: AuthUser):
        self.user = user

    def as_(self, user: AuthUser) -> None:
        self.user = user


@pytest.fixture
def caller(member_user) -> Caller:
    return Caller(member_user)


@pytest_asyncio.fixture
async def ledger_client(db_session, caller) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient against the ledger app with DB and auth overridden.

    Role checks (require_admin / require_service_role) still run for real
    against whoever ``caller`` currently is.
    """
    app.dependency_overrides[get_async_db] = lambda: db_session
    app.dependency_overrides[get_current_user] = lambda: caller.user

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
