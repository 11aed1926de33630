"""
Pytest configuration and fixtures
Shared test setup for all test modules

Each test gets a fresh SQLite database file (aiosqlite) so sessions opened
by the app and by the test see the same committed data.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from typing import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool  # noqa: E402

from crm_saas.db.session import get_db, get_session_factory  # noqa: E402
from crm_saas.models import Base  # noqa: E402
from crm_saas.services.provisioning_service import ProvisionedTenant  # noqa: E402
from helpers import BASE_DOMAIN, provision  # noqa: E402
from main import app  # noqa: E402


@pytest.fixture
async def engine(tmp_path):
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app; requests without a tenant host go to api.*"""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport, base_url=f"http://api.{BASE_DOMAIN}"
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
async def acme(db_session: AsyncSession) -> ProvisionedTenant:
    """Acme tenant with its admin john@acme.example.com, committed."""
    provisioned = await provision(db_session)
    await db_session.commit()
    return provisioned
