"""Shared test fixtures: async SQLite DB, test client and a mocked mail collaborator."""

import os
import uuid
from collections.abc import AsyncGenerator
from decimal import Decimal
from unittest.mock import AsyncMock, patch

from cryptography.fernet import Fernet

# Settings are cached on first import, so configure them before importing the app
os.environ.setdefault("ENCRYPTION_KEY", Fernet.generate_key().decode())
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("PROVIDER_WEBHOOK_SECRET", "provider-test-secret")
os.environ.setdefault("NOTIFICATION_URL", "https://mail.test/send")
os.environ.setdefault("NOTIFICATION_SECRET", "mail-test-secret")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import NullPool, StaticPool  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

# Import all models so metadata is populated
import app.models  # noqa: E402, F401
from app.core.database import get_session  # noqa: E402
from app.main import app  # noqa: E402
from app.models.plan import Plan  # noqa: E402


@pytest.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite://", echo=False, poolclass=StaticPool)
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def test_session_factory(engine):
    """Session factory bound to the test SQLite engine."""
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(test_session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with test_session_factory() as sess:
        yield sess
        await sess.rollback()


@pytest.fixture
async def file_session_factory(tmp_path):
    """Factory over a file database: one real connection per session, for concurrency tests."""
    eng = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'bizdesk.db'}",
        echo=False,
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield sessionmaker(eng, class_=AsyncSession, expire_on_commit=False)
    await eng.dispose()


@pytest.fixture
async def client(session) -> AsyncGenerator[AsyncClient, None]:
    """HTTPX async test client with DB session override."""

    async def _override_session():
        yield session

    app.dependency_overrides[get_session] = _override_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def mail_client():
    """Stand-in for the HTTP client the notification dispatcher posts with."""
    mock_response = AsyncMock()
    mock_response.is_success = True
    mock_response.status_code = 202

    mock_client_instance = AsyncMock()
    mock_client_instance.post = AsyncMock(return_value=mock_response)
    mock_client_instance.__aenter__ = AsyncMock(return_value=mock_client_instance)
    mock_client_instance.__aexit__ = AsyncMock(return_value=False)

    with patch("app.services.notifications.httpx.AsyncClient", return_value=mock_client_instance):
        yield mock_client_instance


# ── Domain fixtures ──────────────────────────────────────────


@pytest.fixture
async def operator(client) -> dict:
    """Bootstrap a tenant; returns auth headers plus tenant / owner ids."""
    resp = await client.post("/v1/tenants", json={
        "tenant_name": "Cabinet Martin",
        "tenant_slug": "cabinet-martin",
        "owner_email": "owner@cabinet-martin.fr",
        "owner_password": "password1234",
    })
    assert resp.status_code == 201, resp.text
    data = resp.json()
    return {
        "headers": {"Authorization": f"Bearer {data['api_token']}"},
        "tenant_id": uuid.UUID(data["tenant"]["id"]),
        "user_id": uuid.UUID(data["owner"]["id"]),
    }


@pytest.fixture
async def plan(session) -> Plan:
    """Active plan at 50.00 / month."""
    p = Plan(name="Standard", monthly_price=Decimal("50.00"), annual_price=Decimal("540.00"))
    session.add(p)
    await session.commit()
    return p
