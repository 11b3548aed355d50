"""
Pytest configuration and shared fixtures.

Tests run against an in-memory SQLite database. Every test gets a session
bound to one connection inside an outer transaction that is rolled back at
the end; ``session.begin()`` is mapped to a SAVEPOINT so service code that
opens its own transactions works unchanged.

Outgoing email is mocked for every test (see ``email_outbox``).
"""

import os
from types import SimpleNamespace
from typing import AsyncGenerator
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool


DEFAULT_PASSWORD = "SecurePass123"


def pytest_configure(config):
    """Configure the environment before the application is imported."""
    os.environ["ENVIRONMENT"] = "test"
    os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
    os.environ["ENABLE_SCHEDULER"] = "false"
    os.environ["RATE_LIMIT_BACKEND"] = "memory"
    os.environ["BREVO_API_KEY"] = "test-brevo-key"


# ============================================================================
# Database
# ============================================================================


@pytest.fixture
async def db_engine():
    from app.core.config import settings
    from app.core.db import Base
    import app.core.db.models  # noqa: F401

    engine = create_async_engine(
        settings.TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; emit BEGIN ourselves
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """
    Session whose work is rolled back after the test.

    ``session.begin()`` opens a SAVEPOINT inside the outer transaction.
    """
    connection = await db_engine.connect()
    transaction = await connection.begin()

    session = AsyncSession(bind=connection, expire_on_commit=False)
    session.begin = session.begin_nested  # type: ignore[method-assign]

    try:
        yield session
    finally:
        await session.close()
        await transaction.rollback()
        await connection.close()


# ============================================================================
# Application
# ============================================================================


@pytest.fixture
def app(db_session):
    from app.core.dependencies import get_async_session
    from app.main import app as fastapi_app

    async def override_get_async_session():
        yield db_session

    fastapi_app.dependency_overrides[get_async_session] = override_get_async_session
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac


@pytest.fixture(autouse=True)
def email_outbox():
    """
    Replace every email sender with an AsyncMock returning True.

    The plaintext codes can be read back from
    ``email_outbox.send_otp_email.call_args.kwargs["otp_code"]``.
    """
    from app.core.services.email_manager import EmailManagerService

    with (
        patch.object(
            EmailManagerService,
            "send_otp_email",
            new_callable=AsyncMock,
            return_value=True,
        ) as send_otp_email,
        patch.object(
            EmailManagerService,
            "send_welcome_email",
            new_callable=AsyncMock,
            return_value=True,
        ) as send_welcome_email,
        patch.object(
            EmailManagerService,
            "send_password_reset_email",
            new_callable=AsyncMock,
            return_value=True,
        ) as send_password_reset_email,
        patch.object(
            EmailManagerService,
            "send_withdrawal_status_email",
            new_callable=AsyncMock,
            return_value=True,
        ) as send_withdrawal_status_email,
    ):
        yield SimpleNamespace(
            send_otp_email=send_otp_email,
            send_welcome_email=send_welcome_email,
            send_password_reset_email=send_password_reset_email,
            send_withdrawal_status_email=send_withdrawal_status_email,
        )


@pytest.fixture(autouse=True)
def reset_rate_limits():
    from app.core.services.rate_limit import reset_rate_limiters

    reset_rate_limiters()
    yield
    reset_rate_limiters()


@pytest.fixture
def last_code(email_outbox):
    """Returns the plaintext of the most recently emailed code."""

    def _last_code() -> str:
        return email_outbox.send_otp_email.call_args.kwargs["otp_code"]

    return _last_code


# ============================================================================
# Users and clients
# ============================================================================


async def _create_user(session: AsyncSession, name: str, email: str, role, **extra):
    from app.core.db.models import User
    from app.core.enums import UserStatus
    from app.core.utils import hash_password

    user = User(
        name=name,
        email=email,
        password_hash=hash_password(DEFAULT_PASSWORD),
        role=role,
        status=UserStatus.ACTIVE,
        is_email_verified=True,
        **extra,
    )
    session.add(user)
    await session.flush()
    return user


@pytest.fixture
async def client_user(db_session):
    from app.core.enums import UserRole

    return await _create_user(
        db_session, "Jane Doe", "jane@example.com", UserRole.CLIENT
    )


@pytest.fixture
async def client_profile(db_session, client_user):
    """Client profile of ``client_user`` with a 10,000 balance."""
    from app.core.db.models import Client
    from app.core.enums import ClientStatus

    profile = Client(
        user_id=client_user.id,
        client_id="CL-10001",
        first_name="Jane",
        last_name="Doe",
        email=client_user.email,
        account_balance=10000.0,
        pending_withdrawals=0.0,
        total_investments=0.0,
        status=ClientStatus.ACTIVE,
    )
    db_session.add(profile)
    await db_session.flush()
    return profile


@pytest.fixture
async def other_client_user(db_session):
    from app.core.enums import UserRole

    return await _create_user(
        db_session, "John Roe", "john@example.com", UserRole.CLIENT
    )


@pytest.fixture
async def other_client_profile(db_session, other_client_user):
    from app.core.db.models import Client
    from app.core.enums import ClientStatus

    profile = Client(
        user_id=other_client_user.id,
        client_id="CL-10002",
        first_name="John",
        last_name="Roe",
        email=other_client_user.email,
        account_balance=500.0,
        pending_withdrawals=0.0,
        total_investments=0.0,
        status=ClientStatus.ACTIVE,
    )
    db_session.add(profile)
    await db_session.flush()
    return profile


@pytest.fixture
async def admin_user(db_session):
    from app.core.enums import UserRole

    return await _create_user(
        db_session, "Ada Admin", "admin@example.com", UserRole.ADMIN
    )


@pytest.fixture
async def manager_user(db_session):
    from app.core.enums import UserRole

    return await _create_user(
        db_session, "Max Manager", "manager@example.com", UserRole.MANAGER
    )


@pytest.fixture
async def staff_user(db_session):
    from app.core.enums import UserRole

    return await _create_user(
        db_session, "Sam Staff", "staff@example.com", UserRole.STAFF
    )


def _auth_headers(user) -> dict[str, str]:
    from app.core.services.auth import AuthService

    token = AuthService.create_access_token(user)
    return {"Authorization": f"Bearer {token.access_token}"}


@pytest.fixture
def auth_headers_for():
    """Returns a function building Bearer headers for any user."""
    return _auth_headers


@pytest.fixture
def client_headers(client_user, client_profile):
    return _auth_headers(client_user)


@pytest.fixture
def other_client_headers(other_client_user, other_client_profile):
    return _auth_headers(other_client_user)


@pytest.fixture
def admin_headers(admin_user):
    return _auth_headers(admin_user)


@pytest.fixture
def manager_headers(manager_user):
    return _auth_headers(manager_user)


@pytest.fixture
def staff_headers(staff_user):
    return _auth_headers(staff_user)
