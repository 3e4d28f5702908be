"""Global test configuration and fixtures for the PRPM Playground API."""

from collections.abc import AsyncGenerator
from typing import Callable
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from asgi_lifespan import LifespanManager
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from jose import jwt

from src.database.models import Base, CreditBalance, Package, PackageVersion, User
from src.api.core.constants import JWT_ALGORITHM
from src.modules.playground.providers import get_model_client
from src.utils.settings.auth import AuthSettings

from tests.factories import (
    CreditBalanceFactory,
    PackageFactory,
    PackageVersionFactory,
    UserFactory,
)
from tests.utils.fakes import FakeModelClient

TEST_BASE_URL = "http://test-prpm-api"


@pytest.fixture
def user_factory():
    return UserFactory


@pytest.fixture
def credit_balance_factory():
    return CreditBalanceFactory


@pytest.fixture(autouse=True)
def disable_rate_limiting(monkeypatch):
    """Stub request throttling so tests do not require Redis."""

    async def _noop_check_rate_limit(*_args, **_kwargs):
        return None

    monkeypatch.setattr(
        "src.api.core.decorators.rate_limit.check_rate_limit", _noop_check_rate_limit
    )


@pytest_asyncio.fixture
async def async_engine(tmp_path):
    """File-backed SQLite database per test so separate sessions can share it."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'playground.db'}")
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(async_engine) -> async_sessionmaker:
    return async_sessionmaker(bind=async_engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session.

    Fixtures commit what they create: the app under test reads through its
    own sessions.
    """
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_model_client() -> FakeModelClient:
    return FakeModelClient()


@pytest_asyncio.fixture
async def app(session_factory, fake_model_client):
    """Create FastAPI application with lifespan manager for testing."""
    from src.main import app

    async with LifespanManager(app):
        app.state.session_factory = session_factory
        app.dependency_overrides[get_model_client] = lambda: fake_model_client
        yield app
        app.dependency_overrides.clear()


# Test Data Fixtures
@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession, user_factory) -> User:
    """Create a test user with an empty credit balance."""
    user = await user_factory.create_async(db_session, name="Test User")
    await CreditBalanceFactory.create_async(db_session, user_id=user.id)
    await db_session.commit()
    return user


@pytest.fixture
def set_balance(db_session: AsyncSession):
    """Overwrite the buckets of a user's credit balance."""

    async def _set_balance(user: User, **buckets: int) -> CreditBalance:
        balance = await db_session.get(CreditBalance, user.id)
        for field, value in buckets.items():
            setattr(balance, field, value)
        await db_session.commit()
        return balance

    return _set_balance


@pytest.fixture
def package_factory(db_session: AsyncSession):
    """Create a package with a single published version."""

    async def _create_package(
        prompt: str = "You are a careful code reviewer. Point out bugs first.",
        version: str = "1.0.0",
    ) -> tuple[Package, PackageVersion]:
        package = await PackageFactory.create_async(db_session, latest_version=version)
        package_version = await PackageVersionFactory.create_async(
            db_session, package_id=package.id, version=version, prompt=prompt
        )
        await db_session.commit()
        return package, package_version

    return _create_package


@pytest_asyncio.fixture
async def test_package(package_factory) -> Package:
    package, _ = await package_factory()
    return package


# JWT Token Fixtures
@pytest.fixture()
def jwt_token_factory() -> Callable[[str, str, str], str]:
    """Factory for creating JWT tokens for test users."""
    auth_settings = AuthSettings()

    def create_token(user_id: str, email: str, name: str = "Test User") -> str:
        payload = {
            "sub": user_id,
            "email": email,
            "role": "authenticated",
            "aud": auth_settings.JWT_AUDIENCE,
            "user_metadata": {"full_name": name, "name": name},
        }
        return jwt.encode(
            payload,
            auth_settings.JWT_SECRET.get_secret_value(),
            algorithm=JWT_ALGORITHM,
        )

    return create_token


@pytest_asyncio.fixture
async def user_token(
    test_user: User, jwt_token_factory: Callable[[str, str, str], str]
) -> str:
    """Create a JWT token for the test user."""
    return jwt_token_factory(str(test_user.id), test_user.email, test_user.name)


# HTTP Client Fixtures
@pytest_asyncio.fixture
async def public_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create HTTP client for testing public endpoints."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url=TEST_BASE_URL,
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def authorized_client(
    app: FastAPI, user_token: str
) -> AsyncGenerator[AsyncClient, None]:
    """Create HTTP client with JWT authorization headers."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url=TEST_BASE_URL,
        headers={"Authorization": f"Bearer {user_token}"},
    ) as ac:
        yield ac


@pytest.fixture
def client_factory(app: FastAPI, jwt_token_factory):
    """Factory for creating HTTP clients with different user contexts."""

    def create_client_for_user(user_id=None, email: str | None = None) -> AsyncClient:
        user_id = user_id or uuid4()
        token = jwt_token_factory(
            str(user_id), email or f"{user_id.hex[:8]}@example.com"
        )
        return AsyncClient(
            transport=ASGITransport(app=app),
            base_url=TEST_BASE_URL,
            headers={"Authorization": f"Bearer {token}"},
        )

    return create_client_for_user
