"""Test fixtures — a fresh in-memory database per test.

Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets its own aiosqlite in-memory engine with the schema
   created from the ORM metadata, so there is nothing to roll back.
2. The app's get_db dependency is overridden to yield the test session, and
   get_current_user to return the identity the test is acting as.
3. Each test gets a fresh ConnectionRegistry on app.state, and FakeChannel
   objects stand in for websockets.
"""

import asyncio
import os

os.environ.setdefault("APPSTALKER_ENVIRONMENT", "test")
os.environ.setdefault("APPSTALKER_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from appstalker.auth.dependencies import CurrentIdentity, get_current_user
from appstalker.db.engine import get_db
from appstalker.db.models import Base, Follow, InstalledApp, Profile, User
from appstalker.main import app
from appstalker.realtime.registry import ConnectionRegistry


class FakeChannel:
    """Stand-in for a websocket: records what it was sent."""

    def __init__(self, fail: bool = False, delay: float | None = None):
        self.messages: list = []
        self.fail = fail
        self.delay = delay
        self.closed = False
        self.close_code: int | None = None

    async def send_json(self, data) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("broken pipe")
        self.messages.append(data)

    async def close(self, code: int = 1000) -> None:
        self.closed = True
        self.close_code = code


# ═══════════════════════════════════════════════════════════
# Database
# ═══════════════════════════════════════════════════════════


@pytest_asyncio.fixture()
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture()
async def db_session(db_engine):
    session = AsyncSession(bind=db_engine, expire_on_commit=False)
    try:
        yield session
    finally:
        await session.close()


# ═══════════════════════════════════════════════════════════
# Data factories
# ═══════════════════════════════════════════════════════════


@pytest.fixture
def make_user(db_session):
    """Insert a user with a profile. Skips bcrypt — login isn't exercised."""

    async def _make(username: str, is_private: bool = False, show_apps: bool = True) -> User:
        user = User(
            email=f"{username}@example.com",
            username=username,
            password_hash="unused",
        )
        db_session.add(user)
        await db_session.flush()
        db_session.add(
            Profile(
                user_id=user.id,
                display_name=username.title(),
                is_private=is_private,
                show_apps=show_apps,
            )
        )
        await db_session.commit()
        return user

    return _make


@pytest.fixture
def make_app(db_session):
    async def _make(
        owner: User,
        package_name: str,
        app_name: str | None = None,
        is_visible: bool = False,
    ) -> InstalledApp:
        installed = InstalledApp(
            user_id=owner.id,
            package_name=package_name,
            app_name=app_name or package_name.rsplit(".", 1)[-1].title(),
            platform="android",
            is_visible=is_visible,
        )
        db_session.add(installed)
        await db_session.commit()
        return installed

    return _make


@pytest.fixture
def follow(db_session):
    async def _follow(follower: User, following: User) -> None:
        db_session.add(Follow(follower_id=follower.id, following_id=following.id))
        await db_session.commit()

    return _follow


@pytest_asyncio.fixture()
async def me(make_user):
    """The user the `client` fixture is authenticated as."""
    return await make_user("alice")


# ═══════════════════════════════════════════════════════════
# Realtime
# ═══════════════════════════════════════════════════════════


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def channel():
    """Factory for fake push channels."""
    return FakeChannel


# ═══════════════════════════════════════════════════════════
# HTTP clients
# ═══════════════════════════════════════════════════════════


@pytest_asyncio.fixture()
async def client(db_session, me, registry):
    """HTTP client with get_db, auth and the registry overridden.

    Requests run as `me` unless a test switches identity with act_as.
    """

    me_id = str(me.id)

    async def override_get_db():
        yield db_session

    def override_get_current_user():
        return CurrentIdentity(user_id=me_id)

    original_registry = app.state.registry
    app.state.registry = registry
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    app.state.registry = original_registry


@pytest.fixture
def act_as():
    """Switch the identity the `client` fixture sends requests as."""

    def _act_as(user: User) -> None:
        user_id = str(user.id)
        app.dependency_overrides[get_current_user] = lambda: CurrentIdentity(user_id=user_id)

    return _act_as


@pytest_asyncio.fixture()
async def unauthenticated_client(db_session, registry):
    """HTTP client WITHOUT auth override — for testing real JWT flows."""

    async def override_get_db():
        yield db_session

    original_registry = app.state.registry
    app.state.registry = registry
    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    app.state.registry = original_registry
