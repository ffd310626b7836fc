import asyncio
import os
import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import set_session_factory
from app.main import app
from app.profile.models import UserProfile
from app.rate_limit import limiter
from app.redis_client import get_redis
from shared.auth.dependencies import get_auth_settings
from shared.database.postgres import Base, get_async_engine, is_sqlite_url

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite://")


class FakeRedis:
    """Records pub/sub publishes."""

    def __init__(self) -> None:
        self.published: list[tuple[str, str]] = []

    async def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, message))
        return 0


class QueuePubSub:
    """A pub/sub connection whose messages are put on a queue by the test."""

    def __init__(self, queue: asyncio.Queue) -> None:
        self.queue = queue
        self.channels: list[str] = []
        self.closed = False

    async def subscribe(self, channel: str) -> None:
        self.channels.append(channel)

    async def get_message(self, ignore_subscribe_messages: bool = False, timeout: float = 0.0):
        try:
            return await asyncio.wait_for(self.queue.get(), timeout)
        except asyncio.TimeoutError:
            return None

    async def aclose(self) -> None:
        self.closed = True


class PubSubRedis:
    def __init__(self) -> None:
        self.queue: asyncio.Queue = asyncio.Queue()
        self.pubsub_instance = QueuePubSub(self.queue)

    def pubsub(self) -> QueuePubSub:
        return self.pubsub_instance


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    engine_kwargs = {}
    if is_sqlite_url(TEST_DATABASE_URL):
        # One shared connection so every session sees the same in-memory database
        engine_kwargs = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    engine = get_async_engine(TEST_DATABASE_URL, **engine_kwargs)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    set_session_factory(factory)
    yield factory
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def pubsub_redis() -> PubSubRedis:
    return PubSubRedis()


@pytest_asyncio.fixture
async def async_client(session_factory, fake_redis) -> AsyncGenerator[AsyncClient, None]:
    limiter.enabled = False
    app.dependency_overrides[get_redis] = lambda: fake_redis
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
    limiter.enabled = True


def make_token(user_id: uuid.UUID, roles: tuple[str, ...] = ("user",)) -> str:
    settings = get_auth_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "roles": list(roles),
        "iss": settings.issuer,
        "aud": settings.audience,
        "iat": now,
        "exp": now + timedelta(minutes=15),
    }
    return jwt.encode(payload, settings.secret, algorithm=settings.algorithm)


@pytest.fixture
def auth_headers() -> Callable[..., dict[str, str]]:
    def _headers(user_id: uuid.UUID, roles: tuple[str, ...] = ("user",)) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(user_id, roles)}"}

    return _headers


@pytest_asyncio.fixture
async def make_user(
    db_session: AsyncSession,
) -> Callable[..., Awaitable[UserProfile]]:
    """Insert and commit a profile through db_session.

    The in-memory database has a single shared connection, so all setup goes
    through one session rather than opening a second one mid-test.
    """
    counter = 0

    async def _make(*, is_private: bool = False, display_name: str | None = None) -> UserProfile:
        nonlocal counter
        counter += 1
        user_id = uuid.uuid4()
        profile = UserProfile(
            id=user_id,
            username=f"user{counter}_{user_id.hex[:6]}",
            display_name=display_name or f"User {counter}",
            is_private=is_private,
        )
        db_session.add(profile)
        await db_session.commit()
        return profile

    return _make
