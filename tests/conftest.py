import itertools
import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.database import get_db
from app.dependencies import get_current_user
from app.main import app
from app.models import Base
from app.models.friendship import Friendship
from app.models.place import Place
from app.models.user import User

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakePipeline:
    def __init__(self, redis: "FakeRedis"):
        self._redis = redis
        self._ops: list = []

    def zremrangebyscore(self, key, low, high):
        self._ops.append(("zremrangebyscore", key, low, high))

    def zadd(self, key, mapping):
        self._ops.append(("zadd", key, mapping))

    def zcard(self, key):
        self._ops.append(("zcard", key))

    def expire(self, key, seconds):
        self._ops.append(("expire", key, seconds))

    async def execute(self) -> list:
        results = []
        for op, key, *args in self._ops:
            zset = self._redis._zsets.setdefault(key, {})
            if op == "zremrangebyscore":
                low, high = args
                stale = [m for m, score in zset.items() if low <= score <= high]
                for m in stale:
                    del zset[m]
                results.append(len(stale))
            elif op == "zadd":
                zset.update(args[0])
                results.append(len(args[0]))
            elif op == "zcard":
                results.append(len(zset))
            else:
                results.append(True)
        return results


class FakeRedis:
    """In-memory Redis mock for testing."""

    def __init__(self):
        self._store: dict[str, str] = {}
        self._ttls: dict[str, int] = {}
        self._zsets: dict[str, dict] = {}

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> None:
        self._store[key] = str(value)
        if ex:
            self._ttls[key] = ex

    async def incr(self, key: str) -> int:
        val = int(self._store.get(key, "0")) + 1
        self._store[key] = str(val)
        return val

    async def expire(self, key: str, seconds: int) -> None:
        self._ttls[key] = seconds

    def pipeline(self) -> FakePipeline:
        return FakePipeline(self)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        pass


@pytest.fixture
async def db_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
def user_factory(db_session: AsyncSession):
    counter = itertools.count(1)

    async def create(username: str | None = None, display_name: str | None = None) -> User:
        n = next(counter)
        user = User(
            id=uuid.uuid4(),
            username=username or f"traveler{n}",
            display_name=display_name or f"Traveler {n}",
            created_at=datetime.now(timezone.utc),
            updated_at=datetime.now(timezone.utc),
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return create


@pytest.fixture
async def alice(user_factory) -> User:
    return await user_factory("alice", "Alice Liddell")


@pytest.fixture
async def bob(user_factory) -> User:
    return await user_factory("bob", "Bob Marley")


@pytest.fixture
async def carol(user_factory) -> User:
    return await user_factory("carol", "Carol Danvers")


@pytest.fixture
def make_friendship(db_session: AsyncSession):
    async def create(requester: User, addressee: User, status: str = "pending") -> Friendship:
        friendship = Friendship.request(requester.id, addressee.id)
        friendship.status = status
        db_session.add(friendship)
        await db_session.commit()
        await db_session.refresh(friendship)
        return friendship

    return create


@pytest.fixture
def make_place(db_session: AsyncSession):
    async def create(owner: User, name: str = "Cafe Central", lat: float = 48.2104, lng: float = 16.3654, **kwargs) -> Place:
        place = Place(user_id=owner.id, name=name, lat=lat, lng=lng, category=kwargs.pop("category", "cafe"), **kwargs)
        db_session.add(place)
        await db_session.commit()
        await db_session.refresh(place)
        return place

    return create


@pytest.fixture
def session_override(db_engine):
    session_factory = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False
    )

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return override_get_db


@pytest.fixture
def failing_commits(db_engine):
    """Route requests to sessions whose commit fails as if the database dropped."""
    session_factory = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False
    )

    async def broken_commit():
        raise OperationalError("COMMIT", {}, Exception("server closed the connection unexpectedly"))

    async def override_get_db():
        async with session_factory() as session:
            session.commit = broken_commit
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    def enable() -> None:
        app.dependency_overrides[get_db] = override_get_db

    return enable


@pytest.fixture
async def client(session_override, alice: User) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_current_user():
        return alice

    app.dependency_overrides[get_db] = session_override
    app.dependency_overrides[get_current_user] = override_get_current_user
    app.state.redis = FakeRedis()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def anon_client(session_override) -> AsyncGenerator[AsyncClient, None]:
    """Client that goes through real bearer-token authentication."""
    app.dependency_overrides[get_db] = session_override
    app.state.redis = FakeRedis()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def act_as():
    """Switch the authenticated user for subsequent requests."""

    def switch(user: User) -> None:
        app.dependency_overrides[get_current_user] = lambda: user

    return switch
