"""Pytest configuration.

Settings come from the environment, so test defaults are set before the app
is imported. Every test gets its own SQLite file; the app's session
dependencies are overridden to point at it.
"""
import os

os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("SEED_DEMO_CONTENT", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import asyncio

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.security import create_access_token
from app.db.base import Base
from app.db.session import get_db, get_session_factory
from app.main import app
from app.models.user import User
from app.services.completion import CompletionTrigger
from app.services.engine import SimulationEngine
from app.services.seeding import seed_demo_content

DEMO_CASE_ID = "unit-economics-crisis"
DEMO_STAGES = ["d1", "d2", "d3"]


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def demo_content(db_session):
    await seed_demo_content(db_session)


async def _make_user(db: AsyncSession, email: str) -> User:
    # password hashing is covered by the auth API tests
    user = User(email=email, hashed_password="not-a-real-hash")
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def user(db_session):
    return await _make_user(db_session, "learner@example.com")


@pytest_asyncio.fixture
async def other_user(db_session):
    return await _make_user(db_session, "other@example.com")


class RecordingJobQueue:
    def __init__(self):
        self.calls = []

    async def enqueue(self, simulation_id, user_id):
        self.calls.append({"simulation_id": simulation_id, "user_id": user_id})
        return f"job-{len(self.calls)}"


class RecordingNotificationSink:
    def __init__(self):
        self.calls = []

    async def send(self, user_id, type, title, message, link=None, metadata=None):
        self.calls.append(
            {"user_id": user_id, "type": type, "title": title, "message": message, "link": link, "metadata": metadata}
        )
        return len(self.calls)


class RecordingForum:
    channel_slug = "general"

    def __init__(self):
        self.calls = []

    async def create_thread(self, author_id, title, content, metadata):
        self.calls.append({"author_id": author_id, "title": title, "content": content, "metadata": metadata})
        return len(self.calls)


class FailingForum(RecordingForum):
    async def create_thread(self, author_id, title, content, metadata):
        self.calls.append({"author_id": author_id, "title": title})
        raise RuntimeError("forum unavailable")


class SlowNotificationSink(RecordingNotificationSink):
    async def send(self, *args, **kwargs):
        await asyncio.sleep(5)


@pytest.fixture
def recorders():
    return {
        "jobs": RecordingJobQueue(),
        "notifications": RecordingNotificationSink(),
        "forum": RecordingForum(),
    }


@pytest.fixture
def trigger(recorders):
    return CompletionTrigger(recorders["jobs"], recorders["notifications"], recorders["forum"], timeout=1.0)


@pytest.fixture
def sim_engine(db_session, trigger):
    return SimulationEngine(db_session, trigger)


@pytest_asyncio.fixture
async def client(session_factory):
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def auth_headers(user_id: int) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}
