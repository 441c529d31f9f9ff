"""
Shared fixtures: a throwaway SQLite database per test, seeded users and an
HTTP client bound to the application with the test database injected.
"""

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

import auth_utils
import crud
import models
import ws_manager
from cache_service import TTLCache
from database import Base
from deps import get_db
from main import app
from routers import realtime
from schemas import UserCreate

PASSWORD = "correct-horse-42"


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'omnibiz_test.db'}",
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


async def _create_user(session_factory, **fields):
    async with session_factory() as session:
        return await crud.create_user(session, UserCreate(password=PASSWORD, **fields))


@pytest_asyncio.fixture
async def owner(session_factory):
    return await _create_user(
        session_factory,
        email="owner@omnibiz.co.ke",
        full_name="Wanjiku Owner",
        phone="+254700000001",
        role="business_owner",
    )


@pytest_asyncio.fixture
async def customer(session_factory, owner):
    return await _create_user(
        session_factory,
        email="customer@omnibiz.co.ke",
        full_name="Otieno Customer",
        phone="+254700000002",
        role="customer",
        invited_by_id=owner.id,
    )


@pytest_asyncio.fixture
async def other_owner(session_factory):
    return await _create_user(
        session_factory,
        email="second.owner@omnibiz.co.ke",
        full_name="Achieng Owner",
        role="business_owner",
    )


@pytest_asyncio.fixture
async def admin(session_factory):
    async with session_factory() as session:
        user = models.User(
            full_name="Platform Admin",
            email="admin@omnibiz.co.ke",
            hashed_password=auth_utils.get_password_hash(PASSWORD),
            role="admin",
            is_active=True,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


def auth_headers(user) -> dict:
    token = auth_utils.create_access_token({"sub": user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.summary_cache = TTLCache(60)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def headers_for():
    return auth_headers


@pytest.fixture
def pushed(monkeypatch):
    """Record every event handed to the realtime channel manager as (user_id, event, data)."""
    events = []

    async def record(user_id, event, data):
        events.append((user_id, event, data))
        return 1

    monkeypatch.setattr(ws_manager.manager, "send_to_user", record)
    return events


@pytest_asyncio.fixture
async def ws_client(engine, monkeypatch):
    # The socket runs on the test client's own event loop, so it gets unpooled connections
    ws_engine = create_async_engine(engine.url, poolclass=NullPool)
    monkeypatch.setattr(
        realtime, "SessionLocal", async_sessionmaker(bind=ws_engine, autoflush=False, expire_on_commit=False)
    )
    yield TestClient(app)
    await ws_engine.dispose()
