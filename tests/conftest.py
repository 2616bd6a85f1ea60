"""Test fixtures with in-memory SQLite via SQLModel."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from handyhub.config import settings
from handyhub.database import enable_sqlite_foreign_keys, get_db_session
from handyhub.db_models import (  # noqa: F401: register tables
    Chat,
    ChatParticipant,
    Message,
    Notification,
    Task,
    TaskFeedback,
    User,
)
from handyhub.events import broadcaster, connections
from handyhub.main import app
from handyhub.rate_limit import limiter

limiter.enabled = False


@pytest.fixture(autouse=True)
def _isolated_live_state(monkeypatch):
    # No network in tests: addresses are stored without coordinates unless a
    # test patches the geocoder in.
    monkeypatch.setattr(settings, "geocoding_enabled", False)
    connections.clear()
    yield
    connections.clear()


async def _make_engine(url: str, **connect_args):
    engine = create_async_engine(
        url, echo=False, connect_args={"check_same_thread": False, **connect_args}
    )
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    return engine


@pytest.fixture
async def db():
    engine = await _make_engine("sqlite+aiosqlite://")
    factory = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)  # type: ignore[call-overload]

    async def override_get_db_session():
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db_session

    yield factory

    app.dependency_overrides.clear()
    await engine.dispose()


@pytest.fixture
async def file_db(tmp_path):
    """File-backed database with a real connection pool, for race tests.

    The in-memory engine shares one connection between sessions, which would
    serialize the very requests a race test wants to overlap.
    """
    engine = await _make_engine(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}", timeout=30)
    async with engine.begin() as conn:
        await conn.execute(text("PRAGMA journal_mode=WAL"))
    factory = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)  # type: ignore[call-overload]

    async def override_get_db_session():
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db_session

    yield factory

    app.dependency_overrides.clear()
    await engine.dispose()


@pytest.fixture
async def client(db):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await broadcaster.drain()


@pytest.fixture
async def file_client(file_db):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await broadcaster.drain()


async def register_user(client: AsyncClient, name: str = "test-user", **extra) -> dict:
    """Helper: register a user, return {"id", "key"}."""
    resp = await client.post("/v1/register", json={"name": name, **extra})
    assert resp.status_code == 201
    data = resp.json()
    return {"id": data["userId"], "key": data["apiKey"]}


def hdr(key: str) -> dict:
    return {"Authorization": f"Bearer {key}"}


TASK_BODY = {
    "title": "Fix leaking kitchen tap",
    "description": "Tap drips constantly, washer probably worn",
    "budget": {"min": 40, "max": 80},
    "date": "2026-11-02T09:00:00Z",
    "category": "plumbing",
}


async def post_task(client: AsyncClient, key: str, **overrides) -> dict:
    resp = await client.post("/v1/tasks", headers=hdr(key), json={**TASK_BODY, **overrides})
    assert resp.status_code == 201, resp.text
    return resp.json()["task"]


@pytest.fixture
async def trio(client):
    """Requester, fulfiller and an unrelated third user."""
    return {
        "client": client,
        "requester": await register_user(client, "Rita Requester", email="rita@example.com"),
        "fulfiller": await register_user(client, "Fred Fixer", role="fulfiller"),
        "other": await register_user(client, "Olga Other", role="fulfiller"),
    }
