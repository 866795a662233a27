"""Test fixtures: an isolated SQLite database per test.

Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets its own database file under tmp_path, with the schema
   created from the ORM metadata. NullPool keeps no connections around,
   so the same engine also works from TestClient's event loop thread.
2. Every HTTP request gets its own session from that engine (get_db is
   overridden), just like production; `db_session` is a separate session
   for arranging data and inspecting results.
3. Each test builds a fresh app via create_app(), so realtime rooms never
   leak between tests.

Redis is disabled and bcrypt runs with its minimum work factor.
"""

import asyncio
import os
import uuid
from dataclasses import dataclass, field

os.environ.setdefault("TASKHIVE_DATABASE_URL", "sqlite+aiosqlite://")
os.environ["TASKHIVE_REDIS_URL"] = ""
os.environ["TASKHIVE_BCRYPT_ROUNDS"] = "4"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from starlette.testclient import TestClient

from taskhive.auth.jwt import create_access_token
from taskhive.auth.password import hash_password
from taskhive.db.engine import get_db
from taskhive.db.models import Base, User
from taskhive.main import create_app
from taskhive.realtime.events import room_name

PASSWORD = "password_123"


def _sqlite_engine(tmp_path):
    return create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'taskhive.db'}",
        poolclass=NullPool,
    )


async def _create_schema(engine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def _override_get_db(app, session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db


# ═══════════════════════════════════════════════════════════
# Database
# ═══════════════════════════════════════════════════════════


@pytest_asyncio.fixture()
async def engine(tmp_path):
    engine = _sqlite_engine(tmp_path)
    await _create_schema(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture()
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


# ═══════════════════════════════════════════════════════════
# App + HTTP client
# ═══════════════════════════════════════════════════════════


@pytest.fixture()
def app():
    return create_app()


@pytest_asyncio.fixture()
async def client(app, session_factory):
    """HTTP client against a fresh app wired to the per-test database.

    Auth is NOT overridden: tests authenticate with real access tokens
    (see `make_user`).
    """
    _override_get_db(app, session_factory)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture()
def sync_client(tmp_path):
    """Starlette TestClient for WebSocket flows.

    Used as a context manager so HTTP requests and WebSocket sessions share
    one event loop, the same way they do under uvicorn.
    """
    engine = _sqlite_engine(tmp_path)
    asyncio.run(_create_schema(engine))
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    app = create_app()
    _override_get_db(app, session_factory)
    with TestClient(app) as tc:
        yield tc

    app.dependency_overrides.clear()
    asyncio.run(engine.dispose())


# ═══════════════════════════════════════════════════════════
# Users
# ═══════════════════════════════════════════════════════════


@dataclass
class Account:
    """A registered user plus a valid access token."""

    id: uuid.UUID
    email: str
    name: str
    token: str
    headers: dict = field(default_factory=dict)
    password: str = PASSWORD


@pytest_asyncio.fixture()
async def make_user(session_factory):
    """Factory: insert a user and mint an access token for it."""

    async def _make(name: str = "User") -> Account:
        email = f"{name.lower()}-{uuid.uuid4().hex[:8]}@example.com"
        async with session_factory() as session:
            user = User(email=email, name=name, password_hash=hash_password(PASSWORD))
            session.add(user)
            await session.commit()
            user_id = user.id
        token = create_access_token(str(user_id))
        return Account(
            id=user_id,
            email=email,
            name=name,
            token=token,
            headers={"Authorization": f"Bearer {token}"},
        )

    return _make


def _register(tc: TestClient, name: str) -> Account:
    email = f"{name.lower()}-{uuid.uuid4().hex[:8]}@example.com"
    r = tc.post(
        "/api/v1/auth/register",
        json={"name": name, "email": email, "password": PASSWORD},
    )
    assert r.status_code == 201, r.text
    body = r.json()
    token = body["access_token"]
    return Account(
        id=uuid.UUID(body["user"]["id"]),
        email=email,
        name=name,
        token=token,
        headers={"Authorization": f"Bearer {token}"},
    )


# ═══════════════════════════════════════════════════════════
# Realtime
# ═══════════════════════════════════════════════════════════


class Recorder:
    """Room subscriber that keeps every frame it is handed."""

    def __init__(self):
        self.messages: list[dict] = []

    def deliver(self, message: dict) -> None:
        self.messages.append(message)

    @property
    def events(self) -> list[str]:
        return [m["event"] for m in self.messages]


@pytest.fixture()
def listen(app):
    """Factory: put a Recorder into a project's room on the test app."""

    def _listen(project_id) -> Recorder:
        recorder = Recorder()
        app.state.rooms.join(room_name(str(project_id)), recorder)
        return recorder

    return _listen


@pytest_asyncio.fixture()
async def project_with_member(client, make_user):
    """Owner X, member Y (joined via invite code), outsider Z, one project."""
    x = await make_user("Xavier")
    y = await make_user("Yara")
    z = await make_user("Zed")

    r = await client.post("/api/v1/projects", json={"name": "Sprint"}, headers=x.headers)
    assert r.status_code == 201, r.text
    project = r.json()

    r = await client.post(
        "/api/v1/projects/join",
        json={"invite_code": project["invite_code"]},
        headers=y.headers,
    )
    assert r.status_code == 200, r.text

    return {"owner": x, "member": y, "outsider": z, "project": r.json()}


@pytest.fixture()
def register():
    """Factory: register through the API with a sync TestClient."""
    return _register
