"""Test fixtures — a fresh in-memory database and app per test.

Learn: Each test gets its own SQLite (aiosqlite) database. StaticPool keeps
the single in-memory connection alive for the whole test, so every session
the app opens sees the same tables and rows. A fresh app per test also
means a fresh Broadcaster, so no sockets leak between tests.

Auth uses real JWTs signed with the development secret, so the whole
get_current_user pipeline (verify → upsert user) runs in every test.
"""

import os

os.environ.setdefault("PRAYOVERUS_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("PRAYOVERUS_LOG_LEVEL", "WARNING")

import json  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402
from starlette.websockets import WebSocketState  # noqa: E402

from prayoverus.auth.jwt import create_access_token  # noqa: E402
from prayoverus.db.engine import get_db  # noqa: E402
from prayoverus.db.models import Base  # noqa: E402
from prayoverus.main import create_app  # noqa: E402

TEST_DB_URL = "sqlite+aiosqlite://"

ALICE = {"user_id": "user-alice", "first_name": "Alice", "last_name": "Adams",
         "email": "alice@example.com"}
BOB = {"user_id": "user-bob", "first_name": "Bob", "last_name": "Brown",
       "email": "bob@example.com"}


def auth_headers(user_id: str, **profile) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id, **profile)}"}


def make_engine():
    return create_async_engine(TEST_DB_URL, poolclass=StaticPool)


def build_test_app(engine):
    """Fresh app whose get_db yields sessions bound to the test engine."""
    app = create_app()
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    return app


async def create_tables(engine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


class FakeSocket:
    """Stands in for a starlette WebSocket in broadcaster tests."""

    def __init__(self, state: WebSocketState = WebSocketState.CONNECTED, fail: bool = False):
        self.client_state = state
        self.application_state = state
        self.fail = fail
        self.sent: list[str] = []

    async def send_text(self, message: str) -> None:
        if self.fail:
            raise RuntimeError("socket write failed")
        self.sent.append(message)

    def close(self) -> None:
        self.client_state = WebSocketState.DISCONNECTED

    @property
    def events(self) -> list[dict]:
        return [json.loads(m) for m in self.sent]


# ═══════════════════════════════════════════════════════════
# Async fixtures (REST tests)
# ═══════════════════════════════════════════════════════════


@pytest_asyncio.fixture()
async def engine():
    engine = make_engine()
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture()
async def db_session(engine):
    """Session for service-layer tests."""
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture
def app(engine):
    return build_test_app(engine)


@pytest.fixture
def broadcaster(app):
    return app.state.broadcaster


async def _client_for(app, headers: dict | None = None):
    transport = ASGITransport(app=app)
    return AsyncClient(transport=transport, base_url="http://test", headers=headers or {})


@pytest_asyncio.fixture()
async def client(app):
    """Authenticated as Alice."""
    ac = await _client_for(app, auth_headers(**ALICE))
    async with ac:
        yield ac


@pytest_asyncio.fixture()
async def other_client(app):
    """Authenticated as Bob."""
    ac = await _client_for(app, auth_headers(**BOB))
    async with ac:
        yield ac


@pytest_asyncio.fixture()
async def anon_client(app):
    ac = await _client_for(app)
    async with ac:
        yield ac


@pytest.fixture
def open_socket(broadcaster):
    """A live fake socket registered with this test's broadcaster."""
    socket = FakeSocket()
    broadcaster.register(socket)
    return socket
