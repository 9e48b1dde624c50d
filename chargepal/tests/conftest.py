"""
Centralized Test Configuration.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool
from typing import Dict, List

from chargepal.app.main import app
from chargepal.app.db.session import get_db, init_db, Base
from chargepal.app.core.redis_client import get_redis
from chargepal.app.core.dependencies import get_remote_store, get_sync_config
from chargepal.app.schemas.remote import RemoteTable
from chargepal.app.services.remote_store import RemoteStore, RemoteStoreError
from chargepal.app.services.state_store import StateStore
import chargepal.app.core.redis_client as redis_client_module
from chargepal.tests.factories import TEST_SYNC_CONFIG

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False

    async def ping(self):
        if self._closed:
            return False
        return True

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None, nx=False):
        if self._closed:
            return False
        if nx and key in self.store:
            return None
        self.store[key] = value
        return True

    async def delete(self, key):
        if self._closed:
            return 0
        if key in self.store:
            del self.store[key]
            return 1
        return 0

    async def exists(self, key):
        if self._closed:
            return 0
        return 1 if key in self.store else 0

    def register_script(self, script):
        # Stands in for the lock release script: compare-and-delete
        async def run(keys=None, args=None):
            if self.store.get(keys[0]) == args[0]:
                return await self.delete(keys[0])
            return 0
        return run

    async def flushdb(self):
        if not self._closed:
            self.store = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


class FakeRemoteStore(RemoteStore):
    """
    In-memory remote store that records every call.

    ``fail_on`` is a ``(method, table)`` pair; the matching call raises
    ``RemoteStoreError`` instead of touching the tables.
    """

    def __init__(self):
        self.tables: Dict[RemoteTable, Dict[str, object]] = {
            RemoteTable.VEHICLES: {},
            RemoteTable.CHARGING_RECORDS: {},
        }
        self.calls: List[tuple] = []
        self.fail_on = None

    def _track(self, method: str, table: RemoteTable, *args):
        self.calls.append((method, table, *args))
        if self.fail_on == (method, table):
            raise RemoteStoreError("503 Service Unavailable")

    @staticmethod
    def _key(table: RemoteTable, row) -> str:
        return row.license_plate if table == RemoteTable.VEHICLES else row.id

    def seed(self, table: RemoteTable, *rows):
        for row in rows:
            self.tables[table][self._key(table, row)] = row

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None

    def calls_to(self, method: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == method]

    async def upsert(self, table, rows, on_conflict):
        self._track("upsert", table, list(rows))
        self.seed(table, *rows)

    async def delete(self, table, ids):
        self._track("delete", table, list(ids))
        for row_id in ids:
            self.tables[table].pop(row_id, None)

    async def select_all(self, table):
        self._track("select_all", table)
        return list(self.tables[table].values())

    async def select_columns(self, table, row_type):
        self._track("select_columns", table)
        return [row_type.model_validate(row.model_dump()) for row in self.tables[table].values()]


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_db(engine)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def state_store(db_session):
    return StateStore(db_session, key="test_state")


@pytest.fixture
def mock_redis():
    return MockRedis()


@pytest.fixture
def remote_store():
    return FakeRemoteStore()


@pytest.fixture
def apply_overrides(session_factory, mock_redis, remote_store, monkeypatch):
    """Route the app's database, Redis and remote store to the test doubles."""

    # Patch the global redis client used by the health check
    monkeypatch.setattr(redis_client_module, "redis_client", mock_redis)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_redis():
        return mock_redis

    async def override_get_sync_config():
        return TEST_SYNC_CONFIG

    async def override_get_remote_store():
        yield remote_store

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    app.dependency_overrides[get_sync_config] = override_get_sync_config
    app.dependency_overrides[get_remote_store] = override_get_remote_store
    yield

    app.dependency_overrides = {}


@pytest.fixture
async def client(apply_overrides):
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
