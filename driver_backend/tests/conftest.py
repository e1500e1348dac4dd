"""
Centralized Test Configuration.
"""

import os
import tempfile

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from driver_backend.app.main import app
from driver_backend.app.db.session import get_db, get_session_factory, Base
from driver_backend.app.core.dependencies import drain_trip_events
from driver_backend.app.core.jwt import create_access_token
from driver_backend.app.core.redis_client import get_redis
from driver_backend.app.core.security import get_password_hash
from driver_backend.app.models.enums import UserRole
from driver_backend.app.models.trip import Trip
from driver_backend.app.models.trip_enums import DriverAcceptanceStatus, TripPhase, TripStatus
from driver_backend.app.models.user import User
import driver_backend.app.core.redis_client as redis_client_module

# Setup file-backed SQLite test database. Background notification tasks open
# their own sessions, so every session needs its own connection.
TEST_DATABASE_PATH = os.path.join(tempfile.gettempdir(), "driver_backend_test.db")
TEST_DATABASE_URL = f"sqlite+aiosqlite:///{TEST_DATABASE_PATH}"

# Event handler to enable foreign keys for SQLite
from sqlalchemy import event
from sqlalchemy.pool import NullPool, Pool

@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": 30},
    poolclass=NullPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

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

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
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

    async def flushdb(self):
        if not self._closed:
            self.store = {}

    async def aclose(self):
        self._closed = True
        self.store = {}

# Redis Fixture (Session Scope)
@pytest.fixture(scope="session")
def redis_client_session():
    return MockRedis()

@pytest.fixture(scope="session", autouse=True)
def apply_overrides(redis_client_session):
    """Apply overrides once for the session.
    Global override is safer here than per-test override to avoid app state flux.
    """

    # Patch the global redis client used by /health
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = redis_client_session

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    async def override_get_redis():
        return redis_client_session

    def override_get_session_factory():
        return TestingSessionLocal

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    app.dependency_overrides[get_session_factory] = override_get_session_factory
    yield

    # Restore and clear
    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client

@pytest.fixture(autouse=True)
async def setup_database(redis_client_session):
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    await redis_client_session.flushdb()

    yield

    # Notifications scheduled by the test still write to the tables.
    await drain_trip_events()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
def session_factory():
    return TestingSessionLocal


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": user.username, "user_id": user.id, "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for():
    return auth_headers


@pytest.fixture
def create_user(db_session):
    """Factory: persist a user with the given role."""
    async def _create(username: str, role: UserRole = UserRole.DRIVER, **fields) -> User:
        user = User(
            email=f"{username}@test.com",
            username=username,
            hashed_password=get_password_hash("password123"),
            role=role,
            is_active=fields.pop("is_active", True),
            **fields,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user
    return _create


@pytest.fixture
def create_trip(db_session):
    """Factory: persist a trip; defaults to assigned and awaiting the driver."""
    async def _create(**fields) -> Trip:
        values = {
            "pickup_address": "100 Main St, Springfield",
            "destination_address": "City Hospital, Springfield",
            "status": TripStatus.ASSIGNED,
            "driver_acceptance_status": DriverAcceptanceStatus.ASSIGNED_WAITING,
            "trip_phase": TripPhase.WAITING,
        }
        values.update(fields)
        trip = Trip(**values)
        db_session.add(trip)
        await db_session.commit()
        await db_session.refresh(trip)
        return trip
    return _create


@pytest.fixture
async def driver(create_user):
    return await create_user("driver1", UserRole.DRIVER, first_name="Drew", last_name="Driver")


@pytest.fixture
async def dispatcher(create_user):
    return await create_user("dispatcher1", UserRole.DISPATCHER)


@pytest.fixture
async def admin(create_user):
    return await create_user("admin1", UserRole.ADMIN)


@pytest.fixture
def driver_headers(driver):
    return auth_headers(driver)


@pytest.fixture
def dispatcher_headers(dispatcher):
    return auth_headers(dispatcher)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)
