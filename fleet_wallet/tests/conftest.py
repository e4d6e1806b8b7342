"""
Centralized Test Configuration.

Each test gets its own file-backed SQLite database. NullPool hands every
session a real connection, so concurrent sessions contend on the database
lock the way separate API workers would.
"""

from datetime import datetime
from decimal import Decimal

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool, Pool

from fleet_wallet.app.main import app
from fleet_wallet.app.core.config import Settings, get_settings
from fleet_wallet.app.core.jwt import admin_claims, create_access_token, vendor_claims
from fleet_wallet.app.core.redis_client import get_redis
from fleet_wallet.app.db.session import Base, create_session_factory, get_db, get_session_factory
from fleet_wallet.app.models.driver import Driver
from fleet_wallet.app.models.trip_completion import TRIP_COMPLETION_SOURCES
from fleet_wallet.app.models.vendor import Vendor

WEBHOOK_SECRET = "test-webhook-signing-secret"


# Event handler to enable foreign keys for SQLite
@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'fleet_wallet.db'}",
        webhook_signing_secret=WEBHOOK_SECRET,
        webhook_signature_verification_disabled=False,
        gateway_token_refresh_backoff_seconds=0.0,
        vendor_utc_offset_minutes=330,
    )


@pytest.fixture
async def engine(test_settings):
    engine = create_async_engine(test_settings.database_url, poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


# Shared session for fixture data creation
@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self.expiries = {}
        self._closed = False

    async def ping(self):
        return not self._closed

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        self.expiries[key] = ex
        return True

    async def delete(self, key):
        if key in self.store:
            del self.store[key]
            return 1
        return 0

    async def aclose(self):
        self._closed = True
        self.store = {}


@pytest.fixture
def mock_redis():
    return MockRedis()


@pytest.fixture
async def client(session_factory, mock_redis, test_settings):
    """Async client for testing, wired to the per-test database."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_redis():
        return mock_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_redis] = override_get_redis
    app.dependency_overrides[get_settings] = lambda: test_settings

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides = {}


@pytest.fixture
async def vendor(db_session):
    vendor = Vendor(name="Acme Cabs", email="ops@acme.test", phone="+919800000001")
    db_session.add(vendor)
    await db_session.commit()
    await db_session.refresh(vendor)
    return vendor


@pytest.fixture
async def other_vendor(db_session):
    vendor = Vendor(name="Zenith Rides", email="ops@zenith.test", phone="+919800000002")
    db_session.add(vendor)
    await db_session.commit()
    await db_session.refresh(vendor)
    return vendor


@pytest.fixture
async def driver(db_session, vendor):
    driver = Driver(vendor_id=vendor.id, name="Ravi Kumar", phone="+919811111111", license_number="KA01-2020-0001")
    db_session.add(driver)
    await db_session.commit()
    await db_session.refresh(driver)
    return driver


@pytest.fixture
async def second_driver(db_session, vendor):
    driver = Driver(vendor_id=vendor.id, name="Anil Sharma", phone="+919822222222", license_number="KA01-2021-0002")
    db_session.add(driver)
    await db_session.commit()
    await db_session.refresh(driver)
    return driver


@pytest.fixture
def add_trip(db_session):
    """Insert a trip-completion record into one of the four sources."""

    async def _add_trip(source: str, driver_id: int, completed_at: datetime, amount):
        model = TRIP_COMPLETION_SOURCES[source]
        trip = model(
            driver_id=driver_id,
            completed_at=completed_at,
            total_amount_owed=Decimal(str(amount)) if amount is not None else None,
        )
        db_session.add(trip)
        await db_session.commit()
        return trip

    return _add_trip


@pytest.fixture
def vendor_headers(vendor):
    token = create_access_token(vendor_claims(vendor.id))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers():
    token = create_access_token(admin_claims("ops-admin"))
    return {"Authorization": f"Bearer {token}"}
