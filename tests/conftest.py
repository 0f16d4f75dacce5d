"""
Beyond Trips Backend — Test Configuration (conftest.py)
=======================================================

What:  Shared pytest fixtures for the whole suite.
How:   Every test gets a fresh in-memory SQLite database (aiosqlite) with all
       tables created from the ORM metadata. The app's session and queue
       dependencies are overridden to use it.

Fixture Hierarchy:
    db_engine ─┬─ session_factory ─┬─ db_session   (service-level tests)
               │                   ├─ task_queue   (TaskQueue bound to the test DB)
               │                   └─ app ── test_client  (overrides + HTTPX AsyncClient)
               └─ seed fixtures: driver, admin_user, magazine, approved_pickup,
                                 picked_up_pickup, active_pickup

In-memory SQLite lives on one connection (StaticPool), so two sessions must
never hold a transaction at the same time: commit or close one before the
other runs.
"""

import os

# Settings are read at import time; configure before importing the app
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["TASK_WORKER_ENABLED"] = "false"
os.environ["TASK_INLINE_RETRIES"] = "1"
os.environ["BTL_COIN_VALUE_NGN"] = "500"

from datetime import timedelta
from typing import AsyncGenerator, Callable, Dict
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import beyondtrips.models  # noqa: F401
from beyondtrips.database import Base, get_db_session, session_scope, utcnow
from beyondtrips.dependencies import get_task_queue
from beyondtrips.models.pickup import MagazinePickup, PickupStatus
from beyondtrips.models.user import Magazine, User, UserRole
from beyondtrips.services.task_queue import TaskQueue

TEST_BARCODE = "TEST-MAG-BTL-2025"


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; emit BEGIN ourselves
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def task_queue(session_factory) -> TaskQueue:
    return TaskQueue(session_factory=session_factory)


# ══════════════════════════════════════════════════════════════════════════
# Seed data
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def make_user(session_factory) -> Callable:
    async def _make_user(role: str = UserRole.DRIVER, first_name: str = "Tunde", last_name: str = "Bakare") -> User:
        async with session_factory() as session:
            user = User(first_name=first_name, last_name=last_name, role=role, is_active=True)
            session.add(user)
            await session.commit()
            return user

    return _make_user


@pytest.fixture
def make_magazine(session_factory) -> Callable:
    async def _make_magazine(barcode: str = TEST_BARCODE, is_published: bool = True, status: str = "active") -> Magazine:
        async with session_factory() as session:
            magazine = Magazine(
                title="Beyond Trips Lagos",
                edition_number=12,
                barcode=barcode,
                is_published=is_published,
                status=status,
            )
            session.add(magazine)
            await session.commit()
            return magazine

    return _make_magazine


@pytest.fixture
def make_pickup(session_factory) -> Callable:
    async def _make_pickup(driver: User, magazine: Magazine, status: str = PickupStatus.REQUESTED.value) -> MagazinePickup:
        now = utcnow()
        pickup = MagazinePickup(
            driver_id=driver.id,
            magazine_id=magazine.id,
            quantity=10,
            status=status,
            requested_at=now,
        )
        if status != PickupStatus.REQUESTED.value:
            pickup.approved_at = now
            pickup.return_date = now + timedelta(days=30)
            pickup.qr_code = f"PICKUP-{int(now.timestamp() * 1000)}-{uuid4().hex[:7].upper()}"
            pickup.verification_code = "123456"
        if status in (PickupStatus.PICKED_UP.value, PickupStatus.ACTIVE.value):
            pickup.picked_up_at = now
        if status == PickupStatus.ACTIVE.value:
            pickup.activation_barcode = magazine.barcode
            pickup.activated_at = now
        async with session_factory() as session:
            session.add(pickup)
            await session.commit()
        return pickup

    return _make_pickup


@pytest_asyncio.fixture
async def driver(make_user) -> User:
    return await make_user(role=UserRole.DRIVER, first_name="Tunde", last_name="Bakare")


@pytest_asyncio.fixture
async def admin_user(make_user) -> User:
    return await make_user(role=UserRole.ADMIN, first_name="Ada", last_name="Obi")


@pytest_asyncio.fixture
async def magazine(make_magazine) -> Magazine:
    return await make_magazine()


@pytest_asyncio.fixture
async def approved_pickup(make_pickup, driver, magazine) -> MagazinePickup:
    return await make_pickup(driver, magazine, PickupStatus.APPROVED.value)


@pytest_asyncio.fixture
async def picked_up_pickup(make_pickup, driver, magazine) -> MagazinePickup:
    return await make_pickup(driver, magazine, PickupStatus.PICKED_UP.value)


@pytest_asyncio.fixture
async def active_pickup(make_pickup, driver, magazine) -> MagazinePickup:
    return await make_pickup(driver, magazine, PickupStatus.ACTIVE.value)


# ══════════════════════════════════════════════════════════════════════════
# HTTP
# ══════════════════════════════════════════════════════════════════════════

def auth_headers(user_id: UUID, role: str) -> Dict[str, str]:
    return {"X-User-ID": str(user_id), "X-User-Role": role}


@pytest.fixture
def driver_headers(driver) -> Dict[str, str]:
    return auth_headers(driver.id, UserRole.DRIVER)


@pytest.fixture
def admin_headers(admin_user) -> Dict[str, str]:
    return auth_headers(admin_user.id, UserRole.ADMIN)


@pytest.fixture
def app(session_factory, task_queue):
    """A fresh app (own rate-limit state) bound to the test database."""
    from beyondtrips.main import create_app

    app = create_app()

    async def _override_get_db_session():
        async with session_scope(session_factory) as session:
            yield session

    app.dependency_overrides[get_db_session] = _override_get_db_session
    app.dependency_overrides[get_task_queue] = lambda: task_queue
    return app


@pytest_asyncio.fixture
async def test_client(app) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTPX client over ASGITransport.

    The lifespan does not run, so no background worker starts; post-response
    drains still run inside each request.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
