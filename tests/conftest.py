"""Shared test fixtures — async DB, document store/cache, client, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Point settings at SQLite before anything imports backend.config
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("DB_CACHE_TTL_SECONDS", "0")

from datetime import datetime
from typing import Any, AsyncGenerator, Iterable, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from backend.common.constants import Collection
from backend.database import Base
from backend.documents.cache import DocumentCache
from backend.documents.store import DocumentStore
from backend.main import create_app

# Import ALL model modules so create_all sees every table
import backend.documents.models  # noqa: F401

# ── SQLite compat: compile PG-specific types to TEXT/CHAR ───────────

from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from backend.common.rate_limit import limiter

    limiter.reset()
    yield


# ── Document store / cache ──────────────────────────────────────────

@pytest.fixture
def store() -> DocumentStore:
    return DocumentStore(TestSessionFactory)


@pytest.fixture
def cache(store: DocumentStore) -> DocumentCache:
    return DocumentCache(store)


async def seed(
    store: DocumentStore,
    *,
    employees: Iterable[dict] = (),
    applications: Iterable[dict] = (),
    holidays: Iterable[Any] = (),
) -> None:
    """Insert documents directly through the store."""
    if employees:
        await store.upsert_many(Collection.employees.value, list(employees))
    if applications:
        await store.upsert_many(Collection.applications.value, list(applications))
    if holidays:
        await store.upsert_many(Collection.holidays.value, list(holidays))


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance wired to the test database."""
    application = create_app(session_factory=TestSessionFactory, cache_ttl_seconds=0)
    yield application


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Document factories ──────────────────────────────────────────────

# Cycle used throughout the suite: 2024-07-01 → 2025-06-30
CYCLE_END = datetime(2025, 6, 30, 23, 59, 59, 999000)


def _make_employee(
    *,
    employee_id: Any = "emp-1",
    name: str = "Test Employee",
    **fields: Any,
) -> dict:
    doc = {"id": employee_id, "name": name, "status": "active"}
    doc.update(fields)
    return doc


def _make_application(
    *,
    employee_id: Any = "emp-1",
    app_id: Optional[str] = None,
    leave_type: str = "annual",
    status: str = "approved",
    start: str = "2024-10-01",
    end: Optional[str] = None,
    half_day: bool = False,
) -> dict:
    doc = {
        "employeeId": employee_id,
        "type": leave_type,
        "status": status,
        "from": start,
        "to": end or start,
    }
    if app_id:
        doc["id"] = app_id
    if half_day:
        doc["halfDay"] = True
    return doc
