"""Shared test fixtures — async DB, client, auth helpers, factories, fakes.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL. The
vacation service is wired to a recording mailer, the in-memory calendar
and a fixed "today" so date rules are deterministic.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import AsyncGenerator, Optional, Sequence

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from vacation_portal.common.constants import RequestStatus
from vacation_portal.common.locking import TransactionLock
from vacation_portal.common.rate_limit import ActionRateLimiter
from vacation_portal.config import settings
from vacation_portal.database import Base, get_db
from vacation_portal.employees.models import Employee, Manager
from vacation_portal.employees.service import ManagerRoster
from vacation_portal.main import create_app
from vacation_portal.notifications.schemas import DeliveryResult
from vacation_portal.notifications.service import VacationNotifier
from vacation_portal.team_calendar.adapter import InMemoryCalendarAdapter
from vacation_portal.vacations.models import VacationRequest
from vacation_portal.vacations.service import VacationService

# ── SQLite compat: compile PG-specific types ────────────────────────

from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


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


@event.listens_for(engine.sync_engine, "connect")
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() as a SQLite custom function."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
    )


TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)

# Saturday; the first business week after it is 2025-03-03..07
TODAY = date(2025, 3, 1)


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
    """Reset slowapi storage between tests to prevent cross-test interference."""
    from vacation_portal.common.rate_limit import limiter

    limiter.reset()
    yield


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Fakes ───────────────────────────────────────────────────────────

@dataclass
class SentMail:
    to: str
    subject: str
    html_body: str
    cc: list[str] = field(default_factory=list)


class RecordingMailer:
    """Mailer that keeps every message; ``fail`` makes delivery fail."""

    def __init__(self) -> None:
        self.sent: list[SentMail] = []
        self.fail = False

    async def send(
        self,
        to: str,
        subject: str,
        html_body: str,
        cc: Optional[Sequence[str]] = None,
    ) -> DeliveryResult:
        self.sent.append(SentMail(to, subject, html_body, list(cc or [])))
        if self.fail:
            return DeliveryResult(delivered=False, error="SMTP unavailable")
        return DeliveryResult(delivered=True)

    def subjects(self) -> list[str]:
        return [m.subject for m in self.sent]

    def to(self, address: str) -> list[SentMail]:
        return [m for m in self.sent if m.to == address]


# ── Service wiring ──────────────────────────────────────────────────

@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def calendar() -> InMemoryCalendarAdapter:
    return InMemoryCalendarAdapter()


@pytest.fixture
def roster() -> ManagerRoster:
    # TTL 0: every lookup re-reads the table
    return ManagerRoster(0)


@pytest.fixture
def rate_limiter() -> ActionRateLimiter:
    return ActionRateLimiter(settings.rate_limit_rules)


@pytest.fixture
def service(mailer, calendar, roster, rate_limiter) -> VacationService:
    return VacationService(
        notifier=VacationNotifier(mailer, roster, portal_url="http://portal.test"),
        calendar=calendar,
        roster=roster,
        lock=TransactionLock(),
        rate_limiter=rate_limiter,
        config=settings,
        today=lambda: TODAY,
    )


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app(service):
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app(service=service)
    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Model factories ─────────────────────────────────────────────────

def _make_employee(
    *,
    name: str = "Alice Smith",
    email: str = "alice@example.com",
    team: Optional[str] = "Support",
    allowance_total: int = 10,
    remaining_override: Optional[int] = None,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        name=name,
        email=email,
        team=team,
        allowance_total=allowance_total,
        used_days=0,
        remaining_override=remaining_override,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


async def seed_employee(db: AsyncSession, **kwargs) -> Employee:
    employee = Employee(**_make_employee(**kwargs))
    db.add(employee)
    await db.flush()
    return employee


async def seed_manager(db: AsyncSession, email: str = "boss@example.com") -> Manager:
    manager = Manager(email=email)
    db.add(manager)
    await db.flush()
    return manager


async def seed_request(
    db: AsyncSession,
    *,
    employee: Optional[Employee] = None,
    email: Optional[str] = None,
    name: Optional[str] = None,
    start: Optional[date] = date(2025, 3, 3),
    end: Optional[date] = date(2025, 3, 7),
    status: Optional[RequestStatus] = RequestStatus.pending,
    business_days: Optional[int] = None,
    calendar_event_ref: Optional[str] = None,
) -> VacationRequest:
    """Insert a request row directly, bypassing the lifecycle engine."""
    row = VacationRequest(
        requester_email=email or (employee.email if employee else "someone@example.com"),
        requester_name=name or (employee.name if employee else "Someone"),
        employee_id=employee.id if employee else None,
        start_date=start,
        end_date=end,
        status=status,
        business_days=business_days,
        calendar_event_ref=calendar_event_ref,
    )
    db.add(row)
    await db.flush()
    return row


@pytest.fixture
async def alice(db) -> Employee:
    employee = await seed_employee(db)
    await db.commit()
    return employee


@pytest.fixture
async def bob(db) -> Employee:
    employee = await seed_employee(db, name="Bob Jones", email="bob@example.com")
    await db.commit()
    return employee


@pytest.fixture
async def manager(db) -> Manager:
    row = await seed_manager(db)
    await db.commit()
    return row


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(email: str, expired: bool = False, token_type: str = "access") -> str:
    """Generate a JWT access token for testing."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS)
    payload = {"sub": email, "type": token_type, "exp": exp}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_headers(email: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(email)}"}
