"""Test configuration and fixtures"""

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from venue_booking.main import app
from venue_booking.database import Base, get_db
from venue_booking.api.deps import get_queue_client, get_consent_store
from venue_booking.errors import ExternalServiceError
from venue_booking.layout import seed_layout
from venue_booking.notifications.priority import EmailPriority
from venue_booking.notifications.workflow import BookingEmailWorkflow
from venue_booking.schemas.hold import HoldConvert
from venue_booking.services import holds


# Fixed clock for service tests: Monday 1 September 2025, noon at the venue
NOW = datetime(2025, 9, 1, 12, 0)
EVENT_DATE = date(2025, 9, 12)
EVENT_SLOT = "22:00"


class FakeQueueClient:
    """In-memory queue client recording every job"""

    def __init__(self):
        self.jobs = {}
        self.delays = {}
        self.fail_with = None

    async def enqueue(self, job, priority, delay=None):
        if self.fail_with is not None:
            raise self.fail_with
        job.priority = EmailPriority(priority)
        job.status = "scheduled" if delay else "queued"
        self.jobs[job.id] = job
        self.delays[job.id] = delay
        return job.id

    async def cancel(self, job_id):
        job = self.jobs.get(job_id)
        if job is None or job.status not in ("queued", "scheduled"):
            return False
        job.status = "cancelled"
        return True

    async def pending_jobs(self, booking_id, kind=None):
        return [
            job for job in self.jobs.values()
            if job.booking_id == booking_id
            and job.status in ("queued", "scheduled")
            and (kind is None or job.kind == kind)
        ]

    def by_template(self, template):
        return [job for job in self.jobs.values() if job.template == template]

    def by_kind(self, kind):
        return [job for job in self.jobs.values() if job.kind == kind]


class FakeConsentStore:
    def __init__(self):
        self.records = {}

    async def get_consent(self, email):
        return self.records.get(email)


@pytest.fixture
async def test_engine(tmp_path):
    """File-backed SQLite so separate sessions see the same data"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def test_db(session_factory):
    """Create test database session"""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def venue(test_db):
    """Seed the sixteen tables and the 15+16 combination"""
    await seed_layout(test_db)


@pytest.fixture
def queue():
    return FakeQueueClient()


@pytest.fixture
def consent_store():
    return FakeConsentStore()


@pytest.fixture
def workflow(queue, consent_store):
    return BookingEmailWorkflow(queue, consent_store)


@pytest.fixture
def make_booking(test_db, venue):
    """Factory placing a hold and converting it into a confirmed booking"""

    async def _make(
        table_numbers=(4,),
        booking_date=EVENT_DATE,
        time_slot=EVENT_SLOT,
        party_size=4,
        email="guest@example.com",
        deposit=Decimal("50.00"),
        now=NOW,
    ):
        hold = await holds.create_hold(
            test_db, list(table_numbers), booking_date, time_slot, party_size, "session-1", now
        )
        return await holds.convert_hold(
            test_db,
            hold.id,
            HoldConvert(
                session_id="session-1",
                customer_name="Test Guest",
                customer_email=email,
                customer_phone="+447911123456",
                deposit_amount=deposit,
                total_amount=Decimal("450.00"),
            ),
            now,
        )

    return _make


@pytest.fixture
def future_date():
    """A date far enough ahead of the real clock for API tests"""
    return date.today() + timedelta(days=10)


@pytest.fixture
async def client(test_db, venue, queue, consent_store):
    """Create test client with overridden database and queue"""
    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_queue_client] = lambda: queue
    app.dependency_overrides[get_consent_store] = lambda: consent_store

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def broker_down(queue):
    queue.fail_with = ExternalServiceError("queue", "broker unavailable")
    return queue
