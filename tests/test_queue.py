"""Tests for the Celery-backed queue client"""

from datetime import timedelta
from uuid import uuid4

import pytest

from venue_booking.errors import ExternalServiceError
from venue_booking.jobs.celery_app import celery_app
from venue_booking.jobs.tasks import process_email_job
from venue_booking.models.email import EmailQueueJob
from venue_booking.notifications.priority import EmailPriority, JobKind
from venue_booking.notifications.queue import CeleryQueueClient
from venue_booking.schemas.notifications import EmailJob


@pytest.fixture
def published(monkeypatch):
    """Capture task publications instead of talking to Redis"""
    calls = []

    def fake_apply_async(*args, **kwargs):
        calls.append(kwargs)

    monkeypatch.setattr(process_email_job, "apply_async", fake_apply_async)
    return calls


@pytest.fixture
def revoked(monkeypatch):
    calls = []
    monkeypatch.setattr(celery_app.control, "revoke", lambda task_id: calls.append(task_id))
    return calls


def make_job(booking_id=None, kind=JobKind.SEND_EMAIL):
    return EmailJob(
        kind=kind,
        booking_id=booking_id,
        recipient="guest@example.com",
        template="booking_confirmation",
        template_data={"reference": "BRL-2025-01234"},
    )


@pytest.mark.asyncio
async def test_enqueue_persists_and_publishes(session_factory, test_db, published):
    """Test the job row is written and its id used as the task id"""
    client = CeleryQueueClient(session_factory)
    job = make_job()

    job_id = await client.enqueue(job, EmailPriority.CRITICAL)

    row = await test_db.get(EmailQueueJob, job_id)
    assert row.status == "queued"
    assert row.priority == "critical"
    assert row.queue_weight == 10
    assert row.max_retries == 5
    assert published == [
        {"args": [job_id], "task_id": job_id, "priority": 0, "countdown": None}
    ]


@pytest.mark.asyncio
async def test_enqueue_with_delay(session_factory, test_db, published):
    """Test delayed jobs are scheduled with a countdown"""
    client = CeleryQueueClient(session_factory)

    job_id = await client.enqueue(make_job(), EmailPriority.LOW, delay=timedelta(hours=2))

    row = await test_db.get(EmailQueueJob, job_id)
    assert row.status == "scheduled"
    assert row.schedule_at is not None
    assert published[0]["countdown"] == 7200
    assert published[0]["priority"] == 9


@pytest.mark.asyncio
async def test_enqueue_broker_failure(session_factory, test_db, monkeypatch):
    """Test a publish failure marks the row failed and raises"""

    def broken(*args, **kwargs):
        raise ConnectionError("redis unreachable")

    monkeypatch.setattr(process_email_job, "apply_async", broken)
    client = CeleryQueueClient(session_factory)
    job = make_job()

    with pytest.raises(ExternalServiceError):
        await client.enqueue(job, EmailPriority.HIGH)

    row = await test_db.get(EmailQueueJob, job.id)
    assert row.status == "failed"
    assert "redis unreachable" in row.last_error


@pytest.mark.asyncio
async def test_cancel_pending_job(session_factory, test_db, published, revoked):
    """Test cancelling marks the row and revokes the task"""
    client = CeleryQueueClient(session_factory)
    job_id = await client.enqueue(make_job(), EmailPriority.NORMAL, delay=timedelta(hours=1))

    assert await client.cancel(job_id) is True
    assert await client.cancel(job_id) is False

    row = await test_db.get(EmailQueueJob, job_id)
    assert row.status == "cancelled"
    assert revoked == [job_id]


@pytest.mark.asyncio
async def test_pending_jobs_by_booking(session_factory, published, revoked):
    """Test pending jobs are listed per booking and kind"""
    client = CeleryQueueClient(session_factory)
    booking_id = uuid4()
    await client.enqueue(make_job(booking_id), EmailPriority.CRITICAL)
    reminder = await client.enqueue(
        make_job(booking_id, JobKind.REMINDER_TRIGGER), EmailPriority.NORMAL, delay=timedelta(hours=72)
    )
    cancelled = await client.enqueue(
        make_job(booking_id, JobKind.REMINDER_TRIGGER), EmailPriority.HIGH, delay=timedelta(hours=24)
    )
    await client.enqueue(make_job(uuid4(), JobKind.REMINDER_TRIGGER), EmailPriority.HIGH, delay=timedelta(hours=2))
    await client.cancel(cancelled)

    pending = await client.pending_jobs(booking_id, JobKind.REMINDER_TRIGGER)

    assert [job.id for job in pending] == [reminder]
    assert len(await client.pending_jobs(booking_id)) == 2
