"""Tests for job dispatch, retries and the dead-letter queue"""

from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from venue_booking.errors import ExternalServiceError
from venue_booking.models.email import DeadLetterEntry, EmailQueueJob
from venue_booking.notifications.dispatcher import (
    JobDispatcher,
    JobOutcome,
    JobResult,
    build_dispatcher,
    execute_job,
    retry_delay,
)
from venue_booking.notifications.priority import JobKind
from venue_booking.schemas.notifications import EmailJob
from venue_booking.services import bookings


class FakeEmailSender:
    def __init__(self, error=None):
        self.sent = []
        self.error = error

    async def send(self, to, subject, text, tags=None):
        if self.error is not None:
            raise self.error
        self.sent.append({"to": to, "subject": subject, "text": text, "tags": tags})
        return f"msg-{len(self.sent)}"


class FakeSmsSender:
    def __init__(self):
        self.sent = []

    async def send(self, to, body):
        self.sent.append({"to": to, "body": body})
        return "SM123"


CONFIRMATION_DATA = {
    "reference": "BRL-2025-01234",
    "customer_name": "Test Guest",
    "booking_date": "Friday 12 September 2025",
    "time_slot": "22:00",
    "table_label": "Table 4",
    "party_size": 4,
    "deposit_paid": "50.00",
    "remaining_balance": "400.00",
    "venue_name": "The Backroom Leeds",
    "venue_address": "50a Call Lane, Leeds LS1 6DT",
    "venue_phone": "+441132420000",
}


async def add_job(db, **overrides):
    data = {
        "id": str(uuid4()),
        "kind": JobKind.SEND_EMAIL.value,
        "recipient": "guest@example.com",
        "template": "booking_confirmation",
        "template_data": CONFIRMATION_DATA,
        "priority": "critical",
        "queue_weight": 10,
        "max_retries": 3,
        "status": "queued",
    }
    data.update(overrides)
    job = EmailQueueJob(**data)
    db.add(job)
    await db.commit()
    return job


def email_dispatcher(session_factory, workflow, sender=None):
    return build_dispatcher(session_factory, workflow, sender or FakeEmailSender(), FakeSmsSender())


def test_retry_delay_doubles():
    """Test backoff doubles per attempt"""
    assert [retry_delay(n) for n in (1, 2, 3)] == [2, 4, 8]


@pytest.mark.asyncio
async def test_send_email_job(test_db, session_factory, workflow):
    """Test a successful send marks the job sent with the provider id"""
    job = await add_job(test_db)
    sender = FakeEmailSender()

    delay = await execute_job(test_db, email_dispatcher(session_factory, workflow, sender), job.id)

    assert delay is None
    await test_db.refresh(job)
    assert job.status == "sent"
    assert job.attempts == 1
    assert job.provider_message_id == "msg-1"
    assert sender.sent[0]["subject"] == "Booking confirmed - BRL-2025-01234"
    assert sender.sent[0]["tags"] == {"template": "booking_confirmation"}


@pytest.mark.asyncio
async def test_finished_jobs_skipped(test_db, session_factory, workflow):
    """Test re-delivered sent and cancelled jobs are not sent again"""
    sent = await add_job(test_db, status="sent")
    cancelled = await add_job(test_db, status="cancelled")
    sender = FakeEmailSender()
    dispatcher = email_dispatcher(session_factory, workflow, sender)

    await execute_job(test_db, dispatcher, sent.id)
    await execute_job(test_db, dispatcher, cancelled.id)

    assert sender.sent == []


@pytest.mark.asyncio
async def test_unknown_job_id(test_db, session_factory, workflow):
    """Test a missing job row is ignored"""
    assert await execute_job(test_db, email_dispatcher(session_factory, workflow), "missing") is None


@pytest.mark.asyncio
async def test_retryable_failure_backs_off(test_db, session_factory, workflow):
    """Test provider outages are retried with growing delays"""
    job = await add_job(test_db)
    sender = FakeEmailSender(error=ExternalServiceError("resend", "timeout"))
    dispatcher = email_dispatcher(session_factory, workflow, sender)

    assert await execute_job(test_db, dispatcher, job.id) == 2
    await test_db.refresh(job)
    assert job.status == "failed"
    assert job.last_error == "resend: timeout"

    assert await execute_job(test_db, dispatcher, job.id) == 4


@pytest.mark.asyncio
async def test_exhausted_retries_dead_letter(test_db, session_factory, workflow):
    """Test the job is parked once max retries is reached"""
    job = await add_job(test_db, max_retries=2)
    sender = FakeEmailSender(error=ExternalServiceError("resend", "timeout"))
    dispatcher = email_dispatcher(session_factory, workflow, sender)

    assert await execute_job(test_db, dispatcher, job.id) == 2
    assert await execute_job(test_db, dispatcher, job.id) is None

    await test_db.refresh(job)
    assert job.status == "dead_lettered"

    entries = (await test_db.execute(select(DeadLetterEntry))).scalars().all()
    assert len(entries) == 1
    assert entries[0].job_id == job.id
    assert entries[0].attempts == 2
    assert entries[0].payload["template"] == "booking_confirmation"


@pytest.mark.asyncio
async def test_unknown_template_is_fatal(test_db, session_factory, workflow):
    """Test a job that can never render goes straight to dead letters"""
    job = await add_job(test_db, template="no_such_template")

    assert await execute_job(test_db, email_dispatcher(session_factory, workflow), job.id) is None

    await test_db.refresh(job)
    assert job.status == "dead_lettered"
    assert job.attempts == 1


@pytest.mark.asyncio
async def test_missing_handler_is_fatal():
    """Test jobs of an unregistered kind fail without retry"""
    dispatcher = JobDispatcher()

    async def handler(job):
        return JobResult.success()

    dispatcher.register(JobKind.SEND_SMS, handler)
    result = await dispatcher.dispatch(
        EmailJob(kind=JobKind.SEND_EMAIL, recipient="guest@example.com", template="booking_confirmation")
    )

    assert result.outcome == JobOutcome.FATAL


@pytest.mark.asyncio
async def test_send_sms_job(test_db, session_factory, workflow):
    """Test SMS jobs go through the SMS sender"""
    sms = FakeSmsSender()
    dispatcher = build_dispatcher(session_factory, workflow, FakeEmailSender(), sms)
    job = await add_job(
        test_db,
        kind=JobKind.SEND_SMS.value,
        recipient="+447911123456",
        template="waitlist_offer",
        template_data={
            "booking_date": "Friday 12 September 2025",
            "time_slot": "22:00",
            "party_size": 4,
            "offer_expires_at": "12:30",
            "offer_id": "offer-1",
        },
    )

    await execute_job(test_db, dispatcher, job.id)

    await test_db.refresh(job)
    assert job.status == "sent"
    assert sms.sent[0]["to"] == "+447911123456"


@pytest.mark.asyncio
async def test_reminder_trigger_sends_reminder(test_db, session_factory, workflow, queue, make_booking, future_date):
    """Test a due reminder trigger queues the reminder email"""
    booking = await make_booking(booking_date=future_date)
    job = await add_job(
        test_db,
        kind=JobKind.REMINDER_TRIGGER.value,
        booking_id=booking.id,
        template="reminder_trigger",
        template_data={"booking_id": str(booking.id), "offset_hours": 72},
        priority="normal",
        queue_weight=5,
    )

    await execute_job(test_db, email_dispatcher(session_factory, workflow), job.id)

    await test_db.refresh(job)
    assert job.status == "sent"
    reminders = [j for j in queue.jobs.values() if j.template.startswith("reminder_")]
    assert len(reminders) == 1
    assert reminders[0].booking_id == booking.id


@pytest.mark.asyncio
async def test_reminder_trigger_for_cancelled_booking(test_db, session_factory, workflow, queue, make_booking, future_date):
    """Test reminders for cancelled bookings are dropped"""
    booking = await make_booking(booking_date=future_date)
    await bookings.cancel_booking(test_db, booking.id, 1)
    job = await add_job(
        test_db,
        kind=JobKind.REMINDER_TRIGGER.value,
        booking_id=booking.id,
        template="reminder_trigger",
        template_data={"booking_id": str(booking.id), "offset_hours": 24},
    )

    await execute_job(test_db, email_dispatcher(session_factory, workflow), job.id)

    assert queue.jobs == {}


def crashing_dispatcher(error):
    dispatcher = JobDispatcher()

    async def handler(job):
        raise error

    dispatcher.register(JobKind.SEND_EMAIL, handler)
    return dispatcher


@pytest.mark.asyncio
async def test_database_error_is_retried(test_db):
    """Test a database outage inside a handler is retried with backoff"""
    job = await add_job(test_db, max_retries=2)
    dispatcher = crashing_dispatcher(OperationalError("SELECT 1", {}, Exception("db connection lost")))

    assert await execute_job(test_db, dispatcher, job.id) == 2
    await test_db.refresh(job)
    assert job.status == "failed"
    assert job.last_error.startswith("database:")

    assert await execute_job(test_db, dispatcher, job.id) is None
    await test_db.refresh(job)
    assert job.status == "dead_lettered"


@pytest.mark.asyncio
async def test_unexpected_error_dead_letters(test_db):
    """Test a crashing handler never leaves the job stuck in processing"""
    job = await add_job(test_db)

    assert await execute_job(test_db, crashing_dispatcher(RuntimeError("boom")), job.id) is None

    await test_db.refresh(job)
    assert job.status == "dead_lettered"
    assert job.attempts == 1
    assert job.last_error == "RuntimeError: boom"

    entries = (await test_db.execute(select(DeadLetterEntry))).scalars().all()
    assert [entry.job_id for entry in entries] == [job.id]
