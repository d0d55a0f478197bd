"""Tests for the booking email workflow"""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from venue_booking.clock import event_start
from venue_booking.errors import ExternalServiceError
from venue_booking.notifications.priority import EmailPriority, JobKind, broker_priority, queue_weight
from venue_booking.notifications.workflow import reminder_template
from venue_booking.schemas.booking import RefundDecision
from venue_booking.schemas.notifications import (
    BookingCancelled,
    BookingConfirmed,
    BookingCreated,
    BookingEmailContext,
    BookingModified,
    BookingSnapshot,
    ConsentRecord,
    CustomerInfo,
    ReminderDue,
    TriggerMetadata,
    VenueInfo,
)

from tests.conftest import NOW, EVENT_DATE, EVENT_SLOT

EVENT_AT = event_start(EVENT_DATE, EVENT_SLOT)


def make_context(booking_id=None, email="guest@example.com", email_notifications=True, **booking):
    data = {
        "id": booking_id or uuid4(),
        "reference": "BRL-2025-01234",
        "booking_date": EVENT_DATE,
        "time_slot": EVENT_SLOT,
        "table_numbers": [4],
        "floor": "upstairs",
        "party_size": 4,
        "total_amount": Decimal("450.00"),
        "deposit_paid": Decimal("50.00"),
    }
    data.update(booking)
    return BookingEmailContext(
        booking=BookingSnapshot(**data),
        customer=CustomerInfo(
            name="Test Guest", email=email, email_notifications=email_notifications
        ),
        venue=VenueInfo(
            name="The Backroom Leeds",
            address="50a Call Lane, Leeds LS1 6DT",
            phone="+441132420000",
            email="bookings@backroomleeds.co.uk",
        ),
    )


def test_queue_weights():
    """Test the fixed priority to weight table"""
    assert queue_weight(EmailPriority.CRITICAL) == 10
    assert queue_weight(EmailPriority.HIGH) == 7
    assert queue_weight(EmailPriority.NORMAL) == 5
    assert queue_weight(EmailPriority.LOW) == 1
    assert broker_priority(EmailPriority.CRITICAL) < broker_priority(EmailPriority.LOW)


def test_reminder_template_buckets():
    """Test the reminder template follows the time left before the event"""
    assert reminder_template(200) == "reminder_week_before"
    assert reminder_template(168) == "reminder_week_before"
    assert reminder_template(72) == "reminder_day_before"
    assert reminder_template(24) == "reminder_day_before"
    assert reminder_template(2) == "reminder_day_of"


@pytest.mark.asyncio
async def test_booking_created_schedules_reminders(workflow, queue):
    """Test a booking well ahead gets a confirmation and three reminders"""
    context = make_context()

    await workflow.process_workflow_trigger(BookingCreated(context=context), NOW)

    confirmations = queue.by_template("booking_confirmation")
    assert len(confirmations) == 1
    assert confirmations[0].priority == EmailPriority.CRITICAL
    assert confirmations[0].template_data["reference"] == "BRL-2025-01234"

    reminders = queue.by_kind(JobKind.REMINDER_TRIGGER)
    assert sorted(job.template_data["offset_hours"] for job in reminders) == [2, 24, 72]
    for job in reminders:
        offset = job.template_data["offset_hours"]
        assert job.schedule_at == EVENT_AT - timedelta(hours=offset)
        assert queue.delays[job.id] == job.schedule_at - NOW
        assert job.priority == (EmailPriority.NORMAL if offset == 72 else EmailPriority.HIGH)


@pytest.mark.asyncio
async def test_booking_created_close_to_event(workflow, queue):
    """Test a booking two hours out gets the confirmation only"""
    context = make_context()

    await workflow.process_workflow_trigger(BookingCreated(context=context), EVENT_AT - timedelta(hours=2))

    assert len(queue.by_template("booking_confirmation")) == 1
    assert queue.by_kind(JobKind.REMINDER_TRIGGER) == []


@pytest.mark.asyncio
async def test_booking_created_between_offsets(workflow, queue):
    """Test only reminders still in the future are scheduled"""
    context = make_context()

    await workflow.process_workflow_trigger(BookingCreated(context=context), EVENT_AT - timedelta(hours=30))

    reminders = queue.by_kind(JobKind.REMINDER_TRIGGER)
    assert sorted(job.template_data["offset_hours"] for job in reminders) == [2, 24]


@pytest.mark.asyncio
async def test_notifications_off_skips_reminders(workflow, queue):
    """Test customers who opted out of notifications still get the confirmation"""
    context = make_context(email_notifications=False)

    await workflow.process_workflow_trigger(BookingCreated(context=context), NOW)

    assert len(queue.by_template("booking_confirmation")) == 1
    assert queue.by_kind(JobKind.REMINDER_TRIGGER) == []


@pytest.mark.asyncio
async def test_booking_confirmed(workflow, queue):
    """Test a confirmation is re-sent at high priority"""
    await workflow.process_workflow_trigger(BookingConfirmed(context=make_context()), NOW)

    jobs = list(queue.jobs.values())
    assert len(jobs) == 1
    assert jobs[0].template == "booking_confirmation"
    assert jobs[0].priority == EmailPriority.HIGH


@pytest.mark.asyncio
async def test_booking_cancelled_cancels_reminders(workflow, queue):
    """Test cancelling drops every pending reminder and notifies the customer"""
    booking_id = uuid4()
    await workflow.process_workflow_trigger(BookingCreated(context=make_context(booking_id)), NOW)

    refund = RefundDecision(
        eligible=True,
        amount=Decimal("50.00"),
        reference="REF-3F2B9C1A",
        hours_before_event=250,
    )
    await workflow.process_workflow_trigger(
        BookingCancelled(
            context=make_context(booking_id),
            refund=refund,
            metadata=TriggerMetadata(triggered_by="customer", reason="Change of plans"),
        ),
        NOW + timedelta(hours=1),
    )

    reminders = queue.by_kind(JobKind.REMINDER_TRIGGER)
    assert len(reminders) == 3
    assert all(job.status == "cancelled" for job in reminders)

    notices = queue.by_template("booking_cancellation")
    assert len(notices) == 1
    assert notices[0].priority == EmailPriority.HIGH
    assert "REF-3F2B9C1A" in notices[0].template_data["refund_summary"]
    assert notices[0].template_data["cancellation_reason"] == "Change of plans"


@pytest.mark.asyncio
async def test_booking_cancelled_without_refund(workflow, queue):
    """Test the notice explains a forfeited deposit"""
    refund = RefundDecision(
        eligible=False,
        amount=Decimal("0"),
        reason="Cancelled within 48 hours of booking",
        hours_before_event=20,
    )

    await workflow.process_workflow_trigger(
        BookingCancelled(context=make_context(), refund=refund), NOW
    )

    notice = queue.by_template("booking_cancellation")[0]
    assert notice.template_data["refund_eligible"] is False
    assert "within 48 hours" in notice.template_data["refund_summary"]


@pytest.mark.asyncio
async def test_booking_modified_reschedules_reminders(workflow, queue):
    """Test a moved booking swaps its reminders for new ones"""
    booking_id = uuid4()
    await workflow.process_workflow_trigger(BookingCreated(context=make_context(booking_id)), NOW)
    old = {job.id for job in queue.by_kind(JobKind.REMINDER_TRIGGER)}

    moved = make_context(booking_id, booking_date=EVENT_DATE + timedelta(days=1))
    await workflow.process_workflow_trigger(BookingModified(context=moved), NOW)

    assert len(queue.by_template("booking_updated")) == 1
    pending = await queue.pending_jobs(booking_id, JobKind.REMINDER_TRIGGER)
    assert len(pending) == 3
    assert not old & {job.id for job in pending}
    moved_at = event_start(EVENT_DATE + timedelta(days=1), EVENT_SLOT)
    assert {job.schedule_at for job in pending} == {
        moved_at - timedelta(hours=offset) for offset in (72, 24, 2)
    }


@pytest.mark.asyncio
async def test_tracking_off_without_consent(workflow, queue):
    """Test no consent record means the email goes out untracked"""
    await workflow.process_workflow_trigger(BookingConfirmed(context=make_context()), NOW)

    job = list(queue.jobs.values())[0]
    assert job.tracking_enabled is False
    assert job.customer_consent.transactional_emails is True


@pytest.mark.asyncio
async def test_tracking_follows_consent(workflow, queue, consent_store):
    """Test open tracking consent turns tracking on"""
    consent_store.records["guest@example.com"] = ConsentRecord(
        email="guest@example.com", open_tracking=True, marketing=True
    )

    await workflow.process_workflow_trigger(BookingConfirmed(context=make_context()), NOW)

    job = list(queue.jobs.values())[0]
    assert job.tracking_enabled is True
    assert job.customer_consent.email_tracking is True
    assert job.customer_consent.marketing_emails is True


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "hours_before, template, priority",
    [
        (200, "reminder_week_before", EmailPriority.NORMAL),
        (72, "reminder_day_before", EmailPriority.NORMAL),
        (2, "reminder_day_of", EmailPriority.HIGH),
    ],
)
async def test_reminder_due(workflow, queue, hours_before, template, priority):
    """Test a due reminder picks its template from the time left"""
    await workflow.process_workflow_trigger(
        ReminderDue(context=make_context()), EVENT_AT - timedelta(hours=hours_before)
    )

    jobs = list(queue.jobs.values())
    assert len(jobs) == 1
    assert jobs[0].template == template
    assert jobs[0].priority == priority


@pytest.mark.asyncio
async def test_reminder_after_event_start(workflow, queue):
    """Test no reminder is sent once the event has begun"""
    await workflow.process_workflow_trigger(
        ReminderDue(context=make_context()), EVENT_AT + timedelta(minutes=5)
    )

    assert queue.jobs == {}


@pytest.mark.asyncio
async def test_queue_failure_propagates(workflow, broker_down):
    """Test enqueue errors surface to the caller"""
    with pytest.raises(ExternalServiceError):
        await workflow.process_workflow_trigger(BookingCreated(context=make_context()), NOW)
