"""
Booking email workflow.

Maps booking lifecycle events to outbound jobs:

    booking_created    confirmation (critical) + reminder triggers
    booking_confirmed  confirmation re-sent
    booking_cancelled  pending reminders cancelled + cancellation notice
    booking_modified   reminders rescheduled + updated confirmation
    reminder_due       reminder email picked by time left before the event

Tracking follows customer consent. Missing consent only turns tracking off,
required transactional notices are still sent.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import structlog

from venue_booking.clock import event_start, hours_between, venue_now
from venue_booking.config import settings
from venue_booking.notifications.consent import ConsentStore
from venue_booking.notifications.priority import EmailPriority, JobKind
from venue_booking.notifications.queue import QueueClient
from venue_booking.schemas.notifications import (
    BookingCancelled,
    BookingConfirmed,
    BookingCreated,
    BookingEmailContext,
    BookingModified,
    CustomerConsent,
    EmailJob,
    ReminderDue,
    WorkflowTrigger,
)

logger = structlog.get_logger()

WEEK_HOURS = 168
DAY_HOURS = 24


def reminder_template(hours_to_event: float) -> str:
    if hours_to_event >= WEEK_HOURS:
        return "reminder_week_before"
    if hours_to_event >= DAY_HOURS:
        return "reminder_day_before"
    return "reminder_day_of"


def reminder_priority(template: str) -> EmailPriority:
    return EmailPriority.HIGH if template == "reminder_day_of" else EmailPriority.NORMAL


def trigger_priority(offset_hours: int) -> EmailPriority:
    """Priority of the job that fires ``offset_hours`` before the event"""
    return EmailPriority.NORMAL if offset_hours >= 72 else EmailPriority.HIGH


def template_data(context: BookingEmailContext, **extra: Any) -> Dict[str, Any]:
    booking = context.booking
    data = {
        "booking_id": str(booking.id),
        "reference": booking.reference,
        "customer_name": context.customer.name,
        "booking_date": booking.booking_date.strftime("%A %d %B %Y"),
        "time_slot": booking.time_slot,
        "table_label": booking.table_label,
        "floor": booking.floor or "",
        "party_size": booking.party_size,
        "special_requests": booking.special_requests or "",
        "total_amount": str(booking.total_amount),
        "deposit_paid": str(booking.deposit_paid),
        "remaining_balance": str(booking.remaining_balance),
        "venue_name": context.venue.name,
        "venue_address": context.venue.address,
        "venue_phone": context.venue.phone,
    }
    data.update(extra)
    return data


class BookingEmailWorkflow:
    def __init__(
        self,
        queue: QueueClient,
        consent_store: ConsentStore,
        reminder_offsets: Optional[List[int]] = None,
    ):
        self.queue = queue
        self.consent_store = consent_store
        self.reminder_offsets = reminder_offsets or settings.reminder_offsets

    async def process_workflow_trigger(self, trigger: WorkflowTrigger, now: Optional[datetime] = None) -> None:
        """Enqueue the jobs a lifecycle event calls for. Queue failures propagate."""
        now = now or venue_now()
        booking_id = str(trigger.context.booking.id)
        logger.info("Processing workflow trigger", trigger_event=trigger.event, booking_id=booking_id)

        if isinstance(trigger, BookingCreated):
            await self._send_confirmation(trigger.context, EmailPriority.CRITICAL)
            await self._schedule_reminders(trigger.context, now)
        elif isinstance(trigger, BookingConfirmed):
            await self._send_confirmation(trigger.context, EmailPriority.HIGH)
        elif isinstance(trigger, BookingCancelled):
            await self._cancel_reminders(trigger.context)
            await self._send_cancellation(trigger)
        elif isinstance(trigger, BookingModified):
            await self._cancel_reminders(trigger.context)
            await self._send(trigger.context, "booking_updated", EmailPriority.HIGH)
            await self._schedule_reminders(trigger.context, now)
        elif isinstance(trigger, ReminderDue):
            await self._send_reminder(trigger.context, now)

    async def _consent(self, email: str) -> CustomerConsent:
        consent = await self.consent_store.get_consent(email)
        if consent is None:
            logger.info("Tracking suppressed, no consent on record")
            return CustomerConsent()
        if not consent.open_tracking:
            logger.info("Tracking suppressed, customer opted out")
        return CustomerConsent(
            email_tracking=consent.open_tracking,
            marketing_emails=consent.marketing,
            transactional_emails=consent.transactional,
        )

    async def _send(
        self,
        context: BookingEmailContext,
        template: str,
        priority: EmailPriority,
        **extra: Any,
    ) -> str:
        consent = await self._consent(context.customer.email)
        job = EmailJob(
            kind=JobKind.SEND_EMAIL,
            booking_id=context.booking.id,
            recipient=context.customer.email,
            template=template,
            template_data=template_data(context, **extra),
            priority=priority,
            tracking_enabled=consent.email_tracking,
            customer_consent=consent,
        )
        return await self.queue.enqueue(job, priority)

    async def _send_confirmation(self, context: BookingEmailContext, priority: EmailPriority) -> str:
        return await self._send(context, "booking_confirmation", priority)

    async def _send_cancellation(self, trigger: BookingCancelled) -> str:
        refund = trigger.refund
        if refund is not None and refund.eligible:
            summary = f"A refund of £{refund.amount} has been issued (reference {refund.reference})."
        elif refund is not None:
            summary = f"No refund is due. {refund.reason}."
        else:
            summary = ""
        return await self._send(
            trigger.context,
            "booking_cancellation",
            EmailPriority.HIGH,
            refund_summary=summary,
            refund_eligible=refund.eligible if refund else False,
            refund_amount=str(refund.amount) if refund else "0",
            cancellation_reason=trigger.metadata.reason or "",
        )

    async def _schedule_reminders(self, context: BookingEmailContext, now: datetime) -> List[str]:
        if not context.customer.email_notifications:
            logger.info("Reminders skipped, notifications off", booking_id=str(context.booking.id))
            return []

        event_at = event_start(context.booking.booking_date, context.booking.time_slot)
        job_ids = []
        for offset in self.reminder_offsets:
            fire_at = event_at - timedelta(hours=offset)
            if fire_at <= now:
                continue
            priority = trigger_priority(offset)
            job = EmailJob(
                kind=JobKind.REMINDER_TRIGGER,
                booking_id=context.booking.id,
                recipient=context.customer.email,
                template="reminder_trigger",
                template_data={"booking_id": str(context.booking.id), "offset_hours": offset},
                priority=priority,
                schedule_at=fire_at,
            )
            job_ids.append(await self.queue.enqueue(job, priority, delay=fire_at - now))

        logger.info(
            "Reminders scheduled",
            booking_id=str(context.booking.id),
            count=len(job_ids),
        )
        return job_ids

    async def _cancel_reminders(self, context: BookingEmailContext) -> int:
        pending = await self.queue.pending_jobs(context.booking.id, JobKind.REMINDER_TRIGGER)
        cancelled = 0
        for job in pending:
            if await self.queue.cancel(job.id):
                cancelled += 1
        logger.info("Reminders cancelled", booking_id=str(context.booking.id), count=cancelled)
        return cancelled

    async def _send_reminder(self, context: BookingEmailContext, now: datetime) -> Optional[str]:
        if not context.customer.email_notifications:
            return None
        event_at = event_start(context.booking.booking_date, context.booking.time_slot)
        hours_left = hours_between(now, event_at)
        if hours_left <= 0:
            logger.info("Reminder skipped, event has started", booking_id=str(context.booking.id))
            return None

        template = reminder_template(hours_left)
        return await self._send(context, template, reminder_priority(template))
