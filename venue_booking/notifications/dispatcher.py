"""Job handlers per kind and the retry / dead-letter loop around them"""

import enum
from typing import Awaitable, Callable, Dict, Optional

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from venue_booking.clock import utcnow
from venue_booking.config import settings
from venue_booking.errors import BookingError, ExternalServiceError
from venue_booking.models.booking import Booking, BookingStatus
from venue_booking.models.email import DeadLetterEntry, EmailQueueJob, JobStatus
from venue_booking.notifications.messages import compose_email, compose_sms
from venue_booking.notifications.priority import JobKind
from venue_booking.notifications.workflow import BookingEmailWorkflow
from venue_booking.schemas.notifications import EmailJob, ReminderDue

logger = structlog.get_logger()

FINISHED_STATUSES = (JobStatus.SENT.value, JobStatus.CANCELLED.value, JobStatus.DEAD_LETTERED.value)


class JobOutcome(str, enum.Enum):
    SUCCESS = "success"
    RETRYABLE = "retryable"
    FATAL = "fatal"


class JobResult(BaseModel):
    outcome: JobOutcome
    message_id: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, message_id: Optional[str] = None) -> "JobResult":
        return cls(outcome=JobOutcome.SUCCESS, message_id=message_id)

    @classmethod
    def retryable(cls, error: str) -> "JobResult":
        return cls(outcome=JobOutcome.RETRYABLE, error=error)

    @classmethod
    def fatal(cls, error: str) -> "JobResult":
        return cls(outcome=JobOutcome.FATAL, error=error)


JobHandler = Callable[[EmailJob], Awaitable[JobResult]]


class JobDispatcher:
    """Routes a job to the handler registered for its kind"""

    def __init__(self):
        self._handlers: Dict[JobKind, JobHandler] = {}

    def register(self, kind: JobKind, handler: JobHandler) -> None:
        self._handlers[JobKind(kind)] = handler

    async def dispatch(self, job: EmailJob) -> JobResult:
        handler = self._handlers.get(job.kind)
        if handler is None:
            return JobResult.fatal(f"No handler for {job.kind.value}")

        try:
            return await handler(job)
        except ExternalServiceError as e:
            return JobResult.retryable(e.detail)
        except SQLAlchemyError as e:
            logger.warning("Job handler hit a database error", job_id=job.id, kind=job.kind.value, error=str(e))
            return JobResult.retryable(f"database: {e}")
        except BookingError as e:
            return JobResult.fatal(e.detail)
        except Exception as e:
            logger.exception("Job handler crashed", job_id=job.id, kind=job.kind.value)
            return JobResult.fatal(f"{type(e).__name__}: {e}")


def build_dispatcher(
    session_factory: Callable[[], AsyncSession],
    workflow: BookingEmailWorkflow,
    email_sender,
    sms_sender,
) -> JobDispatcher:
    """Wire the send_email, send_sms and reminder_trigger handlers"""
    dispatcher = JobDispatcher()

    async def send_email(job: EmailJob) -> JobResult:
        subject, body = compose_email(job.template, job.template_data)
        message_id = await email_sender.send(
            job.recipient,
            job.subject or subject,
            body,
            tags={"template": job.template},
        )
        return JobResult.success(message_id)

    async def send_sms(job: EmailJob) -> JobResult:
        body = compose_sms(job.template, job.template_data)
        return JobResult.success(await sms_sender.send(job.recipient, body))

    async def reminder_trigger(job: EmailJob) -> JobResult:
        from venue_booking.services.bookings import booking_email_context

        async with session_factory() as db:
            booking = await db.get(Booking, job.booking_id) if job.booking_id else None
            if booking is None or booking.status not in (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value):
                logger.info("Reminder dropped, booking no longer active", job_id=job.id)
                return JobResult.success()
            context = await booking_email_context(db, booking)

        await workflow.process_workflow_trigger(ReminderDue(context=context))
        return JobResult.success()

    dispatcher.register(JobKind.SEND_EMAIL, send_email)
    dispatcher.register(JobKind.SEND_SMS, send_sms)
    dispatcher.register(JobKind.REMINDER_TRIGGER, reminder_trigger)
    return dispatcher


def retry_delay(attempts: int) -> int:
    """Exponential backoff: base, 2x base, 4x base, ..."""
    return settings.email_retry_backoff_seconds * 2 ** max(attempts - 1, 0)


async def execute_job(db: AsyncSession, dispatcher: JobDispatcher, job_id: str) -> Optional[int]:
    """
    Run one queued job.

    Safe to call more than once for the same id: finished and cancelled jobs
    are skipped. Returns the retry delay in seconds when the job should be
    retried, None otherwise.
    """
    row = await db.get(EmailQueueJob, job_id)
    if row is None:
        logger.warning("Job not found", job_id=job_id)
        return None
    if row.status in FINISHED_STATUSES:
        logger.info("Job skipped", job_id=job_id, status=row.status)
        return None

    row.status = JobStatus.PROCESSING.value
    row.attempts += 1
    await db.commit()

    job = EmailJob.model_validate(row)
    result = await dispatcher.dispatch(job)

    # Cancellation may have landed while the handler ran
    await db.refresh(row)

    if result.outcome == JobOutcome.SUCCESS:
        if row.status != JobStatus.CANCELLED.value:
            row.status = JobStatus.SENT.value
        row.sent_at = utcnow()
        row.provider_message_id = result.message_id
        await db.commit()
        logger.info("Job processed", job_id=job_id, kind=row.kind, attempts=row.attempts)
        return None

    row.last_error = result.error
    if result.outcome == JobOutcome.RETRYABLE and row.attempts < row.max_retries:
        row.status = JobStatus.FAILED.value
        await db.commit()
        delay = retry_delay(row.attempts)
        logger.warning(
            "Job failed, retrying",
            job_id=job_id,
            attempts=row.attempts,
            retry_in=delay,
            error=result.error,
        )
        return delay

    row.status = JobStatus.DEAD_LETTERED.value
    db.add(
        DeadLetterEntry(
            job_id=row.id,
            kind=row.kind,
            recipient=row.recipient,
            error=result.error,
            attempts=row.attempts,
            payload=job.model_dump(mode="json"),
        )
    )
    await db.commit()
    logger.error(
        "Job dead-lettered",
        job_id=job_id,
        kind=row.kind,
        attempts=row.attempts,
        error=result.error,
    )
    return None
