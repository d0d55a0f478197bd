"""Outbound job queue: the client protocol and its Celery implementation"""

from datetime import timedelta
from typing import Callable, List, Optional, Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from venue_booking.clock import venue_now
from venue_booking.config import settings
from venue_booking.errors import ExternalServiceError
from venue_booking.models.email import EmailQueueJob, JobStatus, PENDING_JOB_STATUSES
from venue_booking.notifications.priority import EmailPriority, JobKind, broker_priority, queue_weight
from venue_booking.schemas.notifications import EmailJob

logger = structlog.get_logger()


class QueueClient(Protocol):
    async def enqueue(self, job: EmailJob, priority: EmailPriority, delay: Optional[timedelta] = None) -> str:
        ...

    async def cancel(self, job_id: str) -> bool:
        ...

    async def pending_jobs(self, booking_id: UUID, kind: Optional[JobKind] = None) -> List[EmailJob]:
        ...


class CeleryQueueClient:
    """
    Persists each job as an ``EmailQueueJob`` row, then hands its id to the
    ``process_email_job`` Celery task. The row id is reused as the task id so
    a job can be revoked by id.
    """

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self.session_factory = session_factory

    async def enqueue(self, job: EmailJob, priority: EmailPriority, delay: Optional[timedelta] = None) -> str:
        from venue_booking.jobs.tasks import process_email_job

        job.priority = EmailPriority(priority)
        countdown = max(delay.total_seconds(), 0) if delay else None
        if delay and job.schedule_at is None:
            job.schedule_at = venue_now() + delay

        async with self.session_factory() as db:
            row = EmailQueueJob(
                id=job.id,
                booking_id=job.booking_id,
                kind=job.kind.value,
                recipient=job.recipient,
                subject=job.subject,
                template=job.template,
                template_data=job.template_data,
                priority=job.priority.value,
                queue_weight=queue_weight(job.priority),
                schedule_at=job.schedule_at,
                tracking_enabled=job.tracking_enabled,
                customer_consent=job.customer_consent.model_dump(),
                max_retries=job.max_retries or settings.email_max_retries,
                status=JobStatus.SCHEDULED.value if countdown else JobStatus.QUEUED.value,
            )
            db.add(row)
            await db.commit()

            try:
                process_email_job.apply_async(
                    args=[job.id],
                    task_id=job.id,
                    priority=broker_priority(job.priority),
                    countdown=countdown,
                )
            except Exception as e:
                row.status = JobStatus.FAILED.value
                row.last_error = str(e)
                await db.commit()
                logger.error("Enqueue failed", job_id=job.id, error=str(e))
                raise ExternalServiceError("queue", str(e)) from e

        logger.info(
            "Job enqueued",
            job_id=job.id,
            kind=job.kind.value,
            template=job.template,
            priority=job.priority.value,
            countdown=countdown,
        )
        return job.id

    async def cancel(self, job_id: str) -> bool:
        """Mark a pending job cancelled and revoke its task. A worker already running it may still finish."""
        from venue_booking.jobs.celery_app import celery_app

        async with self.session_factory() as db:
            row = await db.get(EmailQueueJob, job_id)
            if row is None or row.status not in PENDING_JOB_STATUSES:
                return False
            row.status = JobStatus.CANCELLED.value
            await db.commit()

        try:
            celery_app.control.revoke(job_id)
        except Exception as e:
            logger.warning("Revoke failed", job_id=job_id, error=str(e))

        logger.info("Job cancelled", job_id=job_id)
        return True

    async def pending_jobs(self, booking_id: UUID, kind: Optional[JobKind] = None) -> List[EmailJob]:
        async with self.session_factory() as db:
            query = select(EmailQueueJob).where(
                EmailQueueJob.booking_id == booking_id,
                EmailQueueJob.status.in_(PENDING_JOB_STATUSES),
            )
            if kind is not None:
                query = query.where(EmailQueueJob.kind == JobKind(kind).value)
            result = await db.execute(query.order_by(EmailQueueJob.queued_at))
            return [EmailJob.model_validate(row) for row in result.scalars().all()]
