"""Delivery and engagement tracking, gated on customer consent"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from venue_booking.clock import utcnow
from venue_booking.errors import ConsentBlocked, NotFoundError
from venue_booking.models.email import DeliveryTrackingRecord, EmailQueueJob, JobStatus
from venue_booking.schemas.notifications import TrackingEvent

logger = structlog.get_logger()

TIMESTAMP_FIELDS = {
    "sent": "sent_at",
    "delivered": "delivered_at",
    "opened": "opened_at",
    "clicked": "clicked_at",
    "bounced": "bounced_at",
    "complained": "complained_at",
    "unsubscribed": "unsubscribed_at",
}


class DeliveryTracker:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _find_job(self, event: TrackingEvent) -> EmailQueueJob:
        job = None
        if event.job_id:
            job = await self.db.get(EmailQueueJob, event.job_id)
        elif event.message_id:
            result = await self.db.execute(
                select(EmailQueueJob).where(EmailQueueJob.provider_message_id == event.message_id)
            )
            job = result.scalar_one_or_none()
        if job is None:
            raise NotFoundError("Email job", event.job_id or event.message_id)
        return job

    async def record_event(self, event: TrackingEvent, now: Optional[datetime] = None) -> DeliveryTrackingRecord:
        """
        Apply a provider event.

        The job row always gets delivery status. Engagement detail is only
        stored when the job was sent with tracking enabled, otherwise
        ConsentBlocked is raised after the job row is updated.
        """
        now = event.occurred_at or now or utcnow()
        job = await self._find_job(event)

        if event.event_type == "sent" and job.status != JobStatus.SENT.value:
            job.status = JobStatus.SENT.value
            job.sent_at = now
        elif event.event_type == "bounced":
            job.last_error = f"bounced: {event.bounce_reason or 'unknown'}"
        if event.message_id and not job.provider_message_id:
            job.provider_message_id = event.message_id

        if not job.tracking_enabled:
            await self.db.commit()
            logger.info("Tracking event dropped, no consent", job_id=job.id, event_type=event.event_type)
            raise ConsentBlocked("Tracking disabled for this email", job_id=job.id)

        result = await self.db.execute(
            select(DeliveryTrackingRecord).where(DeliveryTrackingRecord.job_id == job.id)
        )
        record = result.scalar_one_or_none()
        if record is None:
            record = DeliveryTrackingRecord(
                job_id=job.id,
                message_id=event.message_id or job.provider_message_id,
                recipient=job.recipient,
            )
            self.db.add(record)

        record.status = event.event_type
        setattr(record, TIMESTAMP_FIELDS[event.event_type], now)
        if event.bounce_reason:
            record.bounce_reason = event.bounce_reason
        if event.ip_address:
            record.ip_address = event.ip_address
        if event.user_agent:
            record.user_agent = event.user_agent
        await self.db.commit()

        logger.info("Tracking event recorded", job_id=job.id, event_type=event.event_type)
        return record
