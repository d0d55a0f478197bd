"""Email consent, delivery tracking and dead-letter endpoints"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from venue_booking.database import get_db
from venue_booking.models.email import DeadLetterEntry, EmailQueueJob
from venue_booking.notifications.consent import record_consent
from venue_booking.notifications.tracking import DeliveryTracker
from venue_booking.schemas.notifications import (
    ConsentRecord,
    ConsentUpdate,
    DeadLetterResponse,
    EmailJobResponse,
    TrackingEvent,
)

router = APIRouter()


@router.put("/consent", response_model=ConsentRecord)
async def update_consent(
    update: ConsentUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Record a customer's email and tracking consent"""
    ip_address = request.client.host if request.client else None
    return await record_consent(db, update, ip_address)


@router.post("/tracking/events")
async def tracking_event(
    event: TrackingEvent,
    db: AsyncSession = Depends(get_db),
):
    """Delivery provider webhook"""
    await DeliveryTracker(db).record_event(event)
    return {"status": "recorded", "event_type": event.event_type}


@router.get("/jobs", response_model=List[EmailJobResponse])
async def list_jobs(
    booking_id: Optional[UUID] = None,
    db: AsyncSession = Depends(get_db),
):
    """Outbound jobs, optionally for one booking"""
    query = select(EmailQueueJob)
    if booking_id:
        query = query.where(EmailQueueJob.booking_id == booking_id)
    result = await db.execute(query.order_by(EmailQueueJob.queued_at.desc()).limit(200))
    return result.scalars().all()


@router.get("/dead-letters", response_model=List[DeadLetterResponse])
async def list_dead_letters(db: AsyncSession = Depends(get_db)):
    """Jobs that exhausted their retries, newest first"""
    result = await db.execute(
        select(DeadLetterEntry)
        .where(DeadLetterEntry.reviewed == False)
        .order_by(DeadLetterEntry.created_at.desc())
    )
    return result.scalars().all()
