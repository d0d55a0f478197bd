"""Booking management API endpoints"""

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from venue_booking.database import get_db
from venue_booking.api.deps import get_queue_client, get_workflow
from venue_booking.notifications.workflow import BookingEmailWorkflow
from venue_booking.schemas.booking import (
    BookingResponse,
    BookingListResponse,
    BookingStatusUpdate,
    BookingUpdate,
    BookingCancel,
    CancellationResponse,
)
from venue_booking.schemas.notifications import (
    BookingCancelled,
    BookingConfirmed,
    BookingModified,
    TriggerMetadata,
)
from venue_booking.services import bookings, waitlist

router = APIRouter()


@router.get("", response_model=BookingListResponse)
async def list_bookings(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    booking_date: Optional[date] = None,
    status: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    """List bookings with pagination"""
    items, total = await bookings.list_bookings(db, booking_date, status, page, page_size)
    return BookingListResponse(
        items=[BookingResponse.model_validate(item) for item in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """Get a specific booking"""
    return await bookings.get_booking(db, booking_id)


@router.patch("/{booking_id}/status", response_model=BookingResponse)
async def update_status(
    booking_id: UUID,
    update: BookingStatusUpdate,
    db: AsyncSession = Depends(get_db),
    workflow: BookingEmailWorkflow = Depends(get_workflow),
):
    """Move a booking through its lifecycle (confirm, arrive, no-show)"""
    booking = await bookings.transition_status(db, booking_id, update.expected_version, update.status)

    if update.status == "confirmed":
        context = await bookings.booking_email_context(db, booking)
        await workflow.process_workflow_trigger(
            BookingConfirmed(context=context, metadata=TriggerMetadata(triggered_by="admin"))
        )
    return booking


@router.put("/{booking_id}", response_model=BookingResponse)
async def modify_booking(
    booking_id: UUID,
    changes: BookingUpdate,
    db: AsyncSession = Depends(get_db),
    workflow: BookingEmailWorkflow = Depends(get_workflow),
):
    """Change party size, requests, tables or slot"""
    booking = await bookings.modify_booking(db, booking_id, changes)

    context = await bookings.booking_email_context(db, booking)
    await workflow.process_workflow_trigger(
        BookingModified(context=context, metadata=TriggerMetadata(triggered_by="customer"))
    )
    return booking


@router.post("/{booking_id}/cancel", response_model=CancellationResponse)
async def cancel_booking(
    booking_id: UUID,
    request: BookingCancel,
    db: AsyncSession = Depends(get_db),
    queue=Depends(get_queue_client),
    workflow: BookingEmailWorkflow = Depends(get_workflow),
):
    """Cancel a booking, settle the refund and offer the tables to the waitlist"""
    booking, refund, released = await bookings.cancel_booking(
        db, booking_id, request.expected_version, request.reason
    )

    context = await bookings.booking_email_context(db, booking)
    await workflow.process_workflow_trigger(
        BookingCancelled(
            context=context,
            refund=refund,
            metadata=TriggerMetadata(triggered_by="customer", reason=request.reason),
        )
    )
    await waitlist.offer_next(db, queue, released, booking.booking_date, booking.time_slot)

    return CancellationResponse(
        booking=BookingResponse.model_validate(booking),
        refund=refund,
        released_tables=released,
    )
