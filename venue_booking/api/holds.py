"""Booking hold API endpoints"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from venue_booking.database import get_db
from venue_booking.api.deps import get_workflow
from venue_booking.notifications.workflow import BookingEmailWorkflow
from venue_booking.schemas.booking import BookingResponse
from venue_booking.schemas.hold import HoldCreate, HoldResponse, HoldConvert
from venue_booking.schemas.notifications import BookingCreated, TriggerMetadata
from venue_booking.services import bookings, holds

router = APIRouter()


@router.post("", response_model=HoldResponse, status_code=201)
async def create_hold(
    hold_data: HoldCreate,
    db: AsyncSession = Depends(get_db),
):
    """Hold tables for a slot while the customer completes checkout"""
    return await holds.create_hold(
        db,
        hold_data.table_numbers,
        hold_data.booking_date,
        hold_data.time_slot,
        hold_data.party_size,
        hold_data.session_id,
    )


@router.get("/{hold_id}", response_model=HoldResponse)
async def get_hold(
    hold_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """Get a hold. Holds past their window come back expired."""
    return await holds.get_hold(db, hold_id)


@router.delete("/{hold_id}", response_model=HoldResponse)
async def release_hold(
    hold_id: UUID,
    session_id: str = Query(...),
    db: AsyncSession = Depends(get_db),
):
    """Release a hold before it expires"""
    return await holds.release_hold(db, hold_id, session_id)


@router.post("/{hold_id}/convert", response_model=BookingResponse, status_code=201)
async def convert_hold(
    hold_id: UUID,
    details: HoldConvert,
    db: AsyncSession = Depends(get_db),
    workflow: BookingEmailWorkflow = Depends(get_workflow),
):
    """Turn a hold into a confirmed booking and start the email workflow"""
    booking = await holds.convert_hold(db, hold_id, details)

    context = await bookings.booking_email_context(db, booking)
    await workflow.process_workflow_trigger(
        BookingCreated(context=context, metadata=TriggerMetadata(triggered_by="customer"))
    )
    return booking
