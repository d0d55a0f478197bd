"""Waitlist API endpoints"""

from datetime import date
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from venue_booking.database import get_db
from venue_booking.api.deps import get_queue_client
from venue_booking.schemas.hold import HoldResponse
from venue_booking.schemas.waitlist import (
    WaitlistEnroll,
    WaitlistEntryResponse,
    WaitlistOfferResponse,
    OfferAccept,
)
from venue_booking.services import waitlist

router = APIRouter()


@router.post("", response_model=WaitlistEntryResponse, status_code=201)
async def enroll(
    request: WaitlistEnroll,
    db: AsyncSession = Depends(get_db),
):
    """Join the waitlist for a date and slot"""
    return await waitlist.enroll(db, request)


@router.get("/matches", response_model=List[WaitlistEntryResponse])
async def find_matches(
    booking_date: date,
    time_slot: str = Query(..., pattern=r"^\d{2}:\d{2}$"),
    tables: List[int] = Query(...),
    db: AsyncSession = Depends(get_db),
):
    """Waitlist entries that could take the given tables, best first"""
    return await waitlist.find_waitlist_matches(db, tables, booking_date, time_slot)


@router.post("/offers/{offer_id}/accept", response_model=HoldResponse)
async def accept_offer(
    offer_id: UUID,
    request: OfferAccept,
    db: AsyncSession = Depends(get_db),
    queue=Depends(get_queue_client),
):
    """Accept a table offer. Returns the hold to convert at checkout."""
    offer, hold = await waitlist.accept_offer(db, queue, offer_id, request.session_id)
    return hold


@router.post("/offers/{offer_id}/decline", response_model=WaitlistOfferResponse)
async def decline_offer(
    offer_id: UUID,
    db: AsyncSession = Depends(get_db),
    queue=Depends(get_queue_client),
):
    """Decline a table offer; the next entry in line is offered the tables"""
    return await waitlist.decline_offer(db, queue, offer_id)
