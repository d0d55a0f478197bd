"""Booking holds: create, read with lazy expiry, convert, release, sweep"""

import secrets
from datetime import date, datetime, timedelta
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select, delete, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from venue_booking.clock import venue_now
from venue_booking.config import settings
from venue_booking.errors import (
    BookingLimitError,
    CapacityError,
    ConflictError,
    HoldExpiredError,
    NotFoundError,
)
from venue_booking.models.booking import Booking, BookingStatus
from venue_booking.models.hold import BookingHold, HoldStatus, TableSlotClaim
from venue_booking.models.venue import VenueTable, TableCombination
from venue_booking.models.waitlist import WaitlistEntry, WaitlistOffer, WaitlistStatus
from venue_booking.schemas.hold import HoldConvert

logger = structlog.get_logger()

ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)


def booking_reference(year: int) -> str:
    """BRL-2025-00042 style reference"""
    return f"BRL-{year}-{secrets.randbelow(100000):05d}"


async def _load_tables(db: AsyncSession, table_numbers: Sequence[int]) -> List[VenueTable]:
    result = await db.execute(
        select(VenueTable).where(
            VenueTable.table_number.in_(table_numbers),
            VenueTable.is_active == True,
        )
    )
    tables = result.scalars().all()
    missing = sorted(set(table_numbers) - {t.table_number for t in tables})
    if missing:
        raise NotFoundError("Table", ", ".join(str(n) for n in missing))
    return list(tables)


async def clear_expired_claims(
    db: AsyncSession,
    table_numbers: Sequence[int],
    booking_date: date,
    time_slot: str,
    now: datetime,
) -> None:
    """Drop claims of overdue holds on these keys and mark those holds expired"""
    result = await db.execute(
        select(TableSlotClaim.hold_id).where(
            TableSlotClaim.table_number.in_(table_numbers),
            TableSlotClaim.booking_date == booking_date,
            TableSlotClaim.time_slot == time_slot,
            TableSlotClaim.expires_at.is_not(None),
            TableSlotClaim.expires_at <= now,
        )
    )
    hold_ids = {hold_id for hold_id in result.scalars().all() if hold_id is not None}

    await db.execute(
        delete(TableSlotClaim).where(
            TableSlotClaim.table_number.in_(table_numbers),
            TableSlotClaim.booking_date == booking_date,
            TableSlotClaim.time_slot == time_slot,
            TableSlotClaim.expires_at.is_not(None),
            TableSlotClaim.expires_at <= now,
        )
    )
    if hold_ids:
        await db.execute(
            update(BookingHold)
            .where(BookingHold.id.in_(hold_ids), BookingHold.status == HoldStatus.ACTIVE.value)
            .values(status=HoldStatus.EXPIRED.value)
        )


async def release_claims(db: AsyncSession, *, hold_id: Optional[UUID] = None, booking_id: Optional[UUID] = None) -> None:
    if hold_id is not None:
        await db.execute(delete(TableSlotClaim).where(TableSlotClaim.hold_id == hold_id))
    if booking_id is not None:
        await db.execute(delete(TableSlotClaim).where(TableSlotClaim.booking_id == booking_id))


async def create_hold(
    db: AsyncSession,
    table_numbers: Sequence[int],
    booking_date: date,
    time_slot: str,
    party_size: int,
    session_id: str,
    now: Optional[datetime] = None,
) -> BookingHold:
    """
    Reserve tables for a session for the hold window.

    Raises ConflictError when any table is already held or booked for the
    slot. Exactly one of several concurrent requests for the same key wins.
    """
    now = now or venue_now()
    numbers = sorted(set(table_numbers))

    tables = await _load_tables(db, numbers)
    capacity = sum(t.capacity_max for t in tables)
    if capacity < party_size:
        raise CapacityError(
            f"Tables {numbers} seat at most {capacity}, party is {party_size}",
            reason="insufficient_capacity",
        )

    await clear_expired_claims(db, numbers, booking_date, time_slot, now)

    hold = BookingHold(
        session_id=session_id,
        table_numbers=numbers,
        booking_date=booking_date,
        time_slot=time_slot,
        party_size=party_size,
        status=HoldStatus.ACTIVE.value,
        expires_at=now + timedelta(minutes=settings.hold_duration_minutes),
    )
    db.add(hold)
    await db.flush()

    for number in numbers:
        db.add(
            TableSlotClaim(
                table_number=number,
                booking_date=booking_date,
                time_slot=time_slot,
                hold_id=hold.id,
                expires_at=hold.expires_at,
            )
        )

    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        logger.info(
            "Hold conflict",
            tables=numbers,
            booking_date=str(booking_date),
            time_slot=time_slot,
            session_id=session_id,
        )
        raise ConflictError(
            f"Tables {numbers} are not available for {booking_date} {time_slot}",
            tables=numbers,
        ) from exc

    logger.info(
        "Hold created",
        hold_id=str(hold.id),
        tables=numbers,
        booking_date=str(booking_date),
        time_slot=time_slot,
        expires_at=hold.expires_at.isoformat(),
    )
    return hold


async def _expire(db: AsyncSession, hold: BookingHold) -> None:
    hold.status = HoldStatus.EXPIRED.value
    await release_claims(db, hold_id=hold.id)
    logger.info("Hold expired", hold_id=str(hold.id))


async def get_hold(db: AsyncSession, hold_id: UUID, now: Optional[datetime] = None) -> BookingHold:
    """Fetch a hold, expiring it first if its window has passed"""
    now = now or venue_now()
    hold = await db.get(BookingHold, hold_id)
    if hold is None:
        raise NotFoundError("Hold", hold_id)

    if hold.status == HoldStatus.ACTIVE.value and hold.expires_at <= now:
        await _expire(db, hold)
        await db.commit()
    return hold


async def _matching_combination(db: AsyncSession, table_numbers: Sequence[int]) -> Optional[TableCombination]:
    if len(table_numbers) < 2:
        return None
    result = await db.execute(select(TableCombination).where(TableCombination.is_active == True))
    for combo in result.scalars().all():
        if sorted(combo.table_numbers) == sorted(table_numbers):
            return combo
    return None


async def _convert_waitlist_entry(db: AsyncSession, hold: BookingHold, booking: Booking) -> None:
    """A hold placed from an accepted waitlist offer takes its entry off the waitlist"""
    result = await db.execute(select(WaitlistOffer).where(WaitlistOffer.hold_id == hold.id))
    offer = result.scalars().first()
    if offer is None:
        return
    entry = await db.get(WaitlistEntry, offer.waitlist_id)
    entry.status = WaitlistStatus.CONVERTED.value
    entry.converted_booking_id = booking.id


async def convert_hold(
    db: AsyncSession,
    hold_id: UUID,
    details: HoldConvert,
    now: Optional[datetime] = None,
) -> Booking:
    """
    Turn an active hold into a confirmed booking.

    Re-validates that the hold still owns every claim, so a booking created
    for the same tables during the hold window makes this fail.
    """
    now = now or venue_now()
    hold = await get_hold(db, hold_id, now)

    if hold.session_id != details.session_id:
        raise ConflictError("Hold belongs to another session", hold_id=str(hold_id))
    if hold.status == HoldStatus.EXPIRED.value:
        raise HoldExpiredError("Hold has expired, check availability again", hold_id=str(hold_id))
    if hold.status != HoldStatus.ACTIVE.value:
        raise ConflictError(f"Hold is {hold.status}", hold_id=str(hold_id))

    result = await db.execute(select(TableSlotClaim).where(TableSlotClaim.hold_id == hold.id))
    claims = result.scalars().all()
    if len(claims) != len(hold.table_numbers):
        raise ConflictError("Tables were taken while the hold was open", hold_id=str(hold_id))

    existing = await db.execute(
        select(func.count(Booking.id)).where(
            Booking.customer_email == details.customer_email,
            Booking.booking_date == hold.booking_date,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        )
    )
    if existing.scalar() >= settings.max_bookings_per_customer_per_day:
        raise BookingLimitError(
            f"Maximum {settings.max_bookings_per_customer_per_day} bookings per customer per night",
            customer_email=details.customer_email,
        )

    combination = await _matching_combination(db, hold.table_numbers)

    booking = Booking(
        reference=booking_reference(hold.booking_date.year),
        customer_name=details.customer_name,
        customer_email=details.customer_email,
        customer_phone=details.customer_phone,
        booking_date=hold.booking_date,
        time_slot=hold.time_slot,
        party_size=hold.party_size,
        table_numbers=list(hold.table_numbers),
        is_combined=combination is not None,
        combination_id=combination.id if combination else None,
        status=BookingStatus.CONFIRMED.value,
        deposit_amount=details.deposit_amount,
        total_amount=details.total_amount,
        special_requests=details.special_requests,
        email_notifications=details.email_notifications,
        marketing_consent=details.marketing_consent,
    )
    db.add(booking)
    await db.flush()

    for claim in claims:
        claim.hold_id = None
        claim.booking_id = booking.id
        claim.expires_at = None

    hold.status = HoldStatus.CONVERTED.value
    hold.converted_booking_id = booking.id
    await _convert_waitlist_entry(db, hold, booking)

    try:
        await db.commit()
    except (IntegrityError, StaleDataError) as exc:
        await db.rollback()
        raise ConflictError("Booking collided with another request, try again", hold_id=str(hold_id)) from exc

    logger.info(
        "Hold converted",
        hold_id=str(hold.id),
        booking_id=str(booking.id),
        reference=booking.reference,
    )
    return booking


async def release_hold(db: AsyncSession, hold_id: UUID, session_id: str) -> BookingHold:
    hold = await db.get(BookingHold, hold_id)
    if hold is None:
        raise NotFoundError("Hold", hold_id)
    if hold.session_id != session_id:
        raise ConflictError("Hold belongs to another session", hold_id=str(hold_id))

    if hold.status == HoldStatus.ACTIVE.value:
        hold.status = HoldStatus.RELEASED.value
        await release_claims(db, hold_id=hold.id)
        await db.commit()
        logger.info("Hold released", hold_id=str(hold.id))
    return hold


async def sweep_expired_holds(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """Expire every overdue active hold. Returns how many were expired."""
    now = now or venue_now()
    result = await db.execute(
        select(BookingHold).where(
            BookingHold.status == HoldStatus.ACTIVE.value,
            BookingHold.expires_at <= now,
        )
    )
    holds = result.scalars().all()
    for hold in holds:
        await _expire(db, hold)
    await db.commit()

    if holds:
        logger.info("Expired holds swept", count=len(holds))
    return len(holds)
