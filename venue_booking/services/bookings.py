"""Booking lifecycle: status transitions, cancellation and modification"""

from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from venue_booking.clock import event_start, venue_now
from venue_booking.config import settings
from venue_booking.errors import (
    BookingError,
    CapacityError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    VersionConflictError,
)
from venue_booking.models.booking import Booking, BookingStatus
from venue_booking.models.hold import TableSlotClaim
from venue_booking.models.venue import VenueTable
from venue_booking.schemas.booking import BookingUpdate, RefundDecision
from venue_booking.schemas.notifications import (
    BookingEmailContext,
    BookingSnapshot,
    CustomerInfo,
    VenueInfo,
)
from venue_booking.services.holds import clear_expired_claims, release_claims
from venue_booking.services.refunds import evaluate_refund

logger = structlog.get_logger()

ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.ARRIVED, BookingStatus.NO_SHOW, BookingStatus.CANCELLED},
    BookingStatus.WAITLIST: {BookingStatus.PENDING, BookingStatus.CANCELLED},
    BookingStatus.ARRIVED: set(),
    BookingStatus.NO_SHOW: set(),
    BookingStatus.CANCELLED: set(),
}

MODIFIABLE_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)


def can_transition(current: str, new: str) -> bool:
    return BookingStatus(new) in ALLOWED_TRANSITIONS[BookingStatus(current)]


async def get_booking(db: AsyncSession, booking_id: UUID) -> Booking:
    booking = await db.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError("Booking", booking_id)
    return booking


async def list_bookings(
    db: AsyncSession,
    booking_date=None,
    status: Optional[str] = None,
    page: int = 1,
    page_size: int = 50,
) -> Tuple[List[Booking], int]:
    query = select(Booking)
    if booking_date:
        query = query.where(Booking.booking_date == booking_date)
    if status:
        query = query.where(Booking.status == status)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()

    query = query.order_by(Booking.booking_date, Booking.time_slot)
    query = query.offset((page - 1) * page_size).limit(page_size)
    result = await db.execute(query)
    return list(result.scalars().all()), total


def _check_version(booking: Booking, expected_version: int) -> None:
    if booking.version != expected_version:
        raise VersionConflictError(
            f"Booking was modified (version {booking.version}, expected {expected_version})",
            booking_id=str(booking.id),
            current_version=booking.version,
        )


async def _commit_versioned(db: AsyncSession, booking: Booking) -> None:
    try:
        await db.commit()
    except StaleDataError as exc:
        await db.rollback()
        raise VersionConflictError(
            "Booking was modified by another request",
            booking_id=str(booking.id),
        ) from exc


async def transition_status(
    db: AsyncSession,
    booking_id: UUID,
    expected_version: int,
    new_status: str,
) -> Booking:
    """Move a booking to a new status if the transition is allowed and the version matches"""
    booking = await get_booking(db, booking_id)
    _check_version(booking, expected_version)

    try:
        BookingStatus(new_status)
    except ValueError:
        raise InvalidTransitionError(f"Unknown status {new_status}", booking_id=str(booking_id))

    if new_status == BookingStatus.CANCELLED.value:
        raise InvalidTransitionError(
            "Use the cancel operation to cancel a booking",
            booking_id=str(booking_id),
        )
    if not can_transition(booking.status, new_status):
        raise InvalidTransitionError(
            f"Cannot move booking from {booking.status} to {new_status}",
            booking_id=str(booking_id),
        )

    previous = booking.status
    booking.status = new_status
    await _commit_versioned(db, booking)

    logger.info(
        "Booking status changed",
        booking_id=str(booking.id),
        from_status=previous,
        to_status=new_status,
        version=booking.version,
    )
    return booking


async def cancel_booking(
    db: AsyncSession,
    booking_id: UUID,
    expected_version: int,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[Booking, RefundDecision, List[int]]:
    """
    Cancel a booking and free its tables.

    Returns the booking, the refund decision frozen onto it and the table
    numbers released, so the caller can offer them to the waitlist.
    """
    now = now or venue_now()
    booking = await get_booking(db, booking_id)
    _check_version(booking, expected_version)

    if not can_transition(booking.status, BookingStatus.CANCELLED.value):
        raise InvalidTransitionError(
            f"Cannot cancel a booking that is {booking.status}",
            booking_id=str(booking_id),
        )

    event_at = event_start(booking.booking_date, booking.time_slot)
    if event_at <= now:
        raise BookingError("Cannot cancel past bookings", booking_id=str(booking_id))

    refund = evaluate_refund(booking.deposit_amount, event_at, now, booking.id)

    booking.status = BookingStatus.CANCELLED.value
    booking.cancelled_at = now
    booking.cancellation_reason = reason
    booking.refund_eligible = refund.eligible
    booking.refund_amount = refund.amount

    released = sorted(booking.table_numbers)
    await release_claims(db, booking_id=booking.id)
    await _commit_versioned(db, booking)

    logger.info(
        "Booking cancelled",
        booking_id=str(booking.id),
        reference=booking.reference,
        refund_eligible=refund.eligible,
        refund_amount=str(refund.amount),
        released_tables=released,
    )
    return booking, refund, released


async def modify_booking(
    db: AsyncSession,
    booking_id: UUID,
    changes: BookingUpdate,
    now: Optional[datetime] = None,
) -> Booking:
    """
    Change party size, special requests or move the booking.

    Moving to another date, slot or set of tables claims the new tables in
    the same transaction that releases the old ones.
    """
    now = now or venue_now()
    booking = await get_booking(db, booking_id)
    _check_version(booking, changes.expected_version)

    if booking.status not in MODIFIABLE_STATUSES:
        raise InvalidTransitionError(
            f"Cannot modify a booking that is {booking.status}",
            booking_id=str(booking_id),
        )

    booking_date = changes.booking_date or booking.booking_date
    time_slot = changes.time_slot or booking.time_slot
    table_numbers = sorted(set(changes.table_numbers or booking.table_numbers))
    party_size = changes.party_size or booking.party_size

    if party_size > settings.max_party_size:
        raise CapacityError(
            f"Maximum party size is {settings.max_party_size}",
            reason="exceeds_capacity",
        )

    result = await db.execute(select(VenueTable).where(VenueTable.table_number.in_(table_numbers)))
    tables = result.scalars().all()
    if len(tables) != len(table_numbers):
        raise NotFoundError("Table", table_numbers)
    capacity = sum(t.capacity_max for t in tables)
    if capacity < party_size:
        raise CapacityError(
            f"Tables {table_numbers} seat at most {capacity}, party is {party_size}",
            reason="insufficient_capacity",
        )

    moved = (
        booking_date != booking.booking_date
        or time_slot != booking.time_slot
        or table_numbers != sorted(booking.table_numbers)
    )

    if moved:
        if event_start(booking_date, time_slot) <= now:
            raise BookingError("Cannot move a booking into the past", booking_id=str(booking_id))

        await release_claims(db, booking_id=booking.id)
        await clear_expired_claims(db, table_numbers, booking_date, time_slot, now)
        for number in table_numbers:
            db.add(
                TableSlotClaim(
                    table_number=number,
                    booking_date=booking_date,
                    time_slot=time_slot,
                    booking_id=booking.id,
                )
            )
        booking.booking_date = booking_date
        booking.time_slot = time_slot
        booking.table_numbers = table_numbers

    booking.party_size = party_size
    if changes.special_requests is not None:
        booking.special_requests = changes.special_requests

    try:
        await _commit_versioned(db, booking)
    except IntegrityError as exc:
        await db.rollback()
        raise ConflictError(
            f"Tables {table_numbers} are not available for {booking_date} {time_slot}",
            booking_id=str(booking_id),
        ) from exc

    logger.info(
        "Booking modified",
        booking_id=str(booking.id),
        moved=moved,
        version=booking.version,
    )
    return booking


async def booking_email_context(db: AsyncSession, booking: Booking) -> BookingEmailContext:
    """Snapshot a booking for the email workflow"""
    floor = None
    if booking.table_numbers:
        result = await db.execute(
            select(VenueTable.floor).where(VenueTable.table_number == booking.table_numbers[0])
        )
        floor = result.scalar()

    return BookingEmailContext(
        booking=BookingSnapshot(
            id=booking.id,
            reference=booking.reference,
            booking_date=booking.booking_date,
            time_slot=booking.time_slot,
            table_numbers=booking.table_numbers,
            floor=floor,
            party_size=booking.party_size,
            special_requests=booking.special_requests,
            total_amount=booking.total_amount or 0,
            deposit_paid=booking.deposit_amount or 0,
            status=booking.status,
        ),
        customer=CustomerInfo(
            name=booking.customer_name,
            email=booking.customer_email,
            phone=booking.customer_phone,
            email_notifications=booking.email_notifications is not False,
            marketing_emails=bool(booking.marketing_consent),
        ),
        venue=VenueInfo(
            name=settings.venue_name,
            address=settings.venue_address,
            phone=settings.venue_phone,
            email=settings.venue_email,
        ),
    )
