"""Waitlist enrollment, candidate matching and table offers"""

from datetime import date, datetime, timedelta
from typing import List, Optional, Sequence, Set, Tuple
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from venue_booking.clock import event_start, venue_now
from venue_booking.config import settings
from venue_booking.errors import (
    BookingError,
    BookingLimitError,
    CapacityError,
    ConflictError,
    HoldExpiredError,
    NotFoundError,
)
from venue_booking.models.hold import BookingHold, HoldStatus
from venue_booking.models.venue import VenueTable, TableCombination
from venue_booking.models.waitlist import WaitlistEntry, WaitlistOffer, WaitlistStatus, OfferResponse
from venue_booking.notifications.priority import EmailPriority, JobKind
from venue_booking.schemas.notifications import EmailJob
from venue_booking.schemas.waitlist import WaitlistEnroll
from venue_booking.services.holds import create_hold, get_hold
from venue_booking.services.tables import select_tables

logger = structlog.get_logger()

PRIORITY_SCORE_MIN = 0
PRIORITY_SCORE_MAX = 1000

OPEN_STATUSES = (WaitlistStatus.ACTIVE.value, WaitlistStatus.NOTIFIED.value)


def calculate_priority_score(request: WaitlistEnroll) -> int:
    """Score an enrollment. Flexible requests are easier to seat and rank higher."""
    score = PRIORITY_SCORE_MIN

    score += len(request.alternative_times) * 25
    if request.flexible_party_size:
        score += 50
    if request.accepts_any_table:
        score += 30
    if request.accepts_combination:
        score += 40
    if not request.floor_preference:
        score += 20

    if not request.table_preferences:
        score += 25
    else:
        score -= min(len(request.table_preferences) * 5, 20)

    if request.special_occasion:
        score += 15

    if request.notification_lead_time >= 240:
        score += 30
    elif request.notification_lead_time >= 120:
        score += 15

    if len(request.notification_methods) > 1:
        score += 20

    if request.party_size >= 8:
        score -= 10
    elif request.party_size <= 3:
        score += 10

    return min(PRIORITY_SCORE_MAX, max(PRIORITY_SCORE_MIN, score))


async def enroll(db: AsyncSession, request: WaitlistEnroll, now: Optional[datetime] = None) -> WaitlistEntry:
    """Add a customer to the waitlist for a date and preferred slot"""
    now = now or venue_now()

    event_at = event_start(request.booking_date, request.preferred_time)
    if event_at <= now:
        raise BookingError("Cannot join the waitlist for a past slot")

    result = await db.execute(
        select(WaitlistEntry).where(
            WaitlistEntry.customer_email == request.customer_email,
            WaitlistEntry.status.in_(OPEN_STATUSES),
            WaitlistEntry.expires_at > now,
        )
    )
    open_entries = result.scalars().all()

    if any(entry.booking_date == request.booking_date for entry in open_entries):
        raise ConflictError(
            "Customer is already on the waitlist for this date",
            customer_email=request.customer_email,
        )
    if len(open_entries) >= settings.waitlist_max_entries_per_customer:
        raise BookingLimitError(
            f"Maximum {settings.waitlist_max_entries_per_customer} active waitlist entries per customer",
            customer_email=request.customer_email,
        )

    queued = await db.execute(
        select(func.count(WaitlistEntry.id)).where(
            WaitlistEntry.booking_date == request.booking_date,
            WaitlistEntry.preferred_time == request.preferred_time,
            WaitlistEntry.status.in_(OPEN_STATUSES),
        )
    )

    entry = WaitlistEntry(
        customer_name=request.customer_name,
        customer_email=request.customer_email,
        customer_phone=request.customer_phone,
        booking_date=request.booking_date,
        preferred_time=request.preferred_time,
        alternative_times=list(request.alternative_times),
        party_size=request.party_size,
        flexible_party_size=request.flexible_party_size,
        min_party_size=request.min_party_size,
        max_party_size=request.max_party_size,
        table_preferences=list(request.table_preferences),
        floor_preference=request.floor_preference,
        accepts_any_table=request.accepts_any_table,
        accepts_combination=request.accepts_combination,
        status=WaitlistStatus.ACTIVE.value,
        priority_score=calculate_priority_score(request),
        position=queued.scalar() + 1,
        notification_methods=list(request.notification_methods),
        notification_lead_time=request.notification_lead_time,
        max_notifications=request.max_notifications or settings.waitlist_max_notifications,
        special_occasion=request.special_occasion,
        notes=request.notes,
        expires_at=min(now + timedelta(hours=settings.waitlist_default_expiry_hours), event_at),
    )
    db.add(entry)
    await db.commit()

    logger.info(
        "Waitlist entry created",
        waitlist_id=str(entry.id),
        booking_date=str(entry.booking_date),
        preferred_time=entry.preferred_time,
        priority_score=entry.priority_score,
        position=entry.position,
    )
    return entry


def _party_sizes(entry: WaitlistEntry) -> List[int]:
    """Sizes the entry would sit down as, largest first"""
    if entry.flexible_party_size and entry.min_party_size and entry.min_party_size < entry.party_size:
        return list(range(entry.party_size, entry.min_party_size - 1, -1))
    return [entry.party_size]


def offer_tables(
    entry: WaitlistEntry,
    freed: Sequence[VenueTable],
    combinations: Sequence[TableCombination] = (),
) -> Optional[Tuple[List[int], int]]:
    """
    Tables from ``freed`` that would seat this entry, with the party size they
    seat, or None.

    Uses the same policy as a direct booking: a single table first, then a
    defined combination once the party reaches its threshold. Only freed
    tables are candidates. A flexible party tries its full size before
    shrinking towards its minimum.
    """
    preferred = set(entry.table_preferences or [])
    allowed = [
        table for table in freed
        if not (entry.floor_preference and table.floor != entry.floor_preference)
        and not (preferred and not entry.accepts_any_table and table.table_number not in preferred)
    ]
    if not allowed:
        return None
    combos = combinations if entry.accepts_combination else ()

    for size in _party_sizes(entry):
        try:
            match = select_tables(size, allowed, combos)
        except CapacityError:
            continue
        return match.tables, size
    return None


def _wants_slot(entry: WaitlistEntry, time_slot: str) -> bool:
    return entry.preferred_time == time_slot or time_slot in (entry.alternative_times or [])


async def _freed_layout(
    db: AsyncSession, table_numbers: Sequence[int]
) -> Tuple[List[VenueTable], List[TableCombination]]:
    result = await db.execute(
        select(VenueTable).where(
            VenueTable.table_number.in_(table_numbers),
            VenueTable.is_active == True,
        )
    )
    combinations = await db.execute(select(TableCombination).where(TableCombination.is_active == True))
    return list(result.scalars().all()), list(combinations.scalars().all())


async def find_waitlist_matches(
    db: AsyncSession,
    freed_tables: Sequence[int],
    booking_date: date,
    time_slot: str,
    now: Optional[datetime] = None,
) -> List[WaitlistEntry]:
    """Entries that could take the freed tables, best candidate first"""
    now = now or venue_now()
    freed, combinations = await _freed_layout(db, freed_tables)
    if not freed:
        return []

    result = await db.execute(
        select(WaitlistEntry)
        .where(
            WaitlistEntry.booking_date == booking_date,
            WaitlistEntry.status == WaitlistStatus.ACTIVE.value,
            WaitlistEntry.expires_at > now,
            WaitlistEntry.notifications_sent < WaitlistEntry.max_notifications,
        )
        .order_by(
            WaitlistEntry.priority_score.desc(),
            WaitlistEntry.position.asc(),
            WaitlistEntry.created_at.asc(),
        )
    )
    return [
        entry for entry in result.scalars().all()
        if _wants_slot(entry, time_slot) and offer_tables(entry, freed, combinations) is not None
    ]


def _offer_jobs(entry: WaitlistEntry, offer: WaitlistOffer) -> List[EmailJob]:
    data = {
        "customer_name": entry.customer_name,
        "booking_date": offer.booking_date.isoformat(),
        "time_slot": offer.time_slot,
        "table_numbers": list(offer.table_numbers),
        "party_size": offer.party_size,
        "offer_id": str(offer.id),
        "offer_expires_at": offer.offer_expires_at.isoformat(),
    }
    jobs = []
    if "email" in entry.notification_methods:
        jobs.append(
            EmailJob(
                kind=JobKind.SEND_EMAIL,
                recipient=entry.customer_email,
                template="waitlist_offer",
                template_data=data,
                priority=EmailPriority.HIGH,
            )
        )
    if "sms" in entry.notification_methods and entry.customer_phone:
        jobs.append(
            EmailJob(
                kind=JobKind.SEND_SMS,
                recipient=entry.customer_phone,
                template="waitlist_offer",
                template_data=data,
                priority=EmailPriority.HIGH,
            )
        )
    return jobs


async def _offered_these_tables(
    db: AsyncSession,
    freed_tables: Sequence[int],
    booking_date: date,
    time_slot: str,
) -> Set[UUID]:
    """Entries already offered any of these tables for the slot"""
    result = await db.execute(
        select(WaitlistOffer).where(
            WaitlistOffer.booking_date == booking_date,
            WaitlistOffer.time_slot == time_slot,
        )
    )
    freed = set(freed_tables)
    return {offer.waitlist_id for offer in result.scalars().all() if freed & set(offer.table_numbers)}


async def offer_next(
    db: AsyncSession,
    queue,
    freed_tables: Sequence[int],
    booking_date: date,
    time_slot: str,
    now: Optional[datetime] = None,
) -> Optional[WaitlistOffer]:
    """
    Offer freed tables to the best candidate.

    An entry that already turned down (or let lapse) an offer of any of these
    tables for the slot is passed over. It stays eligible for other tables
    until its notification cap is used.
    """
    now = now or venue_now()
    candidates = await find_waitlist_matches(db, freed_tables, booking_date, time_slot, now)
    if not candidates:
        return None

    skip = await _offered_these_tables(db, freed_tables, booking_date, time_slot)
    candidates = [entry for entry in candidates if entry.id not in skip]
    if not candidates:
        return None

    entry = candidates[0]
    freed, combinations = await _freed_layout(db, freed_tables)
    table_numbers, seated = offer_tables(entry, freed, combinations)
    offer = WaitlistOffer(
        waitlist_id=entry.id,
        table_numbers=table_numbers,
        party_size=seated,
        booking_date=booking_date,
        time_slot=time_slot,
        sent_at=now,
        offer_expires_at=now + timedelta(minutes=settings.waitlist_offer_minutes),
    )
    db.add(offer)

    entry.status = WaitlistStatus.NOTIFIED.value
    entry.notifications_sent += 1
    entry.last_notified_at = now
    await db.commit()

    for job in _offer_jobs(entry, offer):
        await queue.enqueue(job, EmailPriority.HIGH)

    logger.info(
        "Waitlist offer sent",
        waitlist_id=str(entry.id),
        offer_id=str(offer.id),
        tables=offer.table_numbers,
        party_size=seated,
        booking_date=str(booking_date),
        time_slot=time_slot,
    )
    return offer


async def _get_offer(db: AsyncSession, offer_id: UUID) -> Tuple[WaitlistOffer, WaitlistEntry]:
    offer = await db.get(WaitlistOffer, offer_id)
    if offer is None:
        raise NotFoundError("Offer", offer_id)
    entry = await db.get(WaitlistEntry, offer.waitlist_id)
    return offer, entry


def _return_to_queue(entry: WaitlistEntry, now: datetime) -> None:
    entry.declined_offers += 1
    if entry.notifications_sent >= entry.max_notifications or entry.expires_at <= now:
        entry.status = WaitlistStatus.EXPIRED.value
    else:
        entry.status = WaitlistStatus.ACTIVE.value


async def _close_offer(
    db: AsyncSession,
    queue,
    offer: WaitlistOffer,
    entry: WaitlistEntry,
    response: OfferResponse,
    now: datetime,
) -> Optional[WaitlistOffer]:
    """Record a decline or timeout and pass the tables to the next candidate"""
    offer.response = response.value
    offer.responded_at = now
    _return_to_queue(entry, now)
    await db.commit()

    logger.info(
        "Waitlist offer closed",
        offer_id=str(offer.id),
        waitlist_id=str(entry.id),
        response=response.value,
        entry_status=entry.status,
    )
    return await offer_next(db, queue, offer.table_numbers, offer.booking_date, offer.time_slot, now)


async def accept_offer(
    db: AsyncSession,
    queue,
    offer_id: UUID,
    session_id: str,
    now: Optional[datetime] = None,
) -> Tuple[WaitlistOffer, BookingHold]:
    """
    Accept an offer by placing a hold on its tables for the offered party size.

    After the deadline the offer is timed out, the next candidate is offered
    and HoldExpiredError is raised. The entry stays notified until the hold
    is converted; a hold that lapses returns it to the queue.
    """
    now = now or venue_now()
    offer, entry = await _get_offer(db, offer_id)
    if offer.response is not None:
        raise ConflictError(f"Offer already {offer.response}", offer_id=str(offer_id))

    if now >= offer.offer_expires_at:
        await _close_offer(db, queue, offer, entry, OfferResponse.TIMEOUT, now)
        raise HoldExpiredError("Offer has expired", offer_id=str(offer_id))

    hold = await create_hold(
        db,
        offer.table_numbers,
        offer.booking_date,
        offer.time_slot,
        offer.party_size,
        session_id,
        now,
    )

    offer.response = OfferResponse.ACCEPTED.value
    offer.responded_at = now
    offer.hold_id = hold.id
    await db.commit()

    logger.info(
        "Waitlist offer accepted",
        offer_id=str(offer.id),
        waitlist_id=str(entry.id),
        hold_id=str(hold.id),
    )
    return offer, hold


async def decline_offer(
    db: AsyncSession,
    queue,
    offer_id: UUID,
    now: Optional[datetime] = None,
) -> WaitlistOffer:
    now = now or venue_now()
    offer, entry = await _get_offer(db, offer_id)
    if offer.response is not None:
        raise ConflictError(f"Offer already {offer.response}", offer_id=str(offer_id))

    await _close_offer(db, queue, offer, entry, OfferResponse.DECLINED, now)
    return offer


async def _release_lapsed_acceptances(db: AsyncSession, queue, now: datetime) -> int:
    """Return entries whose accepted hold ran out unconverted to the queue"""
    result = await db.execute(
        select(WaitlistOffer, WaitlistEntry)
        .join(WaitlistEntry, WaitlistEntry.id == WaitlistOffer.waitlist_id)
        .where(
            WaitlistOffer.response == OfferResponse.ACCEPTED.value,
            WaitlistEntry.status == WaitlistStatus.NOTIFIED.value,
        )
    )
    lapsed = 0
    for offer, entry in result.all():
        hold = await get_hold(db, offer.hold_id, now)
        if hold.status not in (HoldStatus.EXPIRED.value, HoldStatus.RELEASED.value):
            continue
        _return_to_queue(entry, now)
        await db.commit()
        lapsed += 1
        logger.info(
            "Waitlist hold lapsed",
            offer_id=str(offer.id),
            waitlist_id=str(entry.id),
            hold_id=str(hold.id),
            entry_status=entry.status,
        )
        await offer_next(db, queue, offer.table_numbers, offer.booking_date, offer.time_slot, now)
    return lapsed


async def expire_stale_offers(db: AsyncSession, queue, now: Optional[datetime] = None) -> int:
    """
    Time out unanswered offers past their deadline, requeue entries whose
    accepted hold lapsed, and expire overdue entries. Returns how many offers
    timed out.
    """
    now = now or venue_now()
    result = await db.execute(
        select(WaitlistOffer).where(
            WaitlistOffer.response.is_(None),
            WaitlistOffer.offer_expires_at <= now,
        )
    )
    offers = result.scalars().all()
    for offer in offers:
        entry = await db.get(WaitlistEntry, offer.waitlist_id)
        await _close_offer(db, queue, offer, entry, OfferResponse.TIMEOUT, now)

    await _release_lapsed_acceptances(db, queue, now)

    overdue = await db.execute(
        select(WaitlistEntry).where(
            WaitlistEntry.status == WaitlistStatus.ACTIVE.value,
            WaitlistEntry.expires_at <= now,
        )
    )
    for entry in overdue.scalars().all():
        entry.status = WaitlistStatus.EXPIRED.value
    await db.commit()

    if offers:
        logger.info("Waitlist offers timed out", count=len(offers))
    return len(offers)
