"""Table and table-combination matching"""

from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence, Set

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from venue_booking.clock import venue_now
from venue_booking.config import settings
from venue_booking.errors import CapacityError
from venue_booking.models.hold import TableSlotClaim
from venue_booking.models.venue import VenueTable, TableCombination
from venue_booking.schemas.availability import TableMatch

logger = structlog.get_logger()


def select_tables(
    party_size: int,
    tables: Sequence[VenueTable],
    combinations: Sequence[TableCombination],
    occupied: Iterable[int] = (),
    threshold: Optional[int] = None,
) -> TableMatch:
    """
    Pick tables for a party.

    A free single table whose capacity bracket covers the party always wins.
    Combinations are only considered when no single table fits and the party
    reaches the combination's auto-combine threshold. Ties go to the smallest
    excess capacity, then the lowest table number.
    """
    taken = set(occupied)
    if threshold is None:
        threshold = settings.combination_threshold

    active_tables = {t.table_number: t for t in tables if t.is_active is not False}

    singles = [
        t for t in active_tables.values()
        if t.table_number not in taken and t.capacity_min <= party_size <= t.capacity_max
    ]
    if singles:
        best = min(singles, key=lambda t: (t.capacity_max - party_size, t.table_number))
        return TableMatch(
            tables=[best.table_number],
            combined=False,
            total_capacity=best.capacity_max,
        )

    candidates = []
    for combo in combinations:
        if combo.is_active is False:
            continue
        combo_threshold = combo.auto_combine_threshold if combo.auto_combine_threshold is not None else threshold
        if party_size < combo_threshold:
            continue
        if not combo.min_capacity <= party_size <= combo.max_capacity:
            continue
        numbers = list(combo.table_numbers)
        if any(n not in active_tables or n in taken for n in numbers):
            continue
        candidates.append(combo)

    if candidates:
        best = min(candidates, key=lambda c: (c.max_capacity - party_size, min(c.table_numbers)))
        return TableMatch(
            tables=sorted(best.table_numbers),
            combined=True,
            total_capacity=best.max_capacity,
            combination_id=best.id,
            setup_time_minutes=best.setup_time_minutes or 0,
            combination_fee=Decimal(best.combination_fee or 0),
        )

    largest = max(
        [t.capacity_max for t in active_tables.values()]
        + [c.max_capacity for c in combinations if c.is_active is not False],
        default=0,
    )
    if party_size > largest:
        raise CapacityError(
            f"No table or combination seats a party of {party_size}",
            reason="exceeds_capacity",
            party_size=party_size,
        )
    raise CapacityError(
        f"No availability for a party of {party_size}",
        reason="fully_booked",
        party_size=party_size,
    )


async def claimed_tables(
    db: AsyncSession,
    booking_date: date,
    time_slot: str,
    now: Optional[datetime] = None,
) -> Set[int]:
    """Table numbers held or booked for a slot. Expired hold claims do not count."""
    now = now or venue_now()
    result = await db.execute(
        select(TableSlotClaim.table_number).where(
            TableSlotClaim.booking_date == booking_date,
            TableSlotClaim.time_slot == time_slot,
            or_(TableSlotClaim.expires_at.is_(None), TableSlotClaim.expires_at > now),
        )
    )
    return set(result.scalars().all())


async def load_layout(db: AsyncSession):
    tables = (await db.execute(select(VenueTable).where(VenueTable.is_active == True))).scalars().all()
    combinations = (
        await db.execute(select(TableCombination).where(TableCombination.is_active == True))
    ).scalars().all()
    return tables, combinations


async def match_tables(
    db: AsyncSession,
    party_size: int,
    booking_date: date,
    time_slot: str,
    now: Optional[datetime] = None,
) -> TableMatch:
    """Match a party against the tables still free for a date and slot"""
    tables, combinations = await load_layout(db)
    occupied = await claimed_tables(db, booking_date, time_slot, now)

    match = select_tables(party_size, tables, combinations, occupied)
    logger.info(
        "Tables matched",
        party_size=party_size,
        booking_date=str(booking_date),
        time_slot=time_slot,
        tables=match.tables,
        combined=match.combined,
    )
    return match
