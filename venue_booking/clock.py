"""Time helpers. All stored datetimes are naive venue-local wall time."""

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from venue_booking.config import settings


def utcnow() -> datetime:
    """Naive UTC timestamp for audit columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def venue_now() -> datetime:
    """Current wall-clock time at the venue, naive"""
    return datetime.now(ZoneInfo(settings.venue_timezone)).replace(tzinfo=None)


def parse_slot(time_slot: str) -> time:
    """Parse an ``HH:MM`` slot"""
    return datetime.strptime(time_slot, "%H:%M").time()


def event_start(booking_date: date, time_slot: str) -> datetime:
    return datetime.combine(booking_date, parse_slot(time_slot))


def hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600
