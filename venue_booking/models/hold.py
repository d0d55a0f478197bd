"""Booking hold and table slot claim models"""

import enum
import uuid
from sqlalchemy import Column, String, Integer, Date, DateTime, JSON, ForeignKey, UniqueConstraint, Uuid

from venue_booking.clock import utcnow
from venue_booking.database import Base


class HoldStatus(str, enum.Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    CONVERTED = "converted"
    RELEASED = "released"


class BookingHold(Base):
    """Time-boxed soft reservation of tables before a booking is confirmed"""
    __tablename__ = "booking_holds"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id = Column(String(255), nullable=False, index=True)

    table_numbers = Column(JSON, nullable=False)
    booking_date = Column(Date, nullable=False)
    time_slot = Column(String(5), nullable=False)
    party_size = Column(Integer, nullable=False)

    status = Column(String(20), nullable=False, default=HoldStatus.ACTIVE.value)
    expires_at = Column(DateTime, nullable=False)
    converted_booking_id = Column(Uuid, ForeignKey("bookings.id"))

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class TableSlotClaim(Base):
    """
    One row per table per slot, owned by either an active hold or a booking.

    The unique constraint is what serializes concurrent hold requests: the
    second insert for the same table/date/slot fails.
    """
    __tablename__ = "table_slot_claims"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    table_number = Column(Integer, nullable=False)
    booking_date = Column(Date, nullable=False)
    time_slot = Column(String(5), nullable=False)

    hold_id = Column(Uuid, ForeignKey("booking_holds.id"))
    booking_id = Column(Uuid, ForeignKey("bookings.id"))
    expires_at = Column(DateTime)  # null once owned by a booking

    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint("table_number", "booking_date", "time_slot", name="uq_table_slot_claim"),
    )
