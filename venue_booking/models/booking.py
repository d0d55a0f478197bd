"""Booking model"""

import enum
import uuid
from sqlalchemy import Column, String, Integer, Date, DateTime, Boolean, JSON, Text, Numeric, ForeignKey, Uuid

from venue_booking.clock import utcnow
from venue_booking.database import Base


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ARRIVED = "arrived"
    NO_SHOW = "no_show"
    CANCELLED = "cancelled"
    WAITLIST = "waitlist"


class Booking(Base):
    """Table bookings"""
    __tablename__ = "bookings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    reference = Column(String(20), unique=True, nullable=False)  # BRL-2025-00042

    # Customer information
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False, index=True)
    customer_phone = Column(String(20))

    # Slot
    booking_date = Column(Date, nullable=False, index=True)
    time_slot = Column(String(5), nullable=False)  # HH:MM
    party_size = Column(Integer, nullable=False)

    # Tables
    table_numbers = Column(JSON, nullable=False)
    is_combined = Column(Boolean, default=False)
    combination_id = Column(Uuid, ForeignKey("table_combinations.id"))

    # Status
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)

    # Money (GBP)
    deposit_amount = Column(Numeric(10, 2), default=0)
    total_amount = Column(Numeric(10, 2), default=0)

    special_requests = Column(Text)
    email_notifications = Column(Boolean, default=True)
    marketing_consent = Column(Boolean, default=False)

    # Cancellation (frozen once set)
    cancelled_at = Column(DateTime)
    cancellation_reason = Column(Text)
    refund_eligible = Column(Boolean)
    refund_amount = Column(Numeric(10, 2))

    # Optimistic concurrency
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version}
