"""Waitlist models"""

import enum
import uuid
from sqlalchemy import Column, String, Integer, Boolean, Date, DateTime, JSON, Text, ForeignKey, Uuid

from venue_booking.clock import utcnow
from venue_booking.database import Base


class WaitlistStatus(str, enum.Enum):
    ACTIVE = "active"
    NOTIFIED = "notified"
    EXPIRED = "expired"
    CONVERTED = "converted"
    CANCELLED = "cancelled"


class OfferResponse(str, enum.Enum):
    ACCEPTED = "accepted"
    DECLINED = "declined"
    TIMEOUT = "timeout"


class WaitlistEntry(Base):
    """Customers waiting for a table to free up"""
    __tablename__ = "waitlist_entries"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # Customer information
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False, index=True)
    customer_phone = Column(String(20))

    # Desired slot
    booking_date = Column(Date, nullable=False, index=True)
    preferred_time = Column(String(5), nullable=False)
    alternative_times = Column(JSON, default=list)
    party_size = Column(Integer, nullable=False)
    flexible_party_size = Column(Boolean, default=False)
    min_party_size = Column(Integer)
    max_party_size = Column(Integer)

    # Table preferences
    table_preferences = Column(JSON, default=list)
    floor_preference = Column(String(20))
    accepts_any_table = Column(Boolean, default=True)
    accepts_combination = Column(Boolean, default=True)

    # Queue management
    status = Column(String(20), nullable=False, default=WaitlistStatus.ACTIVE.value)
    priority_score = Column(Integer, nullable=False, default=50)
    position = Column(Integer, nullable=False, default=1)

    # Notifications
    notification_methods = Column(JSON, default=lambda: ["email"])
    notification_lead_time = Column(Integer, default=120)  # minutes
    max_notifications = Column(Integer, nullable=False, default=3)
    notifications_sent = Column(Integer, nullable=False, default=0)
    declined_offers = Column(Integer, nullable=False, default=0)
    last_notified_at = Column(DateTime)

    special_occasion = Column(String(100))
    notes = Column(Text)

    converted_booking_id = Column(Uuid, ForeignKey("bookings.id"))
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class WaitlistOffer(Base):
    """A table offer sent to a waitlist entry, with an accept-by deadline"""
    __tablename__ = "waitlist_offers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    waitlist_id = Column(Uuid, ForeignKey("waitlist_entries.id"), nullable=False)

    table_numbers = Column(JSON, nullable=False)
    party_size = Column(Integer, nullable=False)  # seated size, may be below a flexible request
    booking_date = Column(Date, nullable=False)
    time_slot = Column(String(5), nullable=False)

    sent_at = Column(DateTime, nullable=False)
    offer_expires_at = Column(DateTime, nullable=False)
    responded_at = Column(DateTime)
    response = Column(String(20))  # accepted, declined, timeout
    hold_id = Column(Uuid, ForeignKey("booking_holds.id"))
