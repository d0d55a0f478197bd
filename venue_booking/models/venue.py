"""Venue layout models"""

import uuid
from sqlalchemy import Column, String, Integer, Boolean, DateTime, JSON, Text, Numeric, Uuid

from venue_booking.clock import utcnow
from venue_booking.database import Base


class VenueTable(Base):
    """Physical tables"""
    __tablename__ = "venue_tables"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    table_number = Column(Integer, unique=True, nullable=False)
    floor = Column(String(20), nullable=False)  # upstairs, downstairs

    # Capacity bracket
    capacity_min = Column(Integer, nullable=False)
    capacity_max = Column(Integer, nullable=False)

    description = Column(Text)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class TableCombination(Base):
    """Static definition of tables that may be merged for larger parties"""
    __tablename__ = "table_combinations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    description = Column(Text)

    # [15, 16]
    table_numbers = Column(JSON, nullable=False)

    min_capacity = Column(Integer, nullable=False)
    max_capacity = Column(Integer, nullable=False)
    auto_combine_threshold = Column(Integer, default=7)  # Never auto-combine below this party size

    setup_time_minutes = Column(Integer, default=10)
    combination_fee = Column(Numeric(10, 2), default=0)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
