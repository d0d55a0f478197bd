"""Availability and table matching schemas"""

from datetime import date
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, Field


class TableMatchRequest(BaseModel):
    """Table match request"""
    party_size: int = Field(ge=1)
    booking_date: date
    time_slot: str = Field(pattern=r"^\d{2}:\d{2}$")


class TableMatch(BaseModel):
    """Tables selected for a party"""
    tables: List[int]
    combined: bool
    total_capacity: int
    combination_id: Optional[UUID] = None
    setup_time_minutes: int = 0
    combination_fee: Decimal = Decimal("0")


class CombinationResponse(BaseModel):
    id: UUID
    name: str
    description: Optional[str]
    table_numbers: List[int]
    min_capacity: int
    max_capacity: int
    auto_combine_threshold: int
    setup_time_minutes: int
    combination_fee: Decimal

    class Config:
        from_attributes = True
