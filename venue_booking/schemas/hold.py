"""Booking hold schemas"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, EmailStr, Field


class HoldCreate(BaseModel):
    """Create hold request"""
    table_numbers: List[int] = Field(min_length=1)
    booking_date: date
    time_slot: str = Field(pattern=r"^\d{2}:\d{2}$")
    party_size: int = Field(ge=1)
    session_id: str


class HoldResponse(BaseModel):
    """Hold response"""
    id: UUID
    session_id: str
    table_numbers: List[int]
    booking_date: date
    time_slot: str
    party_size: int
    status: str
    expires_at: datetime
    converted_booking_id: Optional[UUID]

    class Config:
        from_attributes = True


class HoldConvert(BaseModel):
    """Details needed to turn a hold into a booking"""
    session_id: str
    customer_name: str
    customer_email: EmailStr
    customer_phone: Optional[str] = None
    deposit_amount: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")
    special_requests: Optional[str] = None
    email_notifications: bool = True
    marketing_consent: bool = False
