"""Booking schemas"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, Field


class BookingResponse(BaseModel):
    """Booking response"""
    id: UUID
    reference: str
    customer_name: str
    customer_email: str
    customer_phone: Optional[str]
    booking_date: date
    time_slot: str
    party_size: int
    table_numbers: List[int]
    is_combined: bool
    status: str
    deposit_amount: Decimal
    total_amount: Decimal
    special_requests: Optional[str]
    cancelled_at: Optional[datetime]
    refund_eligible: Optional[bool]
    refund_amount: Optional[Decimal]
    version: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class BookingListResponse(BaseModel):
    """Paginated booking list"""
    items: List[BookingResponse]
    total: int
    page: int
    page_size: int


class BookingStatusUpdate(BaseModel):
    """Status transition with optimistic version check"""
    status: str
    expected_version: int


class BookingUpdate(BaseModel):
    """Modify booking request"""
    expected_version: int
    party_size: Optional[int] = Field(default=None, ge=1)
    booking_date: Optional[date] = None
    time_slot: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    table_numbers: Optional[List[int]] = None
    special_requests: Optional[str] = None


class BookingCancel(BaseModel):
    """Cancel booking request"""
    expected_version: int
    reason: Optional[str] = None


class RefundDecision(BaseModel):
    """Outcome of the cancellation refund policy"""
    eligible: bool
    amount: Decimal
    hours_before_event: int
    reason: Optional[str] = None
    reference: Optional[str] = None


class CancellationResponse(BaseModel):
    booking: BookingResponse
    refund: RefundDecision
    released_tables: List[int]
