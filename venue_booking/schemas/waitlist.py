"""Waitlist schemas"""

from datetime import date, datetime
from typing import Optional, List, Literal
from uuid import UUID
from pydantic import BaseModel, EmailStr, Field


class WaitlistEnroll(BaseModel):
    """Waitlist enrollment request"""
    customer_name: str = Field(min_length=1)
    customer_email: EmailStr
    customer_phone: Optional[str] = None
    booking_date: date
    preferred_time: str = Field(pattern=r"^\d{2}:\d{2}$")
    alternative_times: List[str] = Field(default_factory=list, max_length=6)
    party_size: int = Field(ge=1, le=20)
    flexible_party_size: bool = False
    min_party_size: Optional[int] = None
    max_party_size: Optional[int] = None
    table_preferences: List[int] = Field(default_factory=list, max_length=8)
    floor_preference: Optional[Literal["upstairs", "downstairs"]] = None
    accepts_any_table: bool = True
    accepts_combination: bool = True
    notification_methods: List[Literal["email", "sms", "phone"]] = Field(default_factory=lambda: ["email"], min_length=1)
    notification_lead_time: int = Field(default=120, ge=30, le=720)
    max_notifications: Optional[int] = Field(default=None, ge=1, le=5)
    special_occasion: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=500)


class WaitlistEntryResponse(BaseModel):
    """Waitlist entry response"""
    id: UUID
    customer_name: str
    customer_email: str
    booking_date: date
    preferred_time: str
    alternative_times: List[str]
    party_size: int
    status: str
    priority_score: int
    position: int
    max_notifications: int
    notifications_sent: int
    declined_offers: int
    expires_at: datetime
    created_at: datetime

    class Config:
        from_attributes = True


class WaitlistOfferResponse(BaseModel):
    id: UUID
    waitlist_id: UUID
    table_numbers: List[int]
    party_size: int
    booking_date: date
    time_slot: str
    sent_at: datetime
    offer_expires_at: datetime
    responded_at: Optional[datetime]
    response: Optional[str]
    hold_id: Optional[UUID]

    class Config:
        from_attributes = True


class OfferAccept(BaseModel):
    session_id: str
