"""Email workflow, queue job and consent schemas"""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from uuid import UUID, uuid4
from pydantic import BaseModel, EmailStr, Field

from venue_booking.notifications.priority import EmailPriority, JobKind
from venue_booking.schemas.booking import RefundDecision


# Workflow context

class BookingSnapshot(BaseModel):
    """Booking fields the email workflow needs"""
    id: UUID
    reference: str
    booking_date: date
    time_slot: str
    table_numbers: List[int]
    floor: Optional[str] = None
    party_size: int
    special_requests: Optional[str] = None
    total_amount: Decimal = Decimal("0")
    deposit_paid: Decimal = Decimal("0")
    status: str = "confirmed"

    @property
    def remaining_balance(self) -> Decimal:
        return self.total_amount - self.deposit_paid

    @property
    def table_label(self) -> str:
        return " & ".join(f"Table {number}" for number in self.table_numbers)


class CustomerInfo(BaseModel):
    name: str
    email: EmailStr
    phone: Optional[str] = None
    email_notifications: bool = True
    marketing_emails: bool = False


class VenueInfo(BaseModel):
    name: str
    address: str
    phone: str
    email: str


class BookingEmailContext(BaseModel):
    booking: BookingSnapshot
    customer: CustomerInfo
    venue: VenueInfo


class TriggerMetadata(BaseModel):
    triggered_by: Literal["system", "admin", "customer"] = "system"
    reason: Optional[str] = None


class BookingCreated(BaseModel):
    event: Literal["booking_created"] = "booking_created"
    context: BookingEmailContext
    metadata: TriggerMetadata = Field(default_factory=TriggerMetadata)


class BookingConfirmed(BaseModel):
    event: Literal["booking_confirmed"] = "booking_confirmed"
    context: BookingEmailContext
    metadata: TriggerMetadata = Field(default_factory=TriggerMetadata)


class BookingCancelled(BaseModel):
    event: Literal["booking_cancelled"] = "booking_cancelled"
    context: BookingEmailContext
    refund: Optional[RefundDecision] = None
    metadata: TriggerMetadata = Field(default_factory=TriggerMetadata)


class BookingModified(BaseModel):
    event: Literal["booking_modified"] = "booking_modified"
    context: BookingEmailContext
    metadata: TriggerMetadata = Field(default_factory=TriggerMetadata)


class ReminderDue(BaseModel):
    event: Literal["reminder_due"] = "reminder_due"
    context: BookingEmailContext
    metadata: TriggerMetadata = Field(default_factory=TriggerMetadata)


WorkflowTrigger = Annotated[
    Union[BookingCreated, BookingConfirmed, BookingCancelled, BookingModified, ReminderDue],
    Field(discriminator="event"),
]


# Queue jobs

class CustomerConsent(BaseModel):
    email_tracking: bool = False
    marketing_emails: bool = False
    transactional_emails: bool = True


class EmailJob(BaseModel):
    """Idempotent job payload handed to the queue"""
    id: str = Field(default_factory=lambda: str(uuid4()))
    kind: JobKind = JobKind.SEND_EMAIL
    booking_id: Optional[UUID] = None
    recipient: str
    subject: Optional[str] = None
    template: str
    template_data: Dict[str, Any] = Field(default_factory=dict)
    priority: EmailPriority = EmailPriority.NORMAL
    schedule_at: Optional[datetime] = None
    tracking_enabled: bool = False
    customer_consent: CustomerConsent = Field(default_factory=CustomerConsent)
    max_retries: Optional[int] = None
    status: str = "queued"

    class Config:
        from_attributes = True


class EmailJobResponse(BaseModel):
    id: str
    booking_id: Optional[UUID]
    kind: str
    recipient: str
    template: str
    priority: str
    queue_weight: int
    schedule_at: Optional[datetime]
    tracking_enabled: bool
    attempts: int
    status: str
    last_error: Optional[str]

    class Config:
        from_attributes = True


class DeadLetterResponse(BaseModel):
    id: UUID
    job_id: str
    kind: str
    recipient: Optional[str]
    error: Optional[str]
    attempts: int
    created_at: datetime

    class Config:
        from_attributes = True


# Consent and tracking

class ConsentRecord(BaseModel):
    """Customer consent as read from the consent store"""
    email: str
    transactional: bool = True
    marketing: bool = False
    open_tracking: bool = False
    click_tracking: bool = False
    engagement_analytics: bool = False
    consent_source: str = "website"
    consented_at: Optional[datetime] = None
    unsubscribed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ConsentUpdate(BaseModel):
    email: EmailStr
    transactional: bool = True
    marketing: bool = False
    open_tracking: bool = False
    click_tracking: bool = False
    engagement_analytics: bool = False
    consent_source: Literal["website", "email", "admin", "api"] = "website"


TrackingEventType = Literal[
    "sent", "delivered", "bounced", "complained", "opened", "clicked", "unsubscribed"
]


class TrackingEvent(BaseModel):
    """Delivery webhook payload"""
    job_id: Optional[str] = None
    message_id: Optional[str] = None
    event_type: TrackingEventType
    occurred_at: Optional[datetime] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    bounce_reason: Optional[str] = None
