"""Pydantic schemas for request/response validation"""

from venue_booking.schemas.availability import (
    TableMatchRequest,
    TableMatch,
    CombinationResponse,
)
from venue_booking.schemas.hold import (
    HoldCreate,
    HoldResponse,
    HoldConvert,
)
from venue_booking.schemas.booking import (
    BookingResponse,
    BookingListResponse,
    BookingStatusUpdate,
    BookingUpdate,
    BookingCancel,
    RefundDecision,
    CancellationResponse,
)
from venue_booking.schemas.waitlist import (
    WaitlistEnroll,
    WaitlistEntryResponse,
    WaitlistOfferResponse,
    OfferAccept,
)
from venue_booking.schemas.notifications import (
    BookingEmailContext,
    WorkflowTrigger,
    EmailJob,
    ConsentRecord,
    ConsentUpdate,
    TrackingEvent,
)

__all__ = [
    "TableMatchRequest",
    "TableMatch",
    "CombinationResponse",
    "HoldCreate",
    "HoldResponse",
    "HoldConvert",
    "BookingResponse",
    "BookingListResponse",
    "BookingStatusUpdate",
    "BookingUpdate",
    "BookingCancel",
    "RefundDecision",
    "CancellationResponse",
    "WaitlistEnroll",
    "WaitlistEntryResponse",
    "WaitlistOfferResponse",
    "OfferAccept",
    "BookingEmailContext",
    "WorkflowTrigger",
    "EmailJob",
    "ConsentRecord",
    "ConsentUpdate",
    "TrackingEvent",
]
