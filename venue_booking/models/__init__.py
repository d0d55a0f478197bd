"""Database models"""

from venue_booking.models.venue import VenueTable, TableCombination
from venue_booking.models.booking import Booking, BookingStatus
from venue_booking.models.hold import BookingHold, HoldStatus, TableSlotClaim
from venue_booking.models.waitlist import WaitlistEntry, WaitlistOffer, WaitlistStatus, OfferResponse
from venue_booking.models.email import (
    EmailQueueJob,
    JobStatus,
    DeadLetterEntry,
    EmailConsent,
    DeliveryTrackingRecord,
)

__all__ = [
    "VenueTable",
    "TableCombination",
    "Booking",
    "BookingStatus",
    "BookingHold",
    "HoldStatus",
    "TableSlotClaim",
    "WaitlistEntry",
    "WaitlistOffer",
    "WaitlistStatus",
    "OfferResponse",
    "EmailQueueJob",
    "JobStatus",
    "DeadLetterEntry",
    "EmailConsent",
    "DeliveryTrackingRecord",
]
