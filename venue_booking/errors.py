"""
Booking error taxonomy.

Services raise these; the API layer turns them into JSON responses through
the handler registered in ``venue_booking.main``.

    raise ConflictError("Table 4 is already held for 2025-09-12 22:00")
    raise CapacityError("No table fits a party of 30", reason="exceeds_capacity")
"""

from typing import Any, Optional


class BookingError(Exception):
    """Base class for booking domain errors."""

    status_code: int = 400
    code: str = "booking_error"

    def __init__(self, detail: str, **context: Any):
        super().__init__(detail)
        self.detail = detail
        self.context = context


class ConflictError(BookingError):
    """Hold/booking collision. Caller retries with fresh availability."""

    status_code = 409
    code = "conflict"


class HoldExpiredError(ConflictError):
    code = "hold_expired"


class VersionConflictError(ConflictError):
    code = "version_conflict"


class InvalidTransitionError(ConflictError):
    code = "invalid_transition"


class BookingLimitError(ConflictError):
    code = "booking_limit"


class CapacityError(BookingError):
    """No table or combination fits. Terminal, shown to the user."""

    status_code = 422
    code = "no_availability"

    def __init__(self, detail: str, reason: Optional[str] = None, **context: Any):
        super().__init__(detail, reason=reason, **context)
        self.reason = reason


class NotFoundError(BookingError):
    status_code = 404
    code = "not_found"

    def __init__(self, entity: str, entity_id: Any = None, **context: Any):
        if entity_id is not None:
            detail = f"{entity} {entity_id} not found"
        else:
            detail = f"{entity} not found"
        super().__init__(detail, entity=entity, entity_id=str(entity_id), **context)


class ExternalServiceError(BookingError):
    """Queue, email provider or database unavailable. Retried with backoff."""

    status_code = 503
    code = "external_service_failure"

    def __init__(self, service: str, detail: str, **context: Any):
        super().__init__(f"{service}: {detail}", service=service, **context)
        self.service = service


class ConsentBlocked(BookingError):
    """Tracking suppressed for lack of consent. Never fatal."""

    status_code = 202
    code = "consent_blocked"
