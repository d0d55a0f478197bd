"""Cancellation refund policy"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from venue_booking.clock import hours_between
from venue_booking.config import settings
from venue_booking.schemas.booking import RefundDecision


def refund_reference(booking_id: UUID) -> str:
    return f"REF-{str(booking_id)[:8].upper()}"


def evaluate_refund(
    deposit: Optional[Decimal],
    event_at: datetime,
    now: datetime,
    booking_id: UUID,
) -> RefundDecision:
    """
    Decide the refund for a cancellation made at ``now``.

    The whole deposit comes back when the booking is cancelled at least
    ``cancellation_refund_cutoff_hours`` before the event, nothing otherwise.
    """
    cutoff = settings.cancellation_refund_cutoff_hours
    hours_before = hours_between(now, event_at)
    deposit = Decimal(deposit or 0)

    if hours_before >= cutoff:
        return RefundDecision(
            eligible=True,
            amount=deposit,
            hours_before_event=int(hours_before),
            reason=f"Cancelled more than {cutoff} hours before booking",
            reference=refund_reference(booking_id),
        )

    return RefundDecision(
        eligible=False,
        amount=Decimal("0"),
        hours_before_event=max(int(hours_before), 0),
        reason=f"Cancelled within {cutoff} hours of booking",
    )
