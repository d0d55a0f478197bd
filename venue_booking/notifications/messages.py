"""Plain-text subject and body composition per template"""

from typing import Any, Dict, Tuple

from venue_booking.errors import BookingError


BOOKING_DETAILS = (
    "Reference: {reference}\n"
    "Date: {booking_date}\n"
    "Arrival: {time_slot}\n"
    "Table: {table_label}\n"
    "Guests: {party_size}\n"
)

EMAIL_TEMPLATES: Dict[str, Tuple[str, str]] = {
    "booking_confirmation": (
        "Booking confirmed - {reference}",
        "Hi {customer_name},\n\n"
        "Your table at {venue_name} is confirmed.\n\n"
        + BOOKING_DETAILS
        + "Deposit paid: £{deposit_paid}\n"
        "Balance on arrival: £{remaining_balance}\n\n"
        "{venue_name}, {venue_address}\n{venue_phone}\n",
    ),
    "booking_updated": (
        "Booking updated - {reference}",
        "Hi {customer_name},\n\n"
        "Your booking at {venue_name} has been updated.\n\n"
        + BOOKING_DETAILS
        + "\n{venue_name}, {venue_address}\n{venue_phone}\n",
    ),
    "booking_cancellation": (
        "Booking cancelled - {reference}",
        "Hi {customer_name},\n\n"
        "Your booking {reference} for {booking_date} has been cancelled.\n\n"
        "{refund_summary}\n\n"
        "{venue_name}\n{venue_phone}\n",
    ),
    "reminder_week_before": (
        "One week to go - {reference}",
        "Hi {customer_name},\n\n"
        "A reminder that you are booked at {venue_name} next week.\n\n"
        + BOOKING_DETAILS,
    ),
    "reminder_day_before": (
        "See you tomorrow - {reference}",
        "Hi {customer_name},\n\n"
        "Your table at {venue_name} is booked for tomorrow.\n\n"
        + BOOKING_DETAILS
        + "Balance on arrival: £{remaining_balance}\n",
    ),
    "reminder_day_of": (
        "Tonight at {venue_name} - {reference}",
        "Hi {customer_name},\n\n"
        "We look forward to seeing you at {time_slot} tonight.\n\n"
        + BOOKING_DETAILS
        + "\n{venue_address}\n",
    ),
    "waitlist_offer": (
        "A table has become available on {booking_date}",
        "Hi {customer_name},\n\n"
        "Tables {table_numbers} are free on {booking_date} at {time_slot} "
        "for {party_size} guests.\n\n"
        "Accept before {offer_expires_at} to secure it (offer {offer_id}).\n",
    ),
}

SMS_TEMPLATES: Dict[str, str] = {
    "waitlist_offer": (
        "A table is free on {booking_date} at {time_slot} for {party_size}. "
        "Reply before {offer_expires_at} to accept (offer {offer_id})."
    ),
    "reminder_day_of": "Reminder: your table {reference} is booked for {time_slot} tonight.",
}


def _render(text: str, data: Dict[str, Any], template: str) -> str:
    try:
        return text.format(**data)
    except KeyError as exc:
        raise BookingError(f"Template {template} is missing {exc.args[0]}", template=template) from exc


def compose_email(template: str, data: Dict[str, Any]) -> Tuple[str, str]:
    """Subject and plain-text body for an email template"""
    if template not in EMAIL_TEMPLATES:
        raise BookingError(f"Unknown email template {template}", template=template)
    subject, body = EMAIL_TEMPLATES[template]
    return _render(subject, data, template), _render(body, data, template)


def compose_sms(template: str, data: Dict[str, Any]) -> str:
    if template not in SMS_TEMPLATES:
        raise BookingError(f"Unknown SMS template {template}", template=template)
    return _render(SMS_TEMPLATES[template], data, template)
