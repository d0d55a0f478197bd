"""Shared FastAPI dependencies for the email workflow"""

from fastapi import Depends

from venue_booking.database import SessionLocal
from venue_booking.notifications.consent import SqlConsentStore
from venue_booking.notifications.queue import CeleryQueueClient
from venue_booking.notifications.workflow import BookingEmailWorkflow


def get_queue_client():
    """Queue client backed by Celery"""
    return CeleryQueueClient(SessionLocal)


def get_consent_store():
    return SqlConsentStore(SessionLocal)


def get_workflow(
    queue=Depends(get_queue_client),
    consent_store=Depends(get_consent_store),
) -> BookingEmailWorkflow:
    return BookingEmailWorkflow(queue, consent_store)
