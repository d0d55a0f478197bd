"""Outbound email queue, consent and delivery tracking models"""

import enum
import uuid
from sqlalchemy import Column, String, Integer, Boolean, DateTime, JSON, Text, Uuid

from venue_booking.clock import utcnow
from venue_booking.database import Base


class JobStatus(str, enum.Enum):
    QUEUED = "queued"
    SCHEDULED = "scheduled"
    PROCESSING = "processing"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"
    DEAD_LETTERED = "dead_lettered"


PENDING_JOB_STATUSES = (JobStatus.QUEUED.value, JobStatus.SCHEDULED.value, JobStatus.FAILED.value)


class EmailQueueJob(Base):
    """Ledger row for every job handed to the queue; id doubles as the Celery task id"""
    __tablename__ = "email_queue_jobs"

    id = Column(String(64), primary_key=True)
    booking_id = Column(Uuid, index=True)
    kind = Column(String(30), nullable=False)  # send_email, send_sms, reminder_trigger

    recipient = Column(String(255), nullable=False)
    subject = Column(String(255))
    template = Column(String(100), nullable=False)
    template_data = Column(JSON, default=dict)

    priority = Column(String(20), nullable=False)
    queue_weight = Column(Integer, nullable=False)
    schedule_at = Column(DateTime)

    tracking_enabled = Column(Boolean, default=False)
    customer_consent = Column(JSON, default=dict)

    max_retries = Column(Integer, nullable=False, default=5)
    attempts = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default=JobStatus.QUEUED.value)
    last_error = Column(Text)
    provider_message_id = Column(String(255), index=True)

    queued_at = Column(DateTime, default=utcnow)
    sent_at = Column(DateTime)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class DeadLetterEntry(Base):
    """Jobs parked for operator review after exhausting retries"""
    __tablename__ = "email_dead_letters"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    job_id = Column(String(64), nullable=False, index=True)
    kind = Column(String(30), nullable=False)
    recipient = Column(String(255))
    error = Column(Text)
    attempts = Column(Integer, default=0)
    payload = Column(JSON)
    reviewed = Column(Boolean, default=False)
    created_at = Column(DateTime, default=utcnow)


class EmailConsent(Base):
    """GDPR consent state per email address"""
    __tablename__ = "email_consents"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False)

    transactional = Column(Boolean, default=True)
    marketing = Column(Boolean, default=False)

    open_tracking = Column(Boolean, default=False)
    click_tracking = Column(Boolean, default=False)
    engagement_analytics = Column(Boolean, default=False)

    consent_source = Column(String(20), default="website")  # website, email, admin, api
    ip_address = Column(String(50))
    consented_at = Column(DateTime, default=utcnow)
    unsubscribed_at = Column(DateTime)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class DeliveryTrackingRecord(Base):
    """Per-message delivery and engagement status. Only written with tracking consent."""
    __tablename__ = "email_delivery_tracking"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    job_id = Column(String(64), unique=True, nullable=False)
    message_id = Column(String(255), index=True)
    recipient = Column(String(255), nullable=False)

    # queued, sent, delivered, bounced, complained, opened, clicked, unsubscribed
    status = Column(String(20), nullable=False, default="queued")

    sent_at = Column(DateTime)
    delivered_at = Column(DateTime)
    opened_at = Column(DateTime)
    clicked_at = Column(DateTime)
    bounced_at = Column(DateTime)
    complained_at = Column(DateTime)
    unsubscribed_at = Column(DateTime)
    bounce_reason = Column(Text)

    ip_address = Column(String(50))
    user_agent = Column(Text)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
