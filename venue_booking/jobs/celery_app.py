"""Celery application: email queue worker and periodic sweeps"""

from celery import Celery
from celery.signals import setup_logging

from venue_booking.config import settings
from venue_booking.log import configure_logging

celery_app = Celery(
    "venue_booking",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["venue_booking.jobs.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.venue_timezone,
    enable_utc=True,
    task_track_started=True,
    task_time_limit=120,
    worker_prefetch_multiplier=1,
    worker_concurrency=settings.email_worker_concurrency,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # 0 is served first; see notifications.priority.broker_priority
    broker_transport_options={
        "priority_steps": list(range(11)),
        "queue_order_strategy": "priority",
    },
    beat_schedule={
        "sweep-expired-holds": {
            "task": "sweep_expired_holds",
            "schedule": 60.0,
        },
        "expire-waitlist-offers": {
            "task": "expire_waitlist_offers",
            "schedule": 60.0,
        },
    },
)


@setup_logging.connect
def _worker_logging(**kwargs):
    """Workers log through structlog like the API"""
    configure_logging()
