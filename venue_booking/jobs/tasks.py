"""Background job tasks"""

import asyncio
import structlog

from venue_booking.jobs.celery_app import celery_app

logger = structlog.get_logger()


def run_async(coro):
    """Helper to run async functions in sync context"""

    async def _run():
        from venue_booking.database import engine

        try:
            return await coro
        finally:
            # Pooled connections are bound to this task's event loop
            await engine.dispose()

    return asyncio.run(_run())


def _workflow():
    from venue_booking.database import SessionLocal
    from venue_booking.notifications.consent import SqlConsentStore
    from venue_booking.notifications.queue import CeleryQueueClient
    from venue_booking.notifications.workflow import BookingEmailWorkflow

    return BookingEmailWorkflow(CeleryQueueClient(SessionLocal), SqlConsentStore(SessionLocal))


@celery_app.task(name="process_email_job", bind=True, max_retries=None)
def process_email_job(self, job_id: str):
    """Send one queued email, SMS or reminder trigger"""
    logger.info("Processing job", job_id=job_id, attempt=self.request.retries + 1)

    async def _process():
        from venue_booking.database import SessionLocal
        from venue_booking.notifications.dispatcher import build_dispatcher, execute_job
        from venue_booking.notifications.sender import ResendEmailSender, TwilioSmsSender

        dispatcher = build_dispatcher(
            SessionLocal,
            _workflow(),
            ResendEmailSender(),
            TwilioSmsSender(),
        )
        async with SessionLocal() as db:
            return await execute_job(db, dispatcher, job_id)

    delay = run_async(_process())
    if delay is not None:
        raise self.retry(countdown=delay)


@celery_app.task(name="sweep_expired_holds")
def sweep_expired_holds():
    """Expire booking holds past their window"""

    async def _sweep():
        from venue_booking.database import SessionLocal
        from venue_booking.services import holds

        async with SessionLocal() as db:
            return await holds.sweep_expired_holds(db)

    return run_async(_sweep())


@celery_app.task(name="expire_waitlist_offers")
def expire_waitlist_offers():
    """Time out unanswered waitlist offers and pass tables to the next entry"""

    async def _expire():
        from venue_booking.database import SessionLocal
        from venue_booking.notifications.queue import CeleryQueueClient
        from venue_booking.services import waitlist

        async with SessionLocal() as db:
            return await waitlist.expire_stale_offers(db, CeleryQueueClient(SessionLocal))

    count = run_async(_expire())
    logger.info("Waitlist offers expired", count=count)
    return count
