"""Customer consent store"""

from datetime import datetime
from typing import Callable, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from venue_booking.clock import utcnow
from venue_booking.models.email import EmailConsent
from venue_booking.schemas.notifications import ConsentRecord, ConsentUpdate

logger = structlog.get_logger()


class ConsentStore(Protocol):
    async def get_consent(self, email: str) -> Optional[ConsentRecord]:
        ...


class SqlConsentStore:
    """Consent records kept in the email_consents table"""

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self.session_factory = session_factory

    async def get_consent(self, email: str) -> Optional[ConsentRecord]:
        async with self.session_factory() as db:
            result = await db.execute(select(EmailConsent).where(EmailConsent.email == email.lower()))
            consent = result.scalar_one_or_none()
            if consent is None:
                return None
            return ConsentRecord.model_validate(consent)


async def record_consent(
    db: AsyncSession,
    update: ConsentUpdate,
    ip_address: Optional[str] = None,
    now: Optional[datetime] = None,
) -> EmailConsent:
    """Create or replace the consent record for an email address"""
    now = now or utcnow()
    email = update.email.lower()

    result = await db.execute(select(EmailConsent).where(EmailConsent.email == email))
    consent = result.scalar_one_or_none()
    if consent is None:
        consent = EmailConsent(email=email)
        db.add(consent)

    consent.transactional = update.transactional
    consent.marketing = update.marketing
    consent.open_tracking = update.open_tracking
    consent.click_tracking = update.click_tracking
    consent.engagement_analytics = update.engagement_analytics
    consent.consent_source = update.consent_source
    consent.ip_address = ip_address
    consent.consented_at = now
    consent.unsubscribed_at = None if update.marketing else now

    await db.commit()

    logger.info(
        "Consent recorded",
        open_tracking=consent.open_tracking,
        marketing=consent.marketing,
        source=consent.consent_source,
    )
    return consent
