"""Email and SMS delivery through Resend and Twilio"""

import asyncio
from typing import Dict, Optional

import resend
from twilio.rest import Client as TwilioClient
import structlog

from venue_booking.config import settings
from venue_booking.errors import ExternalServiceError

logger = structlog.get_logger()


class ResendEmailSender:
    """Sends plain-text email with the Resend API"""

    def __init__(self, api_key: Optional[str] = None, sender: Optional[str] = None):
        resend.api_key = api_key or settings.resend_api_key
        self.sender = sender or settings.email_sender

    async def send(
        self,
        to: str,
        subject: str,
        text: str,
        tags: Optional[Dict[str, str]] = None,
    ) -> str:
        """Send one email and return the provider message id"""
        email_data = {
            "from": self.sender,
            "to": [to],
            "subject": subject,
            "text": text,
            "reply_to": settings.venue_email,
        }
        if tags:
            email_data["tags"] = [{"name": name, "value": value} for name, value in tags.items()]

        try:
            response = await asyncio.to_thread(resend.Emails.send, email_data)
            return response["id"]
        except Exception as e:
            logger.error("Email send failed", recipient=to, error=str(e))
            raise ExternalServiceError("resend", str(e)) from e


class TwilioSmsSender:
    """Sends SMS with the Twilio REST client"""

    def __init__(self, client: Optional[TwilioClient] = None):
        self._client = client

    @property
    def client(self) -> TwilioClient:
        if self._client is None:
            self._client = TwilioClient(settings.twilio_account_sid, settings.twilio_auth_token)
        return self._client

    async def send(self, to: str, body: str) -> str:
        try:
            message = await asyncio.to_thread(
                self.client.messages.create,
                body=body,
                from_=settings.twilio_phone_number,
                to=to,
            )
        except Exception as e:
            logger.error("SMS send failed", to=to[-4:], error=str(e))
            raise ExternalServiceError("twilio", str(e)) from e

        return message.sid
