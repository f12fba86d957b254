import logging

from twilio.base.exceptions import TwilioException
from twilio.rest import Client as TwilioClient

from assetminder.core.config import settings
from assetminder.reminders.channels import E164_PATTERN
from assetminder.reminders.errors import SendError

logger = logging.getLogger(__name__)

# Twilio error codes for numbers that will never accept a message
INVALID_NUMBER_ERROR_CODES = {21211, 21612, 21614}


class SMSService:
    def __init__(self):
        if not settings.twilio_configured:
            raise ValueError(
                "TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN and TWILIO_PHONE_NUMBER are required but not configured"
            )
        self.client = TwilioClient(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN)
        self.from_number = settings.TWILIO_PHONE_NUMBER

    def send_sms(self, to: str, body: str) -> bool:
        """Send an SMS via Twilio. Returns False for numbers that are not E.164."""
        if not E164_PATTERN.match(to or ""):
            logger.error(f"[SMS] Invalid phone number format: {to}")
            return False

        try:
            message = self.client.messages.create(body=body, from_=self.from_number, to=to)
        except TwilioException as e:
            code = getattr(e, "code", None)
            if code in INVALID_NUMBER_ERROR_CODES:
                logger.error(f"[SMS] Twilio rejected number {to} (code {code})")
            raise SendError(f"Twilio error: {e!s}") from e

        logger.info(f"[SMS] Sent to {to}: sid={message.sid} status={message.status}")
        return True
