import logging
from typing import Optional

from twilio.base.exceptions import TwilioException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client

from ...core.config import Settings
from ...application.ports.notification_gateway import DeliveryResult, NotificationGateway

logger = logging.getLogger(__name__)

OTP_MESSAGE = "Your CourseHub verification code is {code}. It expires in {minutes} minutes."


class TwilioNotificationGateway(NotificationGateway):
    """Sends the one-time code as a plain SMS through Twilio's Messages API."""

    def __init__(self, settings: Settings, client: Optional[Client] = None):
        if client is None:
            http_client = TwilioHttpClient(timeout=settings.TWILIO_TIMEOUT)
            client = Client(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN, http_client=http_client)
        self.client = client
        self.from_number = settings.TWILIO_PHONE_NUMBER
        self.expiry_minutes = settings.OTP_EXPIRY_MINUTES

    def send_otp(self, destination: str, code: str) -> DeliveryResult:
        if not self.from_number:
            return DeliveryResult.failed("Twilio sender number not configured")
        try:
            message = self.client.messages.create(
                to=destination,
                from_=self.from_number,
                body=OTP_MESSAGE.format(code=code, minutes=self.expiry_minutes),
            )
        except TwilioException as e:
            logger.error(f"Twilio error: {e}")
            return DeliveryResult.failed(str(e))
        logger.info(f"Twilio message queued, SID: {message.sid}")
        return DeliveryResult.ok(message.sid)
