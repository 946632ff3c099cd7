import logging

from ...application.ports.notification_gateway import DeliveryResult, NotificationGateway

logger = logging.getLogger(__name__)


class ConsoleNotificationGateway(NotificationGateway):
    """Development stand-in used when no SMS provider is configured.

    Prints the code to the log so a developer can finish the flow locally.
    With ``reveal_codes`` off (production) it reports every delivery as failed.
    """

    def __init__(self, reveal_codes: bool = True):
        self.reveal_codes = reveal_codes

    def send_otp(self, destination: str, code: str) -> DeliveryResult:
        if not self.reveal_codes:
            return DeliveryResult.failed("No SMS provider configured")
        logger.warning(f"SMS provider not configured; OTP for {destination} is {code}")
        return DeliveryResult.ok("console")
