import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from ..ports.user_repo import PendingOTP

OTP_EXPIRY_MINUTES = 10
OTP_LENGTH = 6


@dataclass
class OTPIssuer:
    ttl: timedelta = timedelta(minutes=OTP_EXPIRY_MINUTES)
    length: int = OTP_LENGTH

    def generate_code(self) -> str:
        """Generate a numeric code of ``length`` digits without a leading zero."""
        low = 10 ** (self.length - 1)
        return str(low + secrets.randbelow(9 * low))

    def issue(self, now: datetime) -> PendingOTP:
        return PendingOTP(code=self.generate_code(), expires_at=now + self.ttl)

    @property
    def expires_in_seconds(self) -> int:
        return int(self.ttl.total_seconds())
