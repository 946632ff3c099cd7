from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class DeliveryResult:
    sent: bool
    reference: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, reference: Optional[str] = None) -> "DeliveryResult":
        return cls(sent=True, reference=reference)

    @classmethod
    def failed(cls, error: str) -> "DeliveryResult":
        return cls(sent=False, error=error)


class NotificationGateway(Protocol):
    def send_otp(self, destination: str, code: str) -> DeliveryResult:
        ...
