from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class SendResult:
    message_id: Optional[str]
    status: Optional[str] = None
    simulated: bool = False


class MessagingGateway(Protocol):
    def send_otp(self, phone: str, code: str, locale: str = "en") -> SendResult:
        ...

    def send_text(self, phone: str, body: str) -> SendResult:
        ...
