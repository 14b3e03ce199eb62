from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

NO_OTP = "NO_OTP"
BAD_CODE = "BAD_CODE"
EXPIRED = "EXPIRED"


@dataclass(frozen=True)
class OtpRecord:
    phone: str
    purpose: str
    code: str
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


@dataclass(frozen=True)
class VerificationResult:
    ok: bool
    reason: Optional[str] = None

    @classmethod
    def success(cls) -> "VerificationResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, reason: str) -> "VerificationResult":
        return cls(ok=False, reason=reason)


class OtpStore(Protocol):
    def upsert(self, phone: str, purpose: str, code: str, ttl_seconds: int) -> OtpRecord:
        ...

    def consume(self, phone: str, purpose: str, supplied_code: str) -> VerificationResult:
        ...

    def peek(self, phone: str, purpose: str) -> Optional[OtpRecord]:
        ...

    def purge_expired(self) -> int:
        ...
