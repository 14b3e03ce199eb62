import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from ..ports.otp_store import OtpStore, NO_OTP
from ..ports.business_repo import BusinessRepository
from ..ports.messaging_gateway import MessagingGateway, SendResult
from ..ports.rate_limiter import RateLimiter
from ..ports.audit_logger import AuditLogger
from .phone import normalize
from .proof_token import ProofTokenIssuer, VerifiedPhone
from ...exceptions import (
    GatewayError,
    GatewayUnconfigured,
    MissingCode,
    OtpRateLimited,
    OtpVerificationFailed,
    PhoneAlreadyRegistered,
)

logger = logging.getLogger(__name__)

DEFAULT_PURPOSE = "business_signup"


def generate_code(length: int) -> str:
    """Uniform over [10**(length-1), 10**length), so codes never start with 0."""
    low = 10 ** (length - 1)
    return str(low + secrets.randbelow(9 * low))


@dataclass(frozen=True)
class OtpIssue:
    phone: str
    purpose: str
    expires_at: datetime
    ttl_seconds: int
    simulated: bool = False
    dev_code: Optional[str] = None


@dataclass
class OtpService:
    """Request / resend / verify flows for WhatsApp one-time codes.

    Per (phone, purpose) key the state runs NONE -> PENDING -> VERIFIED,
    with EXPIRED or NONE when a code lapses or is superseded. A new request
    always replaces the pending code.
    """
    otp_store: OtpStore
    business_repo: BusinessRepository
    gateway: MessagingGateway
    proof_issuer: Optional[ProofTokenIssuer] = None
    rate_limiter: Optional[RateLimiter] = None
    audit: Optional[AuditLogger] = None
    ttl_seconds: int = 300
    code_length: int = 6
    rate_limit: int = 3
    rate_window_seconds: int = 600
    simulated_fallback: bool = False
    code_generator: Callable[[int], str] = generate_code

    def request_otp(self, raw_phone: str, dial_code: str, purpose: str = DEFAULT_PURPOSE, locale: str = "en") -> OtpIssue:
        phone = normalize(raw_phone, dial_code)
        self._ensure_unregistered(phone, purpose)
        self._throttle(phone, purpose)

        code = self.code_generator(self.code_length)
        record = self.otp_store.upsert(phone, purpose, code, self.ttl_seconds)
        logger.info(f"OTP issued for purpose={purpose}, expires at {record.expires_at.isoformat()}")

        # A failed send leaves the stored code in place; the caller may resend or request again.
        result = self._deliver(phone, purpose, code, locale)
        self._audit("otp_requested", phone, purpose, details={"simulated": result.simulated, "message_id": result.message_id})
        return OtpIssue(
            phone=phone,
            purpose=purpose,
            expires_at=record.expires_at,
            ttl_seconds=self.ttl_seconds,
            simulated=result.simulated,
            dev_code=code if result.simulated else None,
        )

    def resend_otp(self, raw_phone: str, dial_code: str, purpose: str = DEFAULT_PURPOSE, locale: str = "en") -> OtpIssue:
        phone = normalize(raw_phone, dial_code)
        self._ensure_unregistered(phone, purpose)
        self._throttle(phone, purpose)

        record = self.otp_store.peek(phone, purpose)
        if record is None:
            self._audit("otp_resent", phone, purpose, success=False, details={"reason": NO_OTP})
            raise OtpVerificationFailed(NO_OTP)

        result = self._deliver(phone, purpose, record.code, locale)
        self._audit("otp_resent", phone, purpose, details={"simulated": result.simulated})
        return OtpIssue(
            phone=phone,
            purpose=purpose,
            expires_at=record.expires_at,
            ttl_seconds=self.ttl_seconds,
            simulated=result.simulated,
            dev_code=record.code if result.simulated else None,
        )

    def verify_otp(self, raw_phone: str, dial_code: str, purpose: str, supplied_code: Optional[str]) -> VerifiedPhone:
        code = (supplied_code or "").strip()
        if not code:
            raise MissingCode()
        phone = normalize(raw_phone, dial_code)
        # Registration may have completed between request and verify.
        self._ensure_unregistered(phone, purpose)

        result = self.otp_store.consume(phone, purpose, code)
        if not result.ok:
            self._audit("otp_verify_failed", phone, purpose, success=False, details={"reason": result.reason})
            raise OtpVerificationFailed(result.reason)

        token = self.proof_issuer.issue(phone, purpose) if self.proof_issuer else None
        self._audit("otp_verified", phone, purpose)
        return VerifiedPhone(phone=phone, purpose=purpose, proof_token=token)

    def _ensure_unregistered(self, phone: str, purpose: str) -> None:
        if self.business_repo.find_by_phone(phone) is not None:
            self._audit("otp_duplicate_phone", phone, purpose, success=False)
            raise PhoneAlreadyRegistered()

    def _throttle(self, phone: str, purpose: str) -> None:
        if self.rate_limiter is None:
            return
        if not self.rate_limiter.allow(f"otp:{purpose}:{phone}", self.rate_limit, self.rate_window_seconds):
            logger.warning(f"OTP rate limit exceeded for purpose={purpose}")
            self._audit("otp_rate_limited", phone, purpose, success=False)
            raise OtpRateLimited()

    def _deliver(self, phone: str, purpose: str, code: str, locale: str) -> SendResult:
        try:
            return self.gateway.send_otp(phone, code, locale)
        except GatewayUnconfigured as e:
            if not self.simulated_fallback:
                self._audit("otp_send_failed", phone, purpose, success=False, details={"reason": e.reason})
                raise
            logger.warning(f"SIMULATED WhatsApp send (gateway unconfigured) to {phone}: code {code}")
            return SendResult(message_id=None, status="simulated", simulated=True)
        except GatewayError as e:
            logger.error(f"OTP send failed ({e.reason}) for purpose={purpose}: {e} raw={e.raw_response!r}")
            self._audit("otp_send_failed", phone, purpose, success=False, details={"reason": e.reason})
            raise

    def _audit(self, action: str, phone: str, purpose: str, success: bool = True, details: Optional[dict] = None) -> None:
        if self.audit is not None:
            self.audit.log(action, phone, purpose=purpose, success=success, details=details)
