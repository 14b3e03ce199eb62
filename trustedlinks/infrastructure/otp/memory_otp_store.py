import threading
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Tuple

from ...application.ports.otp_store import OtpStore, OtpRecord, VerificationResult, NO_OTP, BAD_CODE, EXPIRED
from ...utils import utcnow
from .sql_otp_store import codes_match


class InMemoryOtpStore(OtpStore):
    """Process-local store for development and tests."""

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self.clock = clock
        self._records: Dict[Tuple[str, str], OtpRecord] = {}
        self._lock = threading.Lock()

    def upsert(self, phone: str, purpose: str, code: str, ttl_seconds: int) -> OtpRecord:
        now = self.clock()
        record = OtpRecord(phone=phone, purpose=purpose, code=code, created_at=now, expires_at=now + timedelta(seconds=ttl_seconds))
        with self._lock:
            self._records[(phone, purpose)] = record
        return record

    def consume(self, phone: str, purpose: str, supplied_code: str) -> VerificationResult:
        key = (phone, purpose)
        with self._lock:
            record = self._records.get(key)
            if record is None:
                return VerificationResult.failure(NO_OTP)
            if not codes_match(record.code, supplied_code):
                return VerificationResult.failure(BAD_CODE)
            del self._records[key]
            if record.is_expired(self.clock()):
                return VerificationResult.failure(EXPIRED)
            return VerificationResult.success()

    def peek(self, phone: str, purpose: str) -> Optional[OtpRecord]:
        with self._lock:
            record = self._records.get((phone, purpose))
        if record is None or record.is_expired(self.clock()):
            return None
        return record

    def purge_expired(self) -> int:
        now = self.clock()
        with self._lock:
            stale = [k for k, r in self._records.items() if r.is_expired(now)]
            for k in stale:
                del self._records[k]
        return len(stale)
