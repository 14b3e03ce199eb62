import json
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

import redis

from ...application.ports.otp_store import OtpStore, OtpRecord, VerificationResult, NO_OTP, BAD_CODE, EXPIRED
from ...exceptions import StorageError
from ...utils import utcnow
from .sql_otp_store import codes_match

logger = logging.getLogger(__name__)

# Keys outlive expires_at by this much so a late attempt reports EXPIRED rather than NO_OTP
EXPIRY_GRACE_SECONDS = 3600


class RedisOtpStore(OtpStore):
    def __init__(self, client: "redis.Redis", prefix: str = "otp:", clock: Callable[[], datetime] = utcnow) -> None:
        self.client = client
        self.prefix = prefix
        self.clock = clock

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisOtpStore":
        return cls(redis.Redis.from_url(url, decode_responses=True), **kwargs)

    def _key(self, phone: str, purpose: str) -> str:
        return f"{self.prefix}{purpose}:{phone}"

    def _decode(self, phone: str, purpose: str, raw) -> OtpRecord:
        data = json.loads(raw)
        return OtpRecord(
            phone=phone,
            purpose=purpose,
            code=data["code"],
            created_at=datetime.fromisoformat(data["created_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
        )

    def upsert(self, phone: str, purpose: str, code: str, ttl_seconds: int) -> OtpRecord:
        now = self.clock()
        record = OtpRecord(phone=phone, purpose=purpose, code=code, created_at=now, expires_at=now + timedelta(seconds=ttl_seconds))
        payload = json.dumps({
            "code": code,
            "created_at": record.created_at.isoformat(),
            "expires_at": record.expires_at.isoformat(),
        })
        try:
            # SET replaces any previous value for the key atomically
            self.client.set(self._key(phone, purpose), payload, ex=ttl_seconds + EXPIRY_GRACE_SECONDS)
        except redis.RedisError as e:
            logger.error(f"Redis OTP upsert failed: {e}")
            raise StorageError("OTP upsert failed") from e
        return record

    def consume(self, phone: str, purpose: str, supplied_code: str) -> VerificationResult:
        key = self._key(phone, purpose)
        try:
            with self.client.pipeline() as pipe:
                try:
                    pipe.watch(key)
                    raw = pipe.get(key)
                    if raw is None:
                        return VerificationResult.failure(NO_OTP)
                    record = self._decode(phone, purpose, raw)
                    if not codes_match(record.code, supplied_code):
                        return VerificationResult.failure(BAD_CODE)
                    pipe.multi()
                    pipe.delete(key)
                    pipe.execute()
                except redis.WatchError:
                    # Replaced by a newer code between read and delete
                    return VerificationResult.failure(NO_OTP)
        except redis.RedisError as e:
            logger.error(f"Redis OTP consume failed: {e}")
            raise StorageError("OTP consume failed") from e

        if record.is_expired(self.clock()):
            return VerificationResult.failure(EXPIRED)
        return VerificationResult.success()

    def peek(self, phone: str, purpose: str) -> Optional[OtpRecord]:
        try:
            raw = self.client.get(self._key(phone, purpose))
        except redis.RedisError as e:
            raise StorageError("OTP lookup failed") from e
        if raw is None:
            return None
        record = self._decode(phone, purpose, raw)
        return None if record.is_expired(self.clock()) else record

    def purge_expired(self) -> int:
        # Redis evicts keys on its own
        return 0
