import logging
import secrets
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import delete
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from ...db.models import OTPCode
from ...application.ports.otp_store import OtpStore, OtpRecord, VerificationResult, NO_OTP, BAD_CODE, EXPIRED
from ...exceptions import StorageError
from ...utils import utcnow

logger = logging.getLogger(__name__)


def codes_match(stored: str, supplied: str) -> bool:
    return secrets.compare_digest(stored.encode(), supplied.encode())


class SqlOtpStore(OtpStore):
    """OTP records in the ``otp_codes`` table.

    The unique (phone, purpose) constraint backs the single-live-code rule:
    replacing a code is a delete and an insert inside one transaction, so a
    failed upsert rolls back to the previous state.
    """

    def __init__(self, engine: Engine, clock: Callable[[], datetime] = utcnow):
        self.engine = engine
        self.clock = clock

    def _to_record(self, row: OTPCode) -> OtpRecord:
        return OtpRecord(
            phone=row.phone,
            purpose=row.purpose,
            code=row.code,
            created_at=row.created_at,
            expires_at=row.expires_at,
        )

    def upsert(self, phone: str, purpose: str, code: str, ttl_seconds: int) -> OtpRecord:
        # A concurrent upsert for the same key can win the insert race once; retry so the latest call wins.
        for attempt in range(2):
            now = self.clock()
            row = OTPCode(
                phone=phone,
                purpose=purpose,
                code=code,
                created_at=now,
                expires_at=now + timedelta(seconds=ttl_seconds),
            )
            try:
                with Session(self.engine) as session:
                    for old in session.exec(select(OTPCode).where(OTPCode.phone == phone, OTPCode.purpose == purpose)).all():
                        session.delete(old)
                    session.flush()
                    session.add(row)
                    session.commit()
                    return self._to_record(row)
            except IntegrityError as e:
                if attempt == 0:
                    logger.warning(f"Concurrent OTP upsert for purpose={purpose}, retrying")
                    continue
                raise StorageError("OTP upsert conflict") from e
            except SQLAlchemyError as e:
                logger.error(f"OTP upsert failed: {e}")
                raise StorageError("OTP upsert failed") from e
        raise StorageError("OTP upsert failed")

    def consume(self, phone: str, purpose: str, supplied_code: str) -> VerificationResult:
        now = self.clock()
        try:
            with Session(self.engine) as session:
                row = session.exec(
                    select(OTPCode).where(OTPCode.phone == phone, OTPCode.purpose == purpose)
                ).first()
                if row is None:
                    return VerificationResult.failure(NO_OTP)
                if not codes_match(row.code, supplied_code):
                    return VerificationResult.failure(BAD_CODE)

                expired = now > row.expires_at
                result = session.execute(delete(OTPCode).where(OTPCode.id == row.id))
                session.commit()
        except SQLAlchemyError as e:
            logger.error(f"OTP consume failed: {e}")
            raise StorageError("OTP consume failed") from e

        if result.rowcount == 0:
            # Consumed or replaced by a concurrent call
            return VerificationResult.failure(NO_OTP)
        if expired:
            return VerificationResult.failure(EXPIRED)
        return VerificationResult.success()

    def peek(self, phone: str, purpose: str) -> Optional[OtpRecord]:
        try:
            with Session(self.engine) as session:
                row = session.exec(
                    select(OTPCode).where(OTPCode.phone == phone, OTPCode.purpose == purpose)
                ).first()
        except SQLAlchemyError as e:
            raise StorageError("OTP lookup failed") from e
        if row is None or self.clock() > row.expires_at:
            return None
        return self._to_record(row)

    def purge_expired(self) -> int:
        try:
            with Session(self.engine) as session:
                result = session.execute(delete(OTPCode).where(OTPCode.expires_at < self.clock()))
                session.commit()
        except SQLAlchemyError as e:
            raise StorageError("OTP purge failed") from e
        if result.rowcount:
            logger.info(f"Purged {result.rowcount} expired OTP codes")
        return result.rowcount
