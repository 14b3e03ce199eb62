from typing import Optional
import logging

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from ...db.models import Business
from ...application.ports.business_repo import BusinessRepository, BusinessRecord, BusinessStatus
from ...application.services.phone import whatsapp_link
from ...exceptions import PhoneAlreadyRegistered, StorageError
from ...utils import digits_only

logger = logging.getLogger(__name__)

RECORD_FIELDS = (
    "name", "category", "owner_id", "whatsapp", "whatsapp_link", "otp_verified",
    "meta_verified", "meta_status", "verified_name", "created_at", "updated_at",
)


class SqlBusinessRepository(BusinessRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, row: Business) -> BusinessRecord:
        return BusinessRecord(
            id=row.id,
            name=row.name,
            category=row.category,
            owner_id=row.owner_id,
            whatsapp=row.whatsapp,
            whatsapp_link=row.whatsapp_link,
            otp_verified=bool(row.otp_verified),
            status=BusinessStatus(row.status) if row.status else None,
            meta_verified=bool(row.meta_verified),
            meta_status=row.meta_status,
            verified_name=row.verified_name,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def find_by_phone(self, phone: str) -> Optional[BusinessRecord]:
        digits = digits_only(phone)
        if not digits:
            return None
        try:
            row = self.session.exec(
                select(Business).where(or_(Business.whatsapp == digits, Business.whatsapp_link == whatsapp_link(digits)))
            ).first()
        except SQLAlchemyError as e:
            raise StorageError("Business lookup failed") from e
        return self._to_dto(row) if row else None

    def get(self, business_id: str) -> Optional[BusinessRecord]:
        try:
            row = self.session.get(Business, business_id)
        except SQLAlchemyError as e:
            raise StorageError("Business lookup failed") from e
        return self._to_dto(row) if row else None

    def save(self, record: BusinessRecord) -> BusinessRecord:
        try:
            row = self.session.get(Business, record.id)
            if row is None:
                row = Business(id=record.id, name=record.name)
            for name in RECORD_FIELDS:
                setattr(row, name, getattr(record, name))
            row.status = record.status.value if record.status else None
            self.session.add(row)
            self.session.commit()
            self.session.refresh(row)
        except IntegrityError as e:
            self.session.rollback()
            # unique(whatsapp): another business claimed the number first
            logger.warning(f"Business {record.id} lost WhatsApp number race: {e}")
            raise PhoneAlreadyRegistered() from e
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Business save failed: {e}")
            raise StorageError("Business save failed") from e
        return self._to_dto(row)
