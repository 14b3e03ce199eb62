import logging
import uuid
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

from ..ports.business_repo import BusinessRepository, BusinessRecord, BusinessDraft, BusinessStatus
from ..ports.meta_verifier import MetaStatus
from ..ports.audit_logger import AuditLogger
from .phone import whatsapp_link
from .proof_token import VerifiedPhone
from .otp_service import DEFAULT_PURPOSE
from ...exceptions import BusinessNotFound, InvalidProofToken, PhoneAlreadyRegistered
from ...utils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class BusinessActivation:
    """Applies a verified WhatsApp number to a business.

    ``apply_verified_phone`` is the only writer of ``otp_verified``. With
    ``require_meta_verification`` the business waits in PendingMeta until
    ``apply_meta_status`` reports the number as verified by Meta.
    """
    business_repo: BusinessRepository
    require_meta_verification: bool = False
    audit: Optional[AuditLogger] = None
    activation_purpose: str = DEFAULT_PURPOSE
    id_factory: Callable[[], str] = field(default=lambda: str(uuid.uuid4()))

    def check_target(self, target: Union[str, BusinessDraft], phone: str, purpose: str) -> None:
        """Raise what ``apply_verified_phone`` would raise for this target, without writing."""
        self._resolve(target, phone, purpose)

    def apply_verified_phone(self, target: Union[str, BusinessDraft], verified: VerifiedPhone) -> BusinessRecord:
        phone = verified.phone
        record = self._resolve(target, phone, verified.purpose)

        if record.otp_verified and record.whatsapp == phone:
            return record

        if record.whatsapp != phone:
            record.meta_verified = False
            record.meta_status = None
            record.verified_name = None
        record.whatsapp = phone
        record.whatsapp_link = whatsapp_link(phone)
        record.otp_verified = True
        record.status = self._status_after_otp(record)
        record.updated_at = utcnow()

        saved = self.business_repo.save(record)
        logger.info(f"Business {saved.id} verified WhatsApp number, status={saved.status.value}")
        if self.audit is not None:
            self.audit.log("business_activated", phone, purpose=verified.purpose, details={"business_id": saved.id, "status": saved.status.value})
        return saved

    def apply_meta_status(self, phone: str, status: MetaStatus) -> Optional[BusinessRecord]:
        record = self.business_repo.find_by_phone(phone)
        if record is None:
            return None
        record.meta_verified = status.verified
        record.meta_status = status.meta_status
        record.verified_name = status.verified_name
        if record.otp_verified and record.status != BusinessStatus.SUSPENDED:
            record.status = BusinessStatus.ACTIVE if status.verified else BusinessStatus.PENDING_META
        record.updated_at = utcnow()
        saved = self.business_repo.save(record)
        logger.info(f"Business {saved.id} meta_status={status.meta_status}, status={saved.status.value if saved.status else None}")
        return saved

    def _resolve(self, target: Union[str, BusinessDraft], phone: str, purpose: str) -> BusinessRecord:
        if purpose != self.activation_purpose:
            raise InvalidProofToken(f"Verification issued for purpose {purpose!r}")
        holder = self.business_repo.find_by_phone(phone)

        if isinstance(target, BusinessDraft):
            if holder is not None:
                # Same draft resubmitted after a successful activation
                if holder.otp_verified and holder.name == target.name and holder.owner_id == target.owner_id:
                    return holder
                raise PhoneAlreadyRegistered()
            return BusinessRecord(
                id=self.id_factory(),
                name=target.name,
                category=target.category,
                owner_id=target.owner_id,
            )

        record = self.business_repo.get(target)
        if record is None:
            raise BusinessNotFound()
        if holder is not None and holder.id != record.id:
            raise PhoneAlreadyRegistered()
        return record

    def _status_after_otp(self, record: BusinessRecord) -> BusinessStatus:
        if record.status == BusinessStatus.SUSPENDED:
            return BusinessStatus.SUSPENDED
        if self.require_meta_verification and not record.meta_verified:
            return BusinessStatus.PENDING_META
        return BusinessStatus.ACTIVE
