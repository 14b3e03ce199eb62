from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Protocol

from ...utils import utcnow


class BusinessStatus(str, Enum):
    ACTIVE = "Active"
    PENDING_META = "PendingMeta"
    SUSPENDED = "Suspended"


@dataclass
class BusinessRecord:
    id: str
    name: str
    category: Optional[str] = None
    owner_id: Optional[str] = None
    whatsapp: Optional[str] = None
    whatsapp_link: Optional[str] = None
    otp_verified: bool = False
    status: Optional[BusinessStatus] = None
    meta_verified: bool = False
    meta_status: Optional[str] = None
    verified_name: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class BusinessDraft:
    """Business details submitted before the WhatsApp number is verified."""
    name: str
    category: Optional[str] = None
    owner_id: Optional[str] = None


class BusinessRepository(Protocol):
    def find_by_phone(self, phone: str) -> Optional[BusinessRecord]:
        ...

    def get(self, business_id: str) -> Optional[BusinessRecord]:
        ...

    def save(self, record: BusinessRecord) -> BusinessRecord:
        ...
