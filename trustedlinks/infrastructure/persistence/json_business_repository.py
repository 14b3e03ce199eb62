import json
import logging
import os
import re
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ...application.ports.business_repo import BusinessRepository, BusinessRecord, BusinessStatus
from ...exceptions import PhoneAlreadyRegistered, StorageError
from ...utils import digits_only, utcnow

logger = logging.getLogger(__name__)

WA_LINK_RE = re.compile(r"wa\.me/(\d+)")


def _stored_phone(entry: Dict[str, Any]) -> str:
    stored = digits_only(entry.get("whatsapp") or "")
    if stored:
        return stored
    match = WA_LINK_RE.search(entry.get("whatsappLink") or "")
    return match.group(1) if match else ""


def _parse_dt(value: Optional[str]) -> datetime:
    if not value:
        return utcnow()
    return datetime.fromisoformat(value.replace("Z", "+00:00")).replace(tzinfo=None)


class JsonFileBusinessRepository(BusinessRepository):
    """Businesses kept in the ``businesses`` array of a flat JSON document.

    Keys this service does not own (clicks, media links, ...) are preserved
    on save. Writes go to a temp file that replaces the document.
    """

    # Shared by every instance; requests build their own repository
    _lock = threading.RLock()

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {"businesses": []}
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as e:
            logger.error(f"Cannot read {self.path}: {e}")
            raise StorageError("Business store unreadable") from e
        if not isinstance(data, dict):
            raise StorageError("Business store is not a JSON object")
        if not isinstance(data.get("businesses"), list):
            data["businesses"] = []
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            with tmp.open("w", encoding="utf-8") as fh:
                json.dump(data, fh, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
        except OSError as e:
            logger.error(f"Cannot write {self.path}: {e}")
            raise StorageError("Business store write failed") from e

    def _to_record(self, entry: Dict[str, Any]) -> BusinessRecord:
        status = entry.get("status")
        return BusinessRecord(
            id=str(entry["id"]),
            name=entry.get("name", ""),
            category=entry.get("category"),
            owner_id=entry.get("owner") or entry.get("ownerUserId"),
            whatsapp=entry.get("whatsapp") or None,
            whatsapp_link=entry.get("whatsappLink") or None,
            otp_verified=bool(entry.get("otpVerified", False)),
            status=BusinessStatus(status) if status in BusinessStatus._value2member_map_ else None,
            meta_verified=bool(entry.get("metaVerified", False)),
            meta_status=entry.get("meta_status"),
            verified_name=entry.get("verified_name"),
            created_at=_parse_dt(entry.get("createdAt")),
            updated_at=_parse_dt(entry.get("updatedAt")),
        )

    def _to_entry(self, record: BusinessRecord, existing: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        entry = dict(existing or {})
        entry.update({
            "id": record.id,
            "name": record.name,
            "category": record.category,
            "owner": record.owner_id,
            "whatsapp": record.whatsapp,
            "whatsappLink": record.whatsapp_link,
            "otpVerified": record.otp_verified,
            "status": record.status.value if record.status else None,
            "metaVerified": record.meta_verified,
            "meta_status": record.meta_status,
            "verified_name": record.verified_name,
            "createdAt": record.created_at.isoformat(),
            "updatedAt": record.updated_at.isoformat(),
        })
        return entry

    def find_by_phone(self, phone: str) -> Optional[BusinessRecord]:
        digits = digits_only(phone)
        if not digits:
            return None
        with self._lock:
            data = self._load()
        for entry in data["businesses"]:
            if _stored_phone(entry) == digits:
                return self._to_record(entry)
        return None

    def get(self, business_id: str) -> Optional[BusinessRecord]:
        with self._lock:
            data = self._load()
        for entry in data["businesses"]:
            if str(entry.get("id")) == str(business_id):
                return self._to_record(entry)
        return None

    def save(self, record: BusinessRecord) -> BusinessRecord:
        phone = digits_only(record.whatsapp or "")
        with self._lock:
            data = self._load()
            businesses = data["businesses"]
            index = None
            for i, entry in enumerate(businesses):
                if str(entry.get("id")) == record.id:
                    index = i
                elif phone and _stored_phone(entry) == phone:
                    raise PhoneAlreadyRegistered()
            if index is None:
                businesses.append(self._to_entry(record))
            else:
                businesses[index] = self._to_entry(record, businesses[index])
            self._write(data)
        return record
