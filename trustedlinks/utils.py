from datetime import datetime, timezone
import hashlib


def utcnow() -> datetime:
    """Naive UTC timestamp, the form the SQL columns store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def hash_phone_number(phone: str) -> str:
    return hashlib.sha256(phone.encode()).hexdigest()


def digits_only(value: str) -> str:
    return "".join(ch for ch in (value or "") if ch.isdigit())
