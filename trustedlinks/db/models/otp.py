# trustedlinks/db/models/otp.py
from sqlmodel import SQLModel, Field
from sqlalchemy import UniqueConstraint
from datetime import datetime
import uuid

from ...utils import utcnow


class OTPCode(SQLModel, table=True):
    __tablename__ = "otp_codes"
    # One live code per (phone, purpose)
    __table_args__ = (UniqueConstraint("phone", "purpose", name="uq_otp_codes_phone_purpose"),)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    phone: str = Field(max_length=15, index=True)
    purpose: str = Field(max_length=50, index=True)
    code: str = Field(max_length=10)
    expires_at: datetime = Field(index=True)
    created_at: datetime = Field(default_factory=utcnow)
