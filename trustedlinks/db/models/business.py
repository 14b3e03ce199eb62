# trustedlinks/db/models/business.py
from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime
import uuid

from ...utils import utcnow


class Business(SQLModel, table=True):
    __tablename__ = "businesses"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    name: str = Field(max_length=200)
    category: Optional[str] = Field(default=None, max_length=100)
    owner_id: Optional[str] = Field(default=None, index=True)
    whatsapp: Optional[str] = Field(default=None, max_length=15, unique=True, index=True)
    whatsapp_link: Optional[str] = Field(default=None, max_length=64)
    otp_verified: bool = Field(default=False)
    status: Optional[str] = Field(default=None, max_length=20, index=True)
    meta_verified: bool = Field(default=False)
    meta_status: Optional[str] = Field(default=None, max_length=50)
    verified_name: Optional[str] = Field(default=None, max_length=200)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
