# trustedlinks/schemas/otp.py
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Optional, Dict, Any, List
from datetime import datetime


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RequestOtpRequest(CamelModel):
    phone: str = Field(..., min_length=1, max_length=32, description="WhatsApp number as typed by the user")
    dial_code: str = Field(..., alias="dialCode", min_length=1, max_length=6, description="Country dial code, e.g. +962")
    purpose: Optional[str] = Field(None, max_length=50)
    locale: str = Field("en", max_length=10, description="Message language: 'en' or 'ar'")

    @field_validator("purpose")
    @classmethod
    def validate_purpose(cls, v):
        if v is None:
            return v
        v = v.strip()
        if v and not v.replace("_", "").isalnum():
            raise ValueError("Purpose may only contain letters, digits and underscores")
        return v or None


class VerifyOtpRequest(RequestOtpRequest):
    code: Optional[str] = Field(None, max_length=10)
    business_id: Optional[str] = Field(None, alias="businessId")


class OtpIssuedResponse(CamelModel):
    success: bool = True
    message: str
    expires_in: int = Field(..., alias="expiresIn")
    simulated: bool = False
    dev_code: Optional[str] = Field(None, alias="devCode")


class BusinessResponse(CamelModel):
    id: str
    name: str
    category: Optional[str] = None
    whatsapp: Optional[str] = None
    whatsapp_link: Optional[str] = Field(None, alias="whatsappLink")
    otp_verified: bool = Field(False, alias="otpVerified")
    status: Optional[str] = None
    meta_verified: bool = Field(False, alias="metaVerified")
    meta_status: Optional[str] = Field(None, alias="metaStatus")
    verified_name: Optional[str] = Field(None, alias="verifiedName")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")


class VerifyOtpResponse(CamelModel):
    success: bool = True
    message: str
    verified_phone: str = Field(..., alias="verifiedPhone")
    whatsapp_link: str = Field(..., alias="whatsappLink")
    proof_token: Optional[str] = Field(None, alias="proofToken")
    business: Optional[BusinessResponse] = None


class BusinessDraftRequest(CamelModel):
    name: str = Field(..., min_length=2, max_length=200)
    category: Optional[str] = Field(None, max_length=100)
    owner_id: Optional[str] = Field(None, alias="ownerId")


class ActivateBusinessRequest(CamelModel):
    proof_token: str = Field(..., alias="proofToken", min_length=1)
    business_id: Optional[str] = Field(None, alias="businessId")
    business: Optional[BusinessDraftRequest] = None

    @model_validator(mode="after")
    def require_target(self):
        if not self.business_id and self.business is None:
            raise ValueError("Either businessId or business details are required")
        return self


class ActivateBusinessResponse(CamelModel):
    success: bool = True
    business: BusinessResponse


class CheckMetaRequest(CamelModel):
    phone: str = Field(..., min_length=1, max_length=32)
    dial_code: str = Field(..., alias="dialCode", min_length=1, max_length=6)
    phone_number_id: Optional[str] = Field(None, alias="phoneNumberId")


class CheckMetaResponse(CamelModel):
    success: bool = True
    verified: bool
    verified_name: Optional[str] = Field(None, alias="verifiedName")
    meta_status: str = Field(..., alias="metaStatus")
    business: Optional[BusinessResponse] = None


class DialCodesResponse(BaseModel):
    countries: List[Dict[str, Any]]
