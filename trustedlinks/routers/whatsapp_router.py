from fastapi import APIRouter, Depends
import logging

from ..config import settings
from ..dependencies import (
    get_otp_service,
    get_business_activation,
    get_meta_verifier,
    get_proof_issuer,
)
from ..application.ports.business_repo import BusinessRecord, BusinessDraft
from ..application.ports.meta_verifier import MetaVerifier
from ..application.services.otp_service import OtpService, OtpIssue
from ..application.services.business_activation import BusinessActivation
from ..application.services.proof_token import ProofTokenIssuer
from ..application.services.phone import SUPPORTED_DIAL_CODES, normalize, whatsapp_link
from ..schemas import (
    RequestOtpRequest, VerifyOtpRequest, OtpIssuedResponse, VerifyOtpResponse,
    ActivateBusinessRequest, ActivateBusinessResponse, BusinessResponse,
    CheckMetaRequest, CheckMetaResponse, DialCodesResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/whatsapp", tags=["WhatsApp Verification"])


def _business_response(record: BusinessRecord) -> BusinessResponse:
    return BusinessResponse(
        id=record.id,
        name=record.name,
        category=record.category,
        whatsapp=record.whatsapp,
        whatsapp_link=record.whatsapp_link,
        otp_verified=record.otp_verified,
        status=record.status.value if record.status else None,
        meta_verified=record.meta_verified,
        meta_status=record.meta_status,
        verified_name=record.verified_name,
        updated_at=record.updated_at,
    )


def _issued_response(issue: OtpIssue, message: str) -> OtpIssuedResponse:
    return OtpIssuedResponse(
        message=message,
        expires_in=issue.ttl_seconds,
        simulated=issue.simulated,
        dev_code=issue.dev_code,
    )


@router.post("/request-otp", response_model=OtpIssuedResponse, response_model_by_alias=True, response_model_exclude_none=True)
def request_otp(payload: RequestOtpRequest, otp_service: OtpService = Depends(get_otp_service)):
    """Check the number is free, issue a fresh code and send it over WhatsApp."""
    issue = otp_service.request_otp(
        payload.phone,
        payload.dial_code,
        payload.purpose or settings.OTP_DEFAULT_PURPOSE,
        payload.locale,
    )
    return _issued_response(issue, "OTP sent successfully.")


@router.post("/resend-otp", response_model=OtpIssuedResponse, response_model_by_alias=True, response_model_exclude_none=True)
def resend_otp(payload: RequestOtpRequest, otp_service: OtpService = Depends(get_otp_service)):
    issue = otp_service.resend_otp(
        payload.phone,
        payload.dial_code,
        payload.purpose or settings.OTP_DEFAULT_PURPOSE,
        payload.locale,
    )
    return _issued_response(issue, "OTP resent successfully.")


@router.post("/verify-otp", response_model=VerifyOtpResponse, response_model_by_alias=True, response_model_exclude_none=True)
def verify_otp(
    payload: VerifyOtpRequest,
    otp_service: OtpService = Depends(get_otp_service),
    activation: BusinessActivation = Depends(get_business_activation),
):
    """Consume the code. With ``businessId`` the verified number is applied to that business right away."""
    purpose = payload.purpose or settings.OTP_DEFAULT_PURPOSE
    if payload.business_id and (payload.code or "").strip():
        # Refuse an unusable target before the code is consumed
        activation.check_target(payload.business_id, normalize(payload.phone, payload.dial_code), purpose)
    verified = otp_service.verify_otp(
        payload.phone,
        payload.dial_code,
        purpose,
        payload.code,
    )
    business = None
    if payload.business_id:
        business = _business_response(activation.apply_verified_phone(payload.business_id, verified))
    return VerifyOtpResponse(
        message="WhatsApp number verified.",
        verified_phone=verified.phone,
        whatsapp_link=whatsapp_link(verified.phone),
        proof_token=verified.proof_token,
        business=business,
    )


@router.post("/activate", response_model=ActivateBusinessResponse, response_model_by_alias=True)
def activate_business(
    payload: ActivateBusinessRequest,
    proof_issuer: ProofTokenIssuer = Depends(get_proof_issuer),
    activation: BusinessActivation = Depends(get_business_activation),
):
    verified = proof_issuer.decode(payload.proof_token)
    if payload.business_id:
        target = payload.business_id
    else:
        target = BusinessDraft(
            name=payload.business.name,
            category=payload.business.category,
            owner_id=payload.business.owner_id,
        )
    record = activation.apply_verified_phone(target, verified)
    return ActivateBusinessResponse(business=_business_response(record))


@router.post("/check-meta", response_model=CheckMetaResponse, response_model_by_alias=True, response_model_exclude_none=True)
def check_meta(
    payload: CheckMetaRequest,
    verifier: MetaVerifier = Depends(get_meta_verifier),
    activation: BusinessActivation = Depends(get_business_activation),
):
    """Secondary Meta business verification; promotes PendingMeta businesses once verified."""
    phone = normalize(payload.phone, payload.dial_code)
    status = verifier.check(phone, payload.phone_number_id)
    record = activation.apply_meta_status(phone, status)
    return CheckMetaResponse(
        verified=status.verified,
        verified_name=status.verified_name,
        meta_status=status.meta_status,
        business=_business_response(record) if record else None,
    )


@router.get("/dial-codes", response_model=DialCodesResponse)
def dial_codes():
    return DialCodesResponse(countries=SUPPORTED_DIAL_CODES)
