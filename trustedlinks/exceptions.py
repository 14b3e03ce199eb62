import logging
from typing import Optional, Any, Dict

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class TrustedLinksError(Exception):
    """Base for every error that may cross the service boundary.

    ``reason`` is the stable machine-readable code handed to the UI and
    ``public_message`` the only text a caller ever sees.
    """
    kind: str = "internal"
    reason: str = "INTERNAL_ERROR"
    status_code: int = 500
    public_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.public_message)


class ConfigurationError(TrustedLinksError):
    kind = "configuration"
    reason = "MISCONFIGURED"


# Input errors
class InvalidPhone(TrustedLinksError):
    kind = "input"
    reason = "INVALID_PHONE"
    status_code = 400
    public_message = "Invalid WhatsApp number."


class MissingCode(TrustedLinksError):
    kind = "input"
    reason = "MISSING_CODE"
    status_code = 400
    public_message = "Verification code is required."


# Conflict errors
class PhoneAlreadyRegistered(TrustedLinksError):
    kind = "conflict"
    reason = "PHONE_ALREADY_REGISTERED"
    status_code = 409
    public_message = "This WhatsApp number is already registered."


# OTP-state errors
OTP_FAILURE_MESSAGES = {
    "NO_OTP": "No pending code for this number. Please request a new code.",
    "BAD_CODE": "Incorrect verification code. Please try again.",
    "EXPIRED": "The verification code has expired. Please request a new code.",
}


class OtpVerificationFailed(TrustedLinksError):
    kind = "otp_state"
    status_code = 400

    def __init__(self, reason: str):
        self.reason = reason
        self.public_message = OTP_FAILURE_MESSAGES.get(reason, "Verification failed.")
        super().__init__(self.public_message)


class OtpRateLimited(TrustedLinksError):
    kind = "rate_limit"
    reason = "RATE_LIMIT_EXCEEDED"
    status_code = 429
    public_message = "Too many code requests. Please try again later."


# Gateway errors
class GatewayError(TrustedLinksError):
    kind = "gateway"
    status_code = 502
    public_message = "Failed to send the verification code. Please try again."

    def __init__(self, message: Optional[str] = None, raw_response: Optional[Any] = None):
        self.raw_response = raw_response
        super().__init__(message)


class GatewayUnconfigured(GatewayError):
    reason = "GATEWAY_UNCONFIGURED"
    status_code = 503


class GatewayRejected(GatewayError):
    reason = "GATEWAY_REJECTED"

    def __init__(self, provider_message: str, raw_response: Optional[Any] = None):
        self.provider_message = provider_message
        super().__init__(f"Provider rejected message: {provider_message}", raw_response=raw_response)


class GatewayUnreachable(GatewayError):
    reason = "GATEWAY_UNREACHABLE"
    status_code = 504


# Storage errors
class StorageError(TrustedLinksError):
    kind = "storage"
    reason = "STORAGE_ERROR"
    status_code = 500
    public_message = "Temporary storage failure. Please try again."


class BusinessNotFound(TrustedLinksError):
    kind = "not_found"
    reason = "BUSINESS_NOT_FOUND"
    status_code = 404
    public_message = "Business not found."


class InvalidProofToken(TrustedLinksError):
    kind = "auth"
    reason = "INVALID_PROOF_TOKEN"
    status_code = 401
    public_message = "Verification has expired. Please verify your WhatsApp number again."


def create_error_response(error_message: str, reason: Optional[str] = None) -> Dict[str, Any]:
    """Create a standardized error response"""
    body: Dict[str, Any] = {"success": False, "error": error_message}
    if reason:
        body["reason"] = reason
    return body


async def trustedlinks_exception_handler(request: Request, exc: TrustedLinksError) -> JSONResponse:
    if isinstance(exc, GatewayError):
        logger.error(f"{exc.reason} on {request.url.path}: {exc} raw={exc.raw_response!r}")
    elif exc.status_code >= 500:
        logger.error(f"{exc.reason} on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.public_message, exc.reason),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=422,
        content=create_error_response(message, "INVALID_REQUEST"),
    )
