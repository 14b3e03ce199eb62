# Minimal DI for services
from functools import lru_cache

from fastapi import Depends
from sqlmodel import Session

from .config import settings
from .database import engine, get_session
from .application.ports.otp_store import OtpStore
from .application.ports.business_repo import BusinessRepository
from .application.ports.messaging_gateway import MessagingGateway
from .application.ports.rate_limiter import RateLimiter
from .application.ports.audit_logger import AuditLogger
from .application.ports.meta_verifier import MetaVerifier
from .application.services.otp_service import OtpService
from .application.services.business_activation import BusinessActivation
from .application.services.proof_token import ProofTokenIssuer
from .infrastructure.otp.sql_otp_store import SqlOtpStore
from .infrastructure.otp.redis_otp_store import RedisOtpStore
from .infrastructure.otp.memory_otp_store import InMemoryOtpStore
from .infrastructure.messaging.whatsapp_cloud_gateway import WhatsAppCloudGateway
from .infrastructure.messaging.twilio_whatsapp_gateway import TwilioWhatsAppGateway
from .infrastructure.persistence.sql_business_repository import SqlBusinessRepository
from .infrastructure.persistence.json_business_repository import JsonFileBusinessRepository
from .infrastructure.rate_limit.memory_rate_limiter import InMemoryRateLimiter
from .infrastructure.rate_limit.redis_rate_limiter import RedisRateLimiter
from .infrastructure.audit.std_logger import StdAuditLogger
from .infrastructure.meta.graph_verifier import MetaGraphVerifier


@lru_cache()
def get_otp_store() -> OtpStore:
    if settings.OTP_STORE_BACKEND == "redis":
        return RedisOtpStore.from_url(settings.REDIS_URL)
    if settings.OTP_STORE_BACKEND == "memory":
        return InMemoryOtpStore()
    return SqlOtpStore(engine)


@lru_cache()
def get_rate_limiter() -> RateLimiter:
    if settings.REDIS_URL:
        return RedisRateLimiter.from_url(settings.REDIS_URL)
    return InMemoryRateLimiter()


@lru_cache()
def get_gateway() -> MessagingGateway:
    if settings.MESSAGING_PROVIDER == "twilio":
        return TwilioWhatsAppGateway()
    return WhatsAppCloudGateway()


@lru_cache()
def get_audit_logger() -> AuditLogger:
    return StdAuditLogger()


def get_proof_issuer() -> ProofTokenIssuer:
    return ProofTokenIssuer(
        secret_key=settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
        expires_minutes=settings.PROOF_TOKEN_EXPIRE_MINUTES,
    )


def get_meta_verifier() -> MetaVerifier:
    return MetaGraphVerifier()


def get_business_repo(session: Session = Depends(get_session)) -> BusinessRepository:
    if settings.BUSINESS_STORE_BACKEND == "json":
        return JsonFileBusinessRepository(settings.BUSINESS_JSON_PATH)
    return SqlBusinessRepository(session)


def get_otp_service(
    otp_store: OtpStore = Depends(get_otp_store),
    business_repo: BusinessRepository = Depends(get_business_repo),
    gateway: MessagingGateway = Depends(get_gateway),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
    audit: AuditLogger = Depends(get_audit_logger),
    proof_issuer: ProofTokenIssuer = Depends(get_proof_issuer),
) -> OtpService:
    return OtpService(
        otp_store=otp_store,
        business_repo=business_repo,
        gateway=gateway,
        proof_issuer=proof_issuer,
        rate_limiter=rate_limiter,
        audit=audit,
        ttl_seconds=settings.OTP_TTL_SECONDS,
        code_length=settings.OTP_LENGTH,
        rate_limit=settings.OTP_RATE_LIMIT,
        rate_window_seconds=settings.OTP_RATE_WINDOW_SECONDS,
        # validate_settings refuses simulated send in production
        simulated_fallback=settings.WHATSAPP_SIMULATED_SEND and not settings.is_production,
    )


def get_business_activation(
    business_repo: BusinessRepository = Depends(get_business_repo),
    audit: AuditLogger = Depends(get_audit_logger),
) -> BusinessActivation:
    return BusinessActivation(
        business_repo=business_repo,
        require_meta_verification=settings.REQUIRE_META_VERIFICATION,
        audit=audit,
        activation_purpose=settings.OTP_DEFAULT_PURPOSE,
    )
