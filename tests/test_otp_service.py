import pytest

from trustedlinks.application.ports.business_repo import BusinessRecord
from trustedlinks.application.ports.otp_store import BAD_CODE, EXPIRED, NO_OTP
from trustedlinks.application.services.otp_service import OtpService, generate_code
from trustedlinks.application.services.proof_token import ProofTokenIssuer
from trustedlinks.exceptions import (
    GatewayRejected,
    GatewayUnconfigured,
    InvalidPhone,
    MissingCode,
    OtpRateLimited,
    OtpVerificationFailed,
    PhoneAlreadyRegistered,
)
from trustedlinks.infrastructure.otp.memory_otp_store import InMemoryOtpStore
from trustedlinks.infrastructure.rate_limit.memory_rate_limiter import InMemoryRateLimiter

from tests.fakes import FakeGateway

PHONE = "962791234567"
PURPOSE = "business_signup"


def make_service(business_repo, gateway, clock, audit=None, codes=("123456",), **kwargs):
    codes = list(codes)
    return OtpService(
        otp_store=InMemoryOtpStore(clock=clock),
        business_repo=business_repo,
        gateway=gateway,
        proof_issuer=ProofTokenIssuer(secret_key="test-secret"),
        rate_limiter=kwargs.pop("rate_limiter", None),
        audit=audit,
        code_generator=lambda n: codes.pop(0) if len(codes) > 1 else codes[0],
        **kwargs,
    )


def test_request_then_verify(business_repo, gateway, clock, audit):
    svc = make_service(business_repo, gateway, clock, audit=audit)

    issue = svc.request_otp("079 123 4567", "+962", PURPOSE)
    assert issue.phone == PHONE
    assert issue.ttl_seconds == 300
    assert issue.simulated is False
    assert issue.dev_code is None
    assert gateway.sent == [(PHONE, "123456", "en")]

    with pytest.raises(OtpVerificationFailed) as exc:
        svc.verify_otp("0791234567", "+962", PURPOSE, "000000")
    assert exc.value.reason == BAD_CODE

    verified = svc.verify_otp("0791234567", "+962", PURPOSE, "123456")
    assert verified.phone == PHONE
    decoded = svc.proof_issuer.decode(verified.proof_token)
    assert decoded.phone == PHONE
    assert decoded.purpose == PURPOSE

    with pytest.raises(OtpVerificationFailed) as exc:
        svc.verify_otp("0791234567", "+962", PURPOSE, "123456")
    assert exc.value.reason == NO_OTP
    assert audit.actions == ["otp_requested", "otp_verify_failed", "otp_verified", "otp_verify_failed"]


def test_registered_number_is_refused_before_sending(business_repo, gateway, clock):
    business_repo.add(BusinessRecord(id="b1", name="Cafe", whatsapp=PHONE, otp_verified=True))
    svc = make_service(business_repo, gateway, clock)

    with pytest.raises(PhoneAlreadyRegistered):
        svc.request_otp("0791234567", "+962", PURPOSE)
    assert gateway.sent == []
    assert svc.otp_store.peek(PHONE, PURPOSE) is None


def test_expired_code(business_repo, gateway, clock):
    svc = make_service(business_repo, gateway, clock)
    svc.request_otp("0791234567", "+962", PURPOSE)
    clock.advance(301)

    with pytest.raises(OtpVerificationFailed) as exc:
        svc.verify_otp("0791234567", "+962", PURPOSE, "123456")
    assert exc.value.reason == EXPIRED


def test_new_request_supersedes_pending_code(business_repo, gateway, clock):
    svc = make_service(business_repo, gateway, clock, codes=("111111", "222222"))
    svc.request_otp("0791234567", "+962", PURPOSE)
    svc.request_otp("0791234567", "+962", PURPOSE)

    with pytest.raises(OtpVerificationFailed) as exc:
        svc.verify_otp("0791234567", "+962", PURPOSE, "111111")
    assert exc.value.reason == BAD_CODE
    assert svc.verify_otp("0791234567", "+962", PURPOSE, "222222").phone == PHONE


@pytest.mark.parametrize("code", [None, "", "   "])
def test_missing_code_checked_first(business_repo, gateway, clock, code):
    svc = make_service(business_repo, gateway, clock)
    with pytest.raises(MissingCode):
        svc.verify_otp("not a phone", "+962", PURPOSE, code)


def test_invalid_phone_never_sends(business_repo, gateway, clock):
    svc = make_service(business_repo, gateway, clock)
    with pytest.raises(InvalidPhone):
        svc.request_otp("12", "+962", PURPOSE)
    assert gateway.sent == []


def test_send_failure_keeps_stored_code(business_repo, clock, audit):
    gateway = FakeGateway(error=GatewayRejected("Recipient not in allowed list"))
    svc = make_service(business_repo, gateway, clock, audit=audit)

    with pytest.raises(GatewayRejected):
        svc.request_otp("0791234567", "+962", PURPOSE)
    assert svc.otp_store.peek(PHONE, PURPOSE) is not None
    assert audit.entries[-1]["action"] == "otp_send_failed"
    assert audit.entries[-1]["details"]["reason"] == "GATEWAY_REJECTED"


def test_unconfigured_gateway_without_simulation(business_repo, clock):
    svc = make_service(business_repo, FakeGateway(error=GatewayUnconfigured()), clock)
    with pytest.raises(GatewayUnconfigured):
        svc.request_otp("0791234567", "+962", PURPOSE)


def test_simulated_send_returns_dev_code(business_repo, clock):
    svc = make_service(business_repo, FakeGateway(error=GatewayUnconfigured()), clock, simulated_fallback=True)
    issue = svc.request_otp("0791234567", "+962", PURPOSE)
    assert issue.simulated is True
    assert issue.dev_code == "123456"
    assert svc.verify_otp("0791234567", "+962", PURPOSE, issue.dev_code).phone == PHONE


def test_rate_limit(business_repo, gateway, clock):
    svc = make_service(business_repo, gateway, clock, rate_limiter=InMemoryRateLimiter(), rate_limit=2)
    svc.request_otp("0791234567", "+962", PURPOSE)
    svc.resend_otp("0791234567", "+962", PURPOSE)
    with pytest.raises(OtpRateLimited):
        svc.request_otp("0791234567", "+962", PURPOSE)
    assert len(gateway.sent) == 2


def test_resend_delivers_same_code(business_repo, gateway, clock, audit):
    svc = make_service(business_repo, gateway, clock, audit=audit, codes=("111111", "222222"))
    first = svc.request_otp("0791234567", "+962", PURPOSE)
    again = svc.resend_otp("0791234567", "+962", PURPOSE, locale="ar")

    assert again.expires_at == first.expires_at
    assert gateway.sent[-1] == (PHONE, "111111", "ar")
    assert audit.actions[-1] == "otp_resent"


def test_resend_without_pending_code(business_repo, gateway, clock):
    svc = make_service(business_repo, gateway, clock)
    with pytest.raises(OtpVerificationFailed) as exc:
        svc.resend_otp("0791234567", "+962", PURPOSE)
    assert exc.value.reason == NO_OTP
    assert gateway.sent == []


def test_registration_between_request_and_verify(business_repo, gateway, clock):
    svc = make_service(business_repo, gateway, clock)
    svc.request_otp("0791234567", "+962", PURPOSE)
    business_repo.add(BusinessRecord(id="b2", name="Other", whatsapp=PHONE, otp_verified=True))

    with pytest.raises(PhoneAlreadyRegistered):
        svc.verify_otp("0791234567", "+962", PURPOSE, "123456")


def test_purposes_do_not_share_codes(business_repo, gateway, clock):
    svc = make_service(business_repo, gateway, clock)
    svc.request_otp("0791234567", "+962", PURPOSE)
    with pytest.raises(OtpVerificationFailed) as exc:
        svc.verify_otp("0791234567", "+962", "login", "123456")
    assert exc.value.reason == NO_OTP


def test_generate_code_shape():
    for _ in range(200):
        code = generate_code(6)
        assert len(code) == 6
        assert code.isdigit()
        assert code[0] != "0"
