import jwt
import pytest

from trustedlinks.application.services.proof_token import ProofTokenIssuer
from trustedlinks.exceptions import InvalidProofToken


def test_issue_and_decode():
    issuer = ProofTokenIssuer(secret_key="test-secret")
    token = issuer.issue("962791234567", "business_signup")
    verified = issuer.decode(token)
    assert verified.phone == "962791234567"
    assert verified.purpose == "business_signup"
    assert verified.proof_token == token


def test_wrong_secret():
    token = ProofTokenIssuer(secret_key="a").issue("962791234567", "business_signup")
    with pytest.raises(InvalidProofToken):
        ProofTokenIssuer(secret_key="b").decode(token)


def test_expired_token():
    issuer = ProofTokenIssuer(secret_key="test-secret", expires_minutes=-1)
    with pytest.raises(InvalidProofToken):
        issuer.decode(issuer.issue("962791234567", "business_signup"))


def test_access_token_is_not_a_proof():
    token = jwt.encode({"sub": "user-1", "type": "access"}, "test-secret", algorithm="HS256")
    with pytest.raises(InvalidProofToken):
        ProofTokenIssuer(secret_key="test-secret").decode(token)
