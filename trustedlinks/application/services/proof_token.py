from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from ...exceptions import InvalidProofToken

PROOF_TOKEN_TYPE = "whatsapp_proof"


@dataclass(frozen=True)
class VerifiedPhone:
    phone: str
    purpose: str
    proof_token: Optional[str] = None


@dataclass
class ProofTokenIssuer:
    secret_key: str
    algorithm: str = "HS256"
    expires_minutes: int = 15

    def issue(self, phone: str, purpose: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": phone,
            "purpose": purpose,
            "type": PROOF_TOKEN_TYPE,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(minutes=self.expires_minutes)).timestamp()),
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def decode(self, token: str) -> VerifiedPhone:
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.PyJWTError as e:
            raise InvalidProofToken(f"Proof token rejected: {e}")
        if payload.get("type") != PROOF_TOKEN_TYPE or not payload.get("sub"):
            raise InvalidProofToken("Not a WhatsApp verification proof")
        return VerifiedPhone(phone=payload["sub"], purpose=payload.get("purpose", ""), proof_token=token)
