import logging
from typing import Iterable, Optional

import httpx

from ...config import settings
from ...application.ports.meta_verifier import MetaVerifier, MetaStatus
from ...exceptions import GatewayRejected, GatewayUnconfigured, GatewayUnreachable
from ...utils import digits_only

logger = logging.getLogger(__name__)

PHONE_NUMBER_FIELDS = "id,verified_name,code_verification_status,quality_rating,account_mode"


class MetaGraphVerifier(MetaVerifier):
    """Reads the business phone-number resource from the Graph API."""

    def __init__(
        self,
        token: Optional[str] = None,
        default_phone_id: Optional[str] = None,
        base_url: Optional[str] = None,
        sandbox_numbers: Optional[Iterable[str]] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.token = token if token is not None else settings.WHATSAPP_TOKEN
        self.default_phone_id = default_phone_id if default_phone_id is not None else settings.WHATSAPP_PHONE_ID
        self.base_url = base_url or settings.WHATSAPP_API_BASE_URL
        numbers = sandbox_numbers if sandbox_numbers is not None else settings.meta_sandbox_numbers_list
        self.sandbox_numbers = {digits_only(n) for n in numbers}
        self.timeout = timeout or settings.WHATSAPP_TIMEOUT_SECONDS
        self._client = client

    def check(self, phone: str, phone_number_id: Optional[str] = None) -> MetaStatus:
        if digits_only(phone) in self.sandbox_numbers:
            logger.info("Sandbox number, treated as Meta verified")
            return MetaStatus(verified=True, verified_name="SANDBOX TEST NUMBER", meta_status="SANDBOX")

        phone_number_id = phone_number_id or self.default_phone_id
        if not phone_number_id or not self.token:
            raise GatewayUnconfigured("phone_number_id or WhatsApp token missing for Meta check")

        url = f"{self.base_url.rstrip('/')}/{phone_number_id}"
        headers = {"Authorization": f"Bearer {self.token}"}
        params = {"fields": PHONE_NUMBER_FIELDS}
        try:
            if self._client is not None:
                resp = self._client.get(url, params=params, headers=headers, timeout=self.timeout)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    resp = client.get(url, params=params, headers=headers)
        except httpx.HTTPError as e:
            raise GatewayUnreachable(f"Meta Graph API unreachable: {e}") from e

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}
        if resp.status_code >= 300 or "error" in data:
            error = data.get("error") or {}
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise GatewayRejected(message or f"HTTP {resp.status_code}", raw_response=data or resp.text)

        verified_name = data.get("verified_name") or None
        code_status = data.get("code_verification_status")
        account_mode = data.get("account_mode")
        verified = (code_status == "VERIFIED" or account_mode == "LIVE") and bool(verified_name)
        return MetaStatus(
            verified=verified,
            verified_name=verified_name,
            meta_status=code_status or account_mode or "UNKNOWN",
            raw=data,
        )
