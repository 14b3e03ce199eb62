import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import httpx

from ...config import settings
from ...application.ports.messaging_gateway import MessagingGateway, SendResult
from ...exceptions import GatewayRejected, GatewayUnconfigured, GatewayUnreachable
from ...utils import digits_only
from .messages import TEMPLATE_LANGUAGES, render_otp_message, resolve_locale

logger = logging.getLogger(__name__)

REJECTED_MESSAGE_STATUSES = {"rejected", "failed"}


@dataclass(frozen=True)
class Accepted:
    message_id: Optional[str]
    status: str


@dataclass(frozen=True)
class Rejected:
    reason: str


ProviderVerdict = Union[Accepted, Rejected]


def _count(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    return 0


def classify_response(status_code: int, payload: Any) -> ProviderVerdict:
    """Decide whether the provider actually accepted the message.

    A 2xx status alone is not enough: the body may carry an ``error`` object,
    a non-zero rejection count, ``sent: false`` or a message whose status is
    rejected/failed.
    """
    if not isinstance(payload, dict):
        if 200 <= status_code < 300:
            return Rejected("Unparseable provider response")
        return Rejected(f"HTTP {status_code}")

    error = payload.get("error")
    if error or status_code >= 300:
        if isinstance(error, dict):
            message = error.get("message") or error.get("error_user_msg") or str(error.get("code", ""))
        else:
            message = str(error) if error else ""
        return Rejected(message or f"HTTP {status_code}")

    for key in ("rejected", "rejected_count", "failed"):
        if _count(payload.get(key)) > 0:
            return Rejected(f"Provider reported {key}={payload.get(key)}")

    if str(payload.get("sent", "true")).lower() == "false":
        return Rejected(str(payload.get("message") or "Message not sent"))

    messages = payload.get("messages") or []
    if not isinstance(messages, list):
        return Rejected("Malformed provider response")
    if not messages:
        return Rejected("Provider accepted request but returned no message")
    first = messages[0]
    if not isinstance(first, dict):
        return Rejected("Malformed provider response")
    status = str(first.get("message_status") or "accepted")
    if status.lower() in REJECTED_MESSAGE_STATUSES:
        return Rejected(f"Message status {status}")
    return Accepted(message_id=first.get("id"), status=status)


class WhatsAppCloudGateway(MessagingGateway):
    """Sends through the WhatsApp Business Cloud API ``/<phone-id>/messages``."""

    def __init__(
        self,
        token: Optional[str] = None,
        phone_id: Optional[str] = None,
        base_url: Optional[str] = None,
        otp_template: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.token = token if token is not None else settings.WHATSAPP_TOKEN
        self.phone_id = phone_id if phone_id is not None else settings.WHATSAPP_PHONE_ID
        self.base_url = base_url or settings.WHATSAPP_API_BASE_URL
        self.otp_template = otp_template if otp_template is not None else settings.WHATSAPP_OTP_TEMPLATE
        self.timeout = timeout or settings.WHATSAPP_TIMEOUT_SECONDS
        self._client = client

    @property
    def messages_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.phone_id}/messages"

    def send_otp(self, phone: str, code: str, locale: str = "en") -> SendResult:
        if self.otp_template:
            payload = {
                "messaging_product": "whatsapp",
                "to": digits_only(phone),
                "type": "template",
                "template": {
                    "name": self.otp_template,
                    "language": {"code": TEMPLATE_LANGUAGES[resolve_locale(locale)]},
                    "components": [
                        {"type": "body", "parameters": [{"type": "text", "text": code}]},
                        {"type": "button", "sub_type": "url", "index": "0", "parameters": [{"type": "text", "text": code}]},
                    ],
                },
            }
            return self._post(payload)
        return self.send_text(phone, render_otp_message(code, locale))

    def send_text(self, phone: str, body: str) -> SendResult:
        payload = {
            "messaging_product": "whatsapp",
            "to": digits_only(phone),
            "type": "text",
            "text": {"body": body},
        }
        return self._post(payload)

    def _post(self, payload: Dict[str, Any]) -> SendResult:
        if not self.token or not self.phone_id:
            raise GatewayUnconfigured("WHATSAPP_TOKEN or WHATSAPP_PHONE_ID not configured")

        headers = {"Authorization": f"Bearer {self.token}", "Content-Type": "application/json"}
        try:
            if self._client is not None:
                resp = self._client.post(self.messages_url, json=payload, headers=headers, timeout=self.timeout)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    resp = client.post(self.messages_url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise GatewayUnreachable(f"WhatsApp API timed out after {self.timeout}s") from e
        except httpx.TransportError as e:
            raise GatewayUnreachable(f"WhatsApp API unreachable: {e}") from e

        try:
            data = resp.json()
        except ValueError:
            data = None

        verdict = classify_response(resp.status_code, data)
        if isinstance(verdict, Rejected):
            logger.error(f"WhatsApp API rejected message (HTTP {resp.status_code}): {resp.text}")
            raise GatewayRejected(verdict.reason, raw_response=data if data is not None else resp.text)

        logger.info(f"WhatsApp message accepted, id={verdict.message_id}, status={verdict.status}")
        return SendResult(message_id=verdict.message_id, status=verdict.status)
