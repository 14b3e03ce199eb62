import logging
from typing import Optional

import requests
from twilio.rest import Client
from twilio.http.http_client import TwilioHttpClient
from twilio.base.exceptions import TwilioException, TwilioRestException

from ...config import settings
from ...application.ports.messaging_gateway import MessagingGateway, SendResult
from ...application.services.phone import to_e164
from ...exceptions import GatewayRejected, GatewayUnconfigured, GatewayUnreachable
from .messages import render_otp_message

logger = logging.getLogger(__name__)

FAILED_STATUSES = {"failed", "undelivered", "canceled"}


class TwilioWhatsAppGateway(MessagingGateway):
    def __init__(
        self,
        client: Optional[Client] = None,
        from_number: Optional[str] = None,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.from_number = from_number if from_number is not None else settings.TWILIO_WHATSAPP_FROM
        self.client = client
        sid = account_sid if account_sid is not None else settings.TWILIO_ACCOUNT_SID
        token = auth_token if auth_token is not None else settings.TWILIO_AUTH_TOKEN
        if self.client is None and sid and token:
            # No retries here; the caller decides whether to request again
            http_client = TwilioHttpClient(timeout=timeout or settings.WHATSAPP_TIMEOUT_SECONDS, max_retries=0)
            self.client = Client(sid, token, http_client=http_client)

    def send_otp(self, phone: str, code: str, locale: str = "en") -> SendResult:
        return self.send_text(phone, render_otp_message(code, locale))

    def send_text(self, phone: str, body: str) -> SendResult:
        if self.client is None or not self.from_number:
            raise GatewayUnconfigured("Twilio credentials or TWILIO_WHATSAPP_FROM not configured")
        try:
            message = self.client.messages.create(
                body=body,
                from_=f"whatsapp:{to_e164(self.from_number)}",
                to=f"whatsapp:{to_e164(phone)}",
            )
        except TwilioRestException as e:
            raise GatewayRejected(e.msg or f"HTTP {e.status}", raw_response={"status": e.status, "code": e.code, "message": e.msg}) from e
        except (TwilioException, requests.RequestException) as e:
            raise GatewayUnreachable(f"Twilio unreachable: {e}") from e

        status = (message.status or "").lower()
        if status in FAILED_STATUSES or message.error_code:
            raise GatewayRejected(
                message.error_message or f"Message status {status}",
                raw_response={"sid": message.sid, "status": message.status, "error_code": message.error_code},
            )
        logger.info(f"Twilio WhatsApp message queued, SID: {message.sid}, status={message.status}")
        return SendResult(message_id=message.sid, status=message.status)
