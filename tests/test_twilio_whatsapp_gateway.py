from types import SimpleNamespace

import pytest
import requests
from twilio.base.exceptions import TwilioRestException

from trustedlinks.infrastructure.messaging.twilio_whatsapp_gateway import TwilioWhatsAppGateway
from trustedlinks.exceptions import GatewayRejected, GatewayUnconfigured, GatewayUnreachable


class FakeMessages:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.result


def make_message(status="queued", error_code=None, error_message=None):
    return SimpleNamespace(sid="SM123", status=status, error_code=error_code, error_message=error_message)


def make_gateway(messages):
    client = SimpleNamespace(messages=messages)
    return TwilioWhatsAppGateway(client=client, from_number="+14155238886")


def test_send_otp_uses_whatsapp_addresses():
    messages = FakeMessages(result=make_message())
    result = make_gateway(messages).send_otp("962791234567", "482913")

    assert result.message_id == "SM123"
    call = messages.calls[0]
    assert call["to"] == "whatsapp:+962791234567"
    assert call["from_"] == "whatsapp:+14155238886"
    assert "482913" in call["body"]


@pytest.mark.parametrize("status", ["failed", "undelivered", "canceled"])
def test_failed_status_is_rejected(status):
    messages = FakeMessages(result=make_message(status=status))
    with pytest.raises(GatewayRejected):
        make_gateway(messages).send_otp("962791234567", "482913")


def test_error_code_is_rejected():
    messages = FakeMessages(result=make_message(error_code=63016, error_message="Outside session window"))
    with pytest.raises(GatewayRejected) as exc:
        make_gateway(messages).send_otp("962791234567", "482913")
    assert exc.value.provider_message == "Outside session window"


def test_rest_exception_is_rejected():
    error = TwilioRestException(400, "/Messages.json", msg="Invalid 'To' Phone Number", code=21211)
    with pytest.raises(GatewayRejected) as exc:
        make_gateway(FakeMessages(error=error)).send_otp("962791234567", "482913")
    assert exc.value.raw_response["code"] == 21211


def test_transport_error_is_unreachable():
    error = requests.ConnectionError("connection reset")
    with pytest.raises(GatewayUnreachable):
        make_gateway(FakeMessages(error=error)).send_otp("962791234567", "482913")


def test_unconfigured_gateway():
    gateway = TwilioWhatsAppGateway(client=None, from_number="", account_sid="", auth_token="")
    with pytest.raises(GatewayUnconfigured):
        gateway.send_otp("962791234567", "482913")
