import json

import httpx
import pytest

from trustedlinks.infrastructure.messaging.whatsapp_cloud_gateway import (
    Accepted,
    Rejected,
    WhatsAppCloudGateway,
    classify_response,
)
from trustedlinks.exceptions import GatewayRejected, GatewayUnconfigured, GatewayUnreachable

BASE_URL = "https://graph.facebook.com/v19.0"


def make_gateway(handler, **kwargs):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    options = dict(token="test-token", phone_id="1234567890", base_url=BASE_URL, otp_template="", timeout=5.0)
    options.update(kwargs)
    return WhatsAppCloudGateway(client=client, **options)


def test_send_otp_posts_text_message():
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"messaging_product": "whatsapp", "messages": [{"id": "wamid.ABC"}]})

    result = make_gateway(handler).send_otp("962791234567", "482913")

    assert result.message_id == "wamid.ABC"
    assert result.status == "accepted"
    assert seen["url"] == f"{BASE_URL}/1234567890/messages"
    assert seen["auth"] == "Bearer test-token"
    assert seen["body"]["to"] == "962791234567"
    assert seen["body"]["type"] == "text"
    assert "482913" in seen["body"]["text"]["body"]


def test_send_otp_arabic_text():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"messages": [{"id": "wamid.AR"}]})

    make_gateway(handler).send_otp("962791234567", "482913", locale="ar")
    assert "رمز التحقق" in seen["body"]["text"]["body"]


def test_send_otp_uses_template_when_configured():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"messages": [{"id": "wamid.T", "message_status": "accepted"}]})

    make_gateway(handler, otp_template="otp_code").send_otp("962791234567", "482913", locale="ar-JO")

    template = seen["body"]["template"]
    assert seen["body"]["type"] == "template"
    assert template["name"] == "otp_code"
    assert template["language"]["code"] == "ar"
    assert template["components"][0]["parameters"][0]["text"] == "482913"


def test_200_with_error_body_is_rejected():
    def handler(request):
        return httpx.Response(200, json={"error": {"message": "Recipient not in allowed list", "code": 131030}})

    with pytest.raises(GatewayRejected) as exc:
        make_gateway(handler).send_otp("962791234567", "482913")
    assert exc.value.provider_message == "Recipient not in allowed list"
    assert exc.value.raw_response["error"]["code"] == 131030


def test_200_with_failed_message_status_is_rejected():
    def handler(request):
        return httpx.Response(200, json={"messages": [{"id": "wamid.F", "message_status": "failed"}]})

    with pytest.raises(GatewayRejected):
        make_gateway(handler).send_otp("962791234567", "482913")


def test_http_error_status_is_rejected():
    def handler(request):
        return httpx.Response(401, json={"error": {"message": "Invalid OAuth access token."}})

    with pytest.raises(GatewayRejected) as exc:
        make_gateway(handler).send_otp("962791234567", "482913")
    assert exc.value.reason == "GATEWAY_REJECTED"


def test_non_json_body_is_rejected():
    def handler(request):
        return httpx.Response(502, text="<html>Bad Gateway</html>")

    with pytest.raises(GatewayRejected) as exc:
        make_gateway(handler).send_otp("962791234567", "482913")
    assert exc.value.raw_response == "<html>Bad Gateway</html>"


def test_timeout_maps_to_unreachable():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(GatewayUnreachable):
        make_gateway(handler).send_otp("962791234567", "482913")


def test_connection_error_maps_to_unreachable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(GatewayUnreachable):
        make_gateway(handler).send_otp("962791234567", "482913")


def test_missing_credentials_never_calls_provider():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"messages": [{"id": "x"}]})

    with pytest.raises(GatewayUnconfigured):
        make_gateway(handler, token="").send_otp("962791234567", "482913")
    assert calls == []


@pytest.mark.parametrize(
    "status_code, payload",
    [
        (200, None),
        (200, {"rejected": 1, "messages": [{"id": "x"}]}),
        (200, {"rejected_count": "2", "messages": [{"id": "x"}]}),
        (200, {"sent": "false"}),
        (200, {"messages": []}),
        (200, {"messages": ["wamid.1"]}),
        (200, {"messages": {"id": "x"}}),
        (500, {"messages": [{"id": "x"}]}),
    ],
)
def test_classify_response_rejections(status_code, payload):
    assert isinstance(classify_response(status_code, payload), Rejected)


def test_classify_response_accepts_message():
    verdict = classify_response(200, {"rejected": 0, "messages": [{"id": "wamid.1", "message_status": "accepted"}]})
    assert verdict == Accepted(message_id="wamid.1", status="accepted")


def test_malformed_messages_field_is_rejected():
    def handler(request):
        return httpx.Response(200, json={"messages": ["wamid.1"]})

    with pytest.raises(GatewayRejected) as exc:
        make_gateway(handler).send_otp("962791234567", "482913")
    assert exc.value.provider_message == "Malformed provider response"
