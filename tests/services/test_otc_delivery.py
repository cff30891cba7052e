from __future__ import annotations

import json
from urllib.parse import parse_qs

import httpx
import pytest

from access_plane.core.config import Settings
from access_plane.services.otc_delivery import OtcDeliveryGateway

SMS_URL = "https://sms.test/sms/json"
EMAIL_URL = "https://email.test/v3/mail/send"


def _settings(**overrides: object) -> Settings:
    values: dict[str, object] = {
        "VONAGE_API_KEY": "key",
        "VONAGE_API_SECRET": "secret",
        "VONAGE_FROM": "Portal",
        "VONAGE_SMS_URL": SMS_URL,
        "SENDGRID_API_KEY": "sg-key",
        "SENDGRID_FROM_EMAIL": "noreply@portal.test",
        "SENDGRID_API_URL": EMAIL_URL,
    }
    values.update(overrides)
    return Settings(**values)


class _Recorder:
    def __init__(self, *, sms_status: str = "0", email_status: int = 202) -> None:
        self.sms_status = sms_status
        self.email_status = email_status
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if str(request.url) == SMS_URL:
            return httpx.Response(200, json={"messages": [{"status": self.sms_status}]})
        if str(request.url) == EMAIL_URL:
            return httpx.Response(self.email_status)
        return httpx.Response(404)


@pytest.mark.asyncio
async def test_deliver_code_sms_only_when_no_email() -> None:
    recorder = _Recorder()
    gateway = OtcDeliveryGateway(settings=_settings(), transport=httpx.MockTransport(recorder))

    report = await gateway.deliver_code(
        code="ABCD2345",
        course_name="Learn AI",
        recipient_name="Asha",
        phone="+919876543210",
        email=None,
    )

    assert report.sms_sent is True
    assert report.email_sent is False
    assert report.channels == ("sms",)
    assert len(recorder.requests) == 1
    form = parse_qs(recorder.requests[0].content.decode())
    assert form["to"] == ["919876543210"]
    assert "ABCD2345" in form["text"][0]
    assert "Learn AI" in form["text"][0]


@pytest.mark.asyncio
async def test_deliver_code_reports_partial_success() -> None:
    recorder = _Recorder(sms_status="4")
    gateway = OtcDeliveryGateway(settings=_settings(), transport=httpx.MockTransport(recorder))

    report = await gateway.deliver_code(
        code="ABCD2345",
        course_name="Learn AI",
        recipient_name="Asha",
        phone="+919876543210",
        email="asha@example.com",
    )

    assert report.sms_sent is False
    assert report.email_sent is True
    assert report.channels == ("sms", "email")
    email_request = recorder.requests[1]
    assert email_request.headers["authorization"] == "Bearer sg-key"
    body = json.loads(email_request.content)
    assert body["personalizations"][0]["to"] == [{"email": "asha@example.com", "name": "Asha"}]


@pytest.mark.asyncio
async def test_deliver_code_survives_transport_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("down", request=request)

    gateway = OtcDeliveryGateway(settings=_settings(), transport=httpx.MockTransport(handler))

    report = await gateway.deliver_code(
        code="ABCD2345",
        course_name="Learn AI",
        recipient_name="Asha",
        phone="+919876543210",
        email="asha@example.com",
    )

    assert report.sms_sent is False
    assert report.email_sent is False
    assert report.channels == ("sms", "email")


@pytest.mark.asyncio
async def test_unconfigured_channels_are_reported_as_not_sent() -> None:
    recorder = _Recorder()
    gateway = OtcDeliveryGateway(
        settings=_settings(VONAGE_API_KEY="", SENDGRID_API_KEY=""),
        transport=httpx.MockTransport(recorder),
    )

    report = await gateway.deliver_code(
        code="ABCD2345",
        course_name="Learn AI",
        recipient_name="Asha",
        phone="+919876543210",
        email="asha@example.com",
    )

    assert (report.sms_sent, report.email_sent) == (False, False)
    assert recorder.requests == []


@pytest.mark.asyncio
async def test_send_welcome_does_not_include_any_code() -> None:
    recorder = _Recorder()
    gateway = OtcDeliveryGateway(settings=_settings(), transport=httpx.MockTransport(recorder))

    sent = await gateway.send_welcome(
        email="asha@example.com",
        recipient_name="Asha",
        course_name="Learn AI",
        course_url="https://portal.test/learn-ai",
    )

    assert sent is True
    body = json.loads(recorder.requests[0].content)
    assert body["subject"] == "Welcome to Learn AI"
    assert "https://portal.test/learn-ai" in body["content"][0]["value"]
