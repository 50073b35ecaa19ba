"""Tests for NotificationDispatcher.

Gateway calls go through httpx.MockTransport; nothing leaves the process.
"""

import json
from urllib.parse import parse_qs

import httpx
import pytest
from pydantic import SecretStr

from heartguide.services.notifications import NOT_CONFIGURED, NotificationDispatcher
from tests.conftest import make_settings

_GATEWAYS = {
    "resend_api_key": SecretStr("re_test_key"),
    "twilio_account_sid": "AC123",
    "twilio_auth_token": SecretStr("twilio-token"),
    "twilio_phone_number": "+15550000000",
}


def _transport(seen: list[httpx.Request], status: int = 200) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if status != 200:
            return httpx.Response(status, json={"message": "nope"})
        if request.url.host == "api.resend.com":
            return httpx.Response(200, json={"id": "email-1"})
        return httpx.Response(201, json={"sid": "SM1"})

    return httpx.MockTransport(handler)


class TestStatus:
    """Tests for status()."""

    def test_reports_configuration_without_secrets(self):
        dispatcher = NotificationDispatcher(make_settings(**_GATEWAYS))
        status = dispatcher.status()
        assert status["email"] == {"configured": True, "provider": "resend"}
        assert status["sms"] == {"configured": True, "provider": "twilio"}
        assert "re_test_key" not in json.dumps(status)

    def test_unconfigured(self):
        dispatcher = NotificationDispatcher(make_settings())
        assert dispatcher.status()["email"]["configured"] is False
        assert dispatcher.status()["sms"]["configured"] is False


class TestSendEmail:
    """Tests for send_email() and send_code() by email."""

    async def test_posts_to_resend(self):
        seen: list[httpx.Request] = []
        dispatcher = NotificationDispatcher(
            make_settings(**_GATEWAYS), transport=_transport(seen)
        )

        result = await dispatcher.send_code(
            method="email",
            destination="patient@example.com",
            code="123456",
            purpose="email_verification",
        )

        assert result.success is True
        assert result.message_id == "email-1"
        request = seen[0]
        assert request.headers["authorization"] == "Bearer re_test_key"
        body = json.loads(request.content)
        assert body["to"] == "patient@example.com"
        assert body["subject"] == "Verify your HeartGuide email"
        assert "123456" in body["text"]

    async def test_gateway_error_is_reported(self):
        seen: list[httpx.Request] = []
        dispatcher = NotificationDispatcher(
            make_settings(**_GATEWAYS), transport=_transport(seen, status=500)
        )

        result = await dispatcher.send_email("patient@example.com", "s", "b")

        assert result.success is False
        assert result.error == "email gateway error"

    async def test_simulated_outside_production(self):
        dispatcher = NotificationDispatcher(make_settings())
        result = await dispatcher.send_email("patient@example.com", "s", "b")
        assert result.success is True
        assert result.message_id == "simulated-email"

    async def test_fails_in_production_when_unconfigured(self):
        settings = make_settings(
            "postgresql+asyncpg://u:p@db/heartguide", environment="production"
        )
        dispatcher = NotificationDispatcher(settings)
        result = await dispatcher.send_email("patient@example.com", "s", "b")
        assert result.success is False
        assert result.error == NOT_CONFIGURED


class TestSendSms:
    """Tests for send_sms() and send_code() by SMS."""

    async def test_posts_form_to_twilio(self):
        seen: list[httpx.Request] = []
        dispatcher = NotificationDispatcher(
            make_settings(**_GATEWAYS), transport=_transport(seen)
        )

        result = await dispatcher.send_code(
            method="sms",
            destination="(555) 123-4567",
            code="654321",
            purpose="phone_verification",
        )

        assert result.success is True
        assert result.message_id == "SM1"
        request = seen[0]
        assert request.url.path == "/2010-04-01/Accounts/AC123/Messages.json"
        assert request.headers["authorization"].startswith("Basic ")
        form = parse_qs(request.content.decode())
        assert form["To"] == ["+15551234567"]
        assert form["From"] == ["+15550000000"]
        assert "654321" in form["Body"][0]

    @pytest.mark.parametrize("number", ["123", "+0123456789"])
    async def test_rejects_invalid_number(self, number):
        seen: list[httpx.Request] = []
        dispatcher = NotificationDispatcher(
            make_settings(**_GATEWAYS), transport=_transport(seen)
        )

        result = await dispatcher.send_sms(number, "hi")

        assert result.success is False
        assert result.error == "invalid phone number"
        assert seen == []

    async def test_simulated_outside_production(self):
        dispatcher = NotificationDispatcher(make_settings())
        result = await dispatcher.send_sms("+15551234567", "hi")
        assert result.success is True
        assert result.message_id == "simulated-sms"
