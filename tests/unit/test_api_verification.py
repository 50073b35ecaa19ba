"""Tests for the one-time code and password reset endpoints."""

from unittest.mock import AsyncMock, patch

import pytest

from heartguide.services.notifications import DeliveryResult
from tests.conftest import TEST_PASSWORD, login

_SEND_URL = "/api/v1/auth/send-verification-code"
_RESEND_URL = "/api/v1/auth/resend-verification-code"
_VERIFY_URL = "/api/v1/auth/verify-otp"
_FORGOT_URL = "/api/v1/auth/forgot-password"
_RESET_CODE_URL = "/api/v1/auth/verify-reset-code"
_RESET_TOKEN_URL = "/api/v1/auth/verify-reset-token"
_RESET_URL = "/api/v1/auth/reset-password"

_NEW_PASSWORD = "Brand#New2"  # nosec B105


@pytest.fixture
def send_code(app) -> AsyncMock:
    """Replace delivery with a mock that records the codes sent."""
    mock = AsyncMock(return_value=DeliveryResult(success=True, message_id="m1"))
    app.state.notifications.send_code = mock
    return mock


def _last_code(mock: AsyncMock) -> str:
    return mock.call_args.kwargs["code"]


class TestSendVerificationCode:
    """Tests for send-verification-code and resend-verification-code."""

    async def test_email_code(self, client, test_user, send_code):
        response = await client.post(_SEND_URL, json={"identifier": test_user.email})

        assert response.status_code == 200
        assert response.json()["success"] is True
        kwargs = send_code.call_args.kwargs
        assert kwargs["method"] == "email"
        assert kwargs["destination"] == test_user.email
        assert kwargs["purpose"] == "email_verification"

    async def test_sms_code_goes_to_phone(self, client, test_user, send_code):
        response = await client.post(
            _SEND_URL, json={"identifier": test_user.email, "method": "sms"}
        )

        assert response.status_code == 200
        kwargs = send_code.call_args.kwargs
        assert kwargs["destination"] == "+15551234567"
        assert kwargs["purpose"] == "phone_verification"

    async def test_unknown_identifier_same_answer(self, client, test_user, send_code):
        known = await client.post(_SEND_URL, json={"identifier": test_user.email})
        unknown = await client.post(_SEND_URL, json={"identifier": "ghost@example.com"})

        assert unknown.status_code == known.status_code == 200
        assert unknown.json() == known.json()
        assert send_code.await_count == 1

    async def test_delivery_failure(self, client, app, test_user):
        app.state.notifications.send_code = AsyncMock(
            return_value=DeliveryResult(success=False, error="email gateway error")
        )

        response = await client.post(_SEND_URL, json={"identifier": test_user.email})

        assert response.status_code == 500
        assert response.json()["code"] == "UPSTREAM_FAILURE"

    async def test_unknown_method(self, client, test_user):
        response = await client.post(
            _SEND_URL, json={"identifier": test_user.email, "method": "pigeon"}
        )
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    async def test_resend_replaces_previous_code(self, client, test_user, send_code):
        with patch(
            "heartguide.services.verification.generate_numeric_code",
            side_effect=["111111", "222222"],
        ):
            await client.post(_SEND_URL, json={"identifier": test_user.email})
            await client.post(_RESEND_URL, json={"identifier": test_user.email})
        assert _last_code(send_code) == "222222"

        stale = await client.post(
            _VERIFY_URL, json={"identifier": test_user.email, "code": "111111"}
        )
        assert stale.status_code == 400

        response = await client.post(
            _VERIFY_URL, json={"identifier": test_user.email, "code": "222222"}
        )
        assert response.status_code == 200


class TestVerifyOtp:
    """Tests for POST /auth/verify-otp."""

    async def test_marks_email_verified(self, client, test_user, send_code):
        await client.post(_SEND_URL, json={"identifier": test_user.email})

        response = await client.post(
            _VERIFY_URL,
            json={"identifier": test_user.email, "code": _last_code(send_code)},
        )

        assert response.status_code == 200
        assert response.json()["success"] is True

        me = (await login(client, test_user.email)).json()["user"]
        assert me["emailVerified"] is True
        assert me["phoneVerified"] is False

    async def test_phone_identifier_verifies_phone(self, client, test_user, send_code):
        await client.post(
            _SEND_URL, json={"identifier": test_user.phone, "method": "sms"}
        )

        response = await client.post(
            _VERIFY_URL,
            json={"identifier": test_user.phone, "code": _last_code(send_code)},
        )

        assert response.status_code == 200
        me = (await login(client, test_user.email)).json()["user"]
        assert me["phoneVerified"] is True

    async def test_replay_fails(self, client, test_user, send_code):
        await client.post(_SEND_URL, json={"identifier": test_user.email})
        body = {"identifier": test_user.email, "code": _last_code(send_code)}

        assert (await client.post(_VERIFY_URL, json=body)).status_code == 200
        replay = await client.post(_VERIFY_URL, json=body)

        assert replay.status_code == 400
        assert replay.json()["success"] is False

    async def test_wrong_code(self, client, test_user, send_code):
        await client.post(_SEND_URL, json={"identifier": test_user.email})
        wrong = "000000" if _last_code(send_code) != "000000" else "111111"

        response = await client.post(
            _VERIFY_URL, json={"identifier": test_user.email, "code": wrong}
        )

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "message": "Invalid verification code",
        }

    async def test_unknown_identifier(self, client):
        response = await client.post(
            _VERIFY_URL, json={"identifier": "ghost@example.com", "code": "123456"}
        )
        assert response.status_code == 400
        assert response.json()["success"] is False


class TestPasswordReset:
    """Tests for the forgot-password to reset-password flow."""

    async def _reset_token(self, client, test_user, send_code) -> str:
        response = await client.post(_FORGOT_URL, json={"identifier": test_user.email})
        assert response.status_code == 200
        assert send_code.call_args.kwargs["purpose"] == "password_reset"

        response = await client.post(
            _RESET_CODE_URL,
            json={"identifier": test_user.email, "code": _last_code(send_code)},
        )
        assert response.status_code == 200
        return response.json()["token"]

    async def test_full_flow(self, client, test_user, send_code):
        await login(client, test_user.email)
        token = await self._reset_token(client, test_user, send_code)

        status = await client.post(_RESET_TOKEN_URL, json={"token": token})
        assert status.json() == {"valid": True, "userId": str(test_user.id)}

        response = await client.post(
            _RESET_URL, json={"token": token, "password": _NEW_PASSWORD}
        )
        assert response.status_code == 200

        # Every session was revoked, including the one still in the cookie jar
        assert (await client.get("/api/v1/auth/me")).status_code == 401

        await login(client, test_user.email, _NEW_PASSWORD)

        reuse = await client.post(
            _RESET_URL, json={"token": token, "password": "Other#Pass3"}
        )
        assert reuse.status_code == 400
        assert reuse.json()["code"] == "INVALID_RESET_TOKEN"

        status = await client.post(_RESET_TOKEN_URL, json={"token": token})
        assert status.json() == {"valid": False, "userId": None}

    async def test_weak_password_keeps_token(self, client, test_user, send_code):
        token = await self._reset_token(client, test_user, send_code)

        response = await client.post(
            _RESET_URL, json={"token": token, "password": "weak"}
        )
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

        status = await client.post(_RESET_TOKEN_URL, json={"token": token})
        assert status.json()["valid"] is True
        await login(client, test_user.email, TEST_PASSWORD)

    async def test_forgot_password_unknown_identifier(self, client, send_code):
        response = await client.post(
            _FORGOT_URL, json={"identifier": "ghost@example.com"}
        )
        assert response.status_code == 200
        send_code.assert_not_awaited()

    async def test_wrong_reset_code(self, client, test_user, send_code):
        await client.post(_FORGOT_URL, json={"identifier": test_user.email})
        wrong = "000000" if _last_code(send_code) != "000000" else "111111"

        response = await client.post(
            _RESET_CODE_URL, json={"identifier": test_user.email, "code": wrong}
        )

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_CODE"

    async def test_verification_code_cannot_reset(self, client, test_user, send_code):
        await client.post(_SEND_URL, json={"identifier": test_user.email})

        response = await client.post(
            _RESET_CODE_URL,
            json={"identifier": test_user.email, "code": _last_code(send_code)},
        )
        assert response.status_code == 400

    async def test_unknown_token(self, client):
        response = await client.post(
            _RESET_URL, json={"token": "not-a-token", "password": _NEW_PASSWORD}
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_RESET_TOKEN"
