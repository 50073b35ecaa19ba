"""Notification dispatcher: email via Resend, SMS via Twilio.

Both gateways are plain HTTPS APIs called with httpx. Delivery never
raises and never retries: every outcome is reported as a DeliveryResult
and the caller decides what a failure means for the request.

A channel without credentials is "not configured". Outside production
such sends are simulated (logged without the message body) and reported
as successful so local development works without gateway accounts; in
production they fail.
"""

from dataclasses import dataclass

import httpx
import structlog

from heartguide.core.config import Settings
from heartguide.core.phone import is_valid_e164, to_e164

logger = structlog.get_logger()

_RESEND_API_URL = "https://api.resend.com/emails"
_TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"
_GATEWAY_TIMEOUT = 10.0

NOT_CONFIGURED = "not configured"

_CODE_SUBJECTS = {
    "email_verification": "Verify your HeartGuide email",
    "phone_verification": "Your HeartGuide verification code",
    "password_reset": "Reset your HeartGuide password",
}


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of one send attempt.

    Attributes:
        success: Whether the gateway accepted the message.
        message_id: Gateway message id (or a simulated id).
        error: Short failure reason when success is False.
    """

    success: bool
    message_id: str | None = None
    error: str | None = None


class NotificationDispatcher:
    """Sends email and SMS through the configured gateways.

    Args:
        settings: Application settings holding gateway credentials.
        transport: Optional httpx transport (tests use MockTransport).
    """

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    @property
    def email_configured(self) -> bool:
        return bool(self._settings.resend_api_key.get_secret_value())

    @property
    def sms_configured(self) -> bool:
        s = self._settings
        return bool(
            s.twilio_account_sid
            and s.twilio_auth_token.get_secret_value()
            and s.twilio_phone_number
        )

    def status(self) -> dict[str, dict[str, bool | str]]:
        """Report which channels are configured, without exposing secrets."""
        return {
            "email": {
                "configured": self.email_configured,
                "provider": "resend",
            },
            "sms": {
                "configured": self.sms_configured,
                "provider": "twilio",
            },
        }

    def _not_configured(self, channel: str, to: str) -> DeliveryResult:
        if self._settings.is_production:
            logger.error("Notification channel not configured", channel=channel)
            return DeliveryResult(success=False, error=NOT_CONFIGURED)
        logger.info(
            "Simulated notification delivery",
            channel=channel,
            to=_mask_destination(to),
        )
        return DeliveryResult(success=True, message_id=f"simulated-{channel}")

    async def send_email(self, to: str, subject: str, body: str) -> DeliveryResult:
        """Send a plain-text email.

        Args:
            to: Recipient email address.
            subject: Subject line.
            body: Plain-text body.

        Returns:
            DeliveryResult with the Resend message id on success.
        """
        if not self.email_configured:
            return self._not_configured("email", to)

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                resp = await client.post(
                    _RESEND_API_URL,
                    headers={
                        "Authorization": (
                            f"Bearer {self._settings.resend_api_key.get_secret_value()}"
                        ),
                    },
                    json={
                        "from": self._settings.email_from,
                        "to": to,
                        "subject": subject,
                        "text": body,
                    },
                    timeout=_GATEWAY_TIMEOUT,
                )
                resp.raise_for_status()
                message_id = resp.json().get("id")
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "Email delivery failed",
                to=_mask_destination(to),
                error=type(exc).__name__,
            )
            return DeliveryResult(success=False, error="email gateway error")

        logger.info("Email sent", to=_mask_destination(to), message_id=message_id)
        return DeliveryResult(success=True, message_id=message_id)

    async def send_sms(self, to: str, body: str) -> DeliveryResult:
        """Send a text message.

        The number is normalized to E.164 first; numbers that still do not
        look dialable are rejected without calling the gateway.

        Args:
            to: Phone number in any common notation.
            body: Message text.

        Returns:
            DeliveryResult with the Twilio message SID on success.
        """
        phone = to_e164(to)
        if not is_valid_e164(phone):
            return DeliveryResult(success=False, error="invalid phone number")

        if not self.sms_configured:
            return self._not_configured("sms", phone)

        sid = self._settings.twilio_account_sid
        url = f"{_TWILIO_API_BASE}/Accounts/{sid}/Messages.json"
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                resp = await client.post(
                    url,
                    auth=(sid, self._settings.twilio_auth_token.get_secret_value()),
                    data={
                        "To": phone,
                        "From": self._settings.twilio_phone_number,
                        "Body": body,
                    },
                    timeout=_GATEWAY_TIMEOUT,
                )
                resp.raise_for_status()
                message_id = resp.json().get("sid")
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "SMS delivery failed",
                to=_mask_destination(phone),
                error=type(exc).__name__,
            )
            return DeliveryResult(success=False, error="sms gateway error")

        logger.info("SMS sent", to=_mask_destination(phone), message_id=message_id)
        return DeliveryResult(success=True, message_id=message_id)

    async def send_code(
        self,
        *,
        method: str,
        destination: str,
        code: str,
        purpose: str,
    ) -> DeliveryResult:
        """Deliver a one-time code by email or SMS.

        Args:
            method: "email" or "sms".
            destination: Email address or phone number.
            code: Plain one-time code.
            purpose: Code purpose, used to pick the wording.

        Returns:
            DeliveryResult from the chosen channel.
        """
        minutes = self._settings.code_ttl_minutes
        if method == "sms":
            body = (
                f"Your HeartGuide code is {code}. "
                f"It expires in {minutes} minutes."
            )
            return await self.send_sms(destination, body)

        subject = _CODE_SUBJECTS.get(purpose, "Your HeartGuide code")
        body = (
            f"Your HeartGuide verification code is: {code}\n\n"
            f"This code expires in {minutes} minutes. "
            "If you didn't request it, you can safely ignore this email."
        )
        return await self.send_email(destination, subject, body)


def _mask_destination(value: str) -> str:
    """Hide most of an email address or phone number for log lines."""
    if "@" in value:
        local, _, domain = value.partition("@")
        return f"{local[:1]}***@{domain}"
    return f"***{value[-4:]}"
