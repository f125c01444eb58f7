"""
Notification channels
Deliver reminder texts over WhatsApp (Whapi.cloud) and SMS (Twilio)
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from ..config import (
    NOTIFICATION_TIMEOUT_SECONDS,
    TWILIO_ACCOUNT_SID,
    TWILIO_AUTH_TOKEN,
    TWILIO_FROM_NUMBER,
    TWILIO_MESSAGING_SERVICE_SID,
    WHAPI_API_TOKEN,
    WHAPI_API_URL,
)

logger = logging.getLogger(__name__)


@dataclass
class SendResult:
    success: bool
    provider_message_id: Optional[str] = None
    error: Optional[str] = None


class NotificationChannel:
    """A transport that delivers one text message to one phone number"""

    name = "channel"

    async def send(self, recipient: str, message: str) -> SendResult:
        raise NotImplementedError


class WhatsAppChannel(NotificationChannel):
    """WhatsApp messages through the Whapi.cloud gateway"""

    name = "whatsapp"

    def __init__(
        self,
        api_token: Optional[str] = WHAPI_API_TOKEN,
        api_url: str = WHAPI_API_URL,
        timeout: float = NOTIFICATION_TIMEOUT_SECONDS,
    ):
        self.api_token = api_token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    async def send(self, recipient: str, message: str) -> SendResult:
        """
        Send a text message

        Args:
            recipient: International digits without plus sign (e.g. 905551234567)
            message: Message text
        """
        if not self.api_token:
            logger.debug("WhatsApp channel not configured (WHAPI_API_TOKEN missing)")
            return SendResult(False, error="WhatsApp channel not configured")
        if not recipient:
            return SendResult(False, error="No phone number provided")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.api_url}/messages/text",
                    headers={"Authorization": f"Bearer {self.api_token}"},
                    json={"typing_time": 0, "to": recipient.lstrip("+"), "body": message},
                )
        except httpx.HTTPError as e:
            logger.error(f"WhatsApp HTTP error for {recipient}: {str(e)}")
            return SendResult(False, error=f"HTTP error: {str(e)}")

        if response.status_code in [200, 201]:
            result = response.json()
            message_id = (result.get("message") or {}).get("id") or result.get("id")
            logger.info(f"WhatsApp message sent to {recipient} (id: {message_id})")
            return SendResult(True, provider_message_id=message_id)

        error = response.text[:500]
        logger.error(f"WhatsApp API error for {recipient}: {response.status_code} {error}")
        return SendResult(False, error=f"Whapi API error {response.status_code}: {error}")


class TwilioSmsChannel(NotificationChannel):
    """SMS through the Twilio Messages API"""

    name = "sms"

    def __init__(
        self,
        account_sid: Optional[str] = TWILIO_ACCOUNT_SID,
        auth_token: Optional[str] = TWILIO_AUTH_TOKEN,
        from_number: Optional[str] = TWILIO_FROM_NUMBER,
        messaging_service_sid: Optional[str] = TWILIO_MESSAGING_SERVICE_SID,
        timeout: float = NOTIFICATION_TIMEOUT_SECONDS,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.messaging_service_sid = messaging_service_sid
        self.timeout = timeout

    async def send(self, recipient: str, message: str) -> SendResult:
        if not (self.account_sid and self.auth_token):
            logger.debug("SMS channel not configured (Twilio credentials missing)")
            return SendResult(False, error="SMS channel not configured")
        if not recipient:
            return SendResult(False, error="No phone number provided")

        to_phone = recipient if recipient.startswith("+") else f"+{recipient}"
        data = {"To": to_phone, "Body": message}
        if self.messaging_service_sid:
            data["MessagingServiceSid"] = self.messaging_service_sid
        else:
            data["From"] = self.from_number

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"https://api.twilio.com/2010-04-01/Accounts/{self.account_sid}/Messages.json",
                    auth=(self.account_sid, self.auth_token),
                    data=data,
                )
        except httpx.HTTPError as e:
            logger.error(f"SMS HTTP error for {to_phone}: {str(e)}")
            return SendResult(False, error=f"HTTP error: {str(e)}")

        if response.status_code in [200, 201]:
            message_sid = response.json().get("sid")
            logger.info(f"SMS sent to {to_phone} (SID: {message_sid})")
            return SendResult(True, provider_message_id=message_sid)

        try:
            error_message = response.json().get("message", "Unknown error")
        except ValueError:
            error_message = response.text[:500] or "Unknown error"
        logger.error(f"Twilio API error for {to_phone}: {response.status_code} {error_message}")
        return SendResult(False, error=f"Twilio API error: {error_message}")


def build_default_channels() -> list[NotificationChannel]:
    """Reminder channels in send order"""
    return [WhatsAppChannel(), TwilioSmsChannel()]
