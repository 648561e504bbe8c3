"""SMS delivery through the MelliPayamak REST gateway."""

import logging

import httpx

from roydadyar.channels.base import NotificationChannel, NotificationData
from roydadyar.channels.templates import format_sms_text
from roydadyar.settings_store import SettingsStore
from roydadyar.utils.constants import HTTP_TIMEOUT, SMS, SMS_GATEWAY_URL, SMS_SUCCESS_STATUS

logger = logging.getLogger(__name__)


class SmsChannel(NotificationChannel):
    """Posts one message per reminder; success is ``RetStatus == 1``."""

    name = SMS
    needs_phone = True

    def __init__(self, settings: SettingsStore, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(settings)
        self._transport = transport

    def build_payload(self, data: NotificationData, phone: str) -> dict:
        """Request body expected by the gateway."""
        return {
            "username": self.settings.get("SMS_USERNAME"),
            "password": self.settings.get("SMS_PASSWORD"),
            "to": phone,
            "from": self.settings.get("SMS_SENDER"),
            "text": format_sms_text(data, self.settings.app_url),
            "isflash": False,
        }

    async def _deliver(self, data: NotificationData, recipient: str) -> bool:
        payload = self.build_payload(data, recipient)

        async with httpx.AsyncClient(
            timeout=httpx.Timeout(HTTP_TIMEOUT), transport=self._transport
        ) as client:
            response = await client.post(SMS_GATEWAY_URL, json=payload)

        result = response.json()
        if result.get("RetStatus") == SMS_SUCCESS_STATUS:
            logger.info(f"SMS sent successfully to {recipient}")
            return True

        logger.error(f"SMS sending failed for {recipient}: {result}")
        return False
