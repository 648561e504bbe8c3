"""WhatsApp delivery.

There is no WhatsApp Business API integration yet. When an API key is set
the channel prepares and logs the message, then reports success without any
outbound call. ``is_stub`` makes that limitation visible to callers.
"""

import logging

from roydadyar.channels.base import NotificationChannel, NotificationData
from roydadyar.channels.templates import format_whatsapp_text
from roydadyar.utils.constants import WHATSAPP

logger = logging.getLogger(__name__)


class WhatsAppChannel(NotificationChannel):
    """Stub channel: always succeeds once a phone number is present."""

    name = WHATSAPP
    needs_phone = True
    is_stub = True

    async def _deliver(self, data: NotificationData, recipient: str) -> bool:
        message = format_whatsapp_text(data, self.settings.app_url)
        # TODO: call the WhatsApp Business Cloud API once a provider account exists
        logger.info(f"WhatsApp message prepared for {recipient} (stub, not sent): {message!r}")
        return True
