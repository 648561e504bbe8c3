"""Channel lookup table and dispatch."""

import logging
from typing import Dict, Type

from roydadyar.channels.base import NotificationChannel, NotificationData
from roydadyar.channels.mail import EmailChannel
from roydadyar.channels.sms import SmsChannel
from roydadyar.channels.whatsapp import WhatsAppChannel
from roydadyar.settings_store import SettingsStore
from roydadyar.utils.constants import EMAIL, SMS, WHATSAPP

logger = logging.getLogger(__name__)

CHANNEL_REGISTRY: Dict[str, Type[NotificationChannel]] = {
    EMAIL: EmailChannel,
    SMS: SmsChannel,
    WHATSAPP: WhatsAppChannel,
}

Channels = Dict[str, NotificationChannel]


def build_channels(settings: SettingsStore) -> Channels:
    """Instantiate every registered channel against one settings store."""
    return {name: cls(settings) for name, cls in CHANNEL_REGISTRY.items()}


async def send_notification(
    channels: Channels,
    method: str,
    data: NotificationData,
    phone: str | None = None,
) -> bool:
    """Send through the channel registered for ``method``."""
    channel = channels.get(method)
    if channel is None:
        logger.error(f"Unsupported notification method: {method}")
        return False

    return await channel.send(data, phone)
