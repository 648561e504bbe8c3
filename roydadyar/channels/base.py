"""Notification channel interface."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from roydadyar.settings_store import SettingsStore

logger = logging.getLogger(__name__)


@dataclass
class NotificationData:
    """Fields substituted into the fixed message templates."""

    to: str  # Email address of the event owner
    event_title: str
    event_date: datetime
    days_until: int
    user_full_name: str


class NotificationChannel(ABC):
    """One way of delivering a reminder.

    Subclasses decide for themselves whether they are configured. When they
    are not, ``send`` logs what it would have sent and reports success so that
    missing credentials never count as delivery failures.
    """

    name: str = ""
    needs_phone: bool = False

    def __init__(self, settings: SettingsStore):
        self.settings = settings

    @property
    def is_configured(self) -> bool:
        return self.settings.is_configured(self.name)

    async def send(self, data: NotificationData, phone: str | None = None) -> bool:
        """Send one notification.

        Never raises; any error is logged and reported as False.

        Returns:
            True if the provider accepted the message (or demo mode)
        """
        if self.needs_phone and not phone:
            logger.error(f"Phone number required for {self.name}")
            return False

        recipient = phone if self.needs_phone else data.to

        if not self.is_configured:
            logger.info(
                f"{self.name} notification (DEMO MODE - not actually sent) "
                f"to={recipient} title={data.event_title!r} days_until={data.days_until}"
            )
            return True

        try:
            return await self._deliver(data, recipient)  # type: ignore[arg-type]
        except Exception as e:
            logger.error(f"{self.name} sending failed for {recipient}: {e}")
            return False

    @abstractmethod
    async def _deliver(self, data: NotificationData, recipient: str) -> bool:
        """Perform the live outbound call."""
