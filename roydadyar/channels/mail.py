"""Email delivery over SMTP."""

import asyncio
import logging
import smtplib
from email.message import EmailMessage

from roydadyar.channels.base import NotificationChannel, NotificationData
from roydadyar.channels.templates import format_email_html, format_email_subject
from roydadyar.utils.constants import APP_NAME, EMAIL, HTTP_TIMEOUT

logger = logging.getLogger(__name__)


class EmailChannel(NotificationChannel):
    """Sends the HTML reminder through an authenticated SMTP submission."""

    name = EMAIL

    def build_message(self, data: NotificationData) -> EmailMessage:
        """Build the outgoing message."""
        sender = self.settings.get("EMAIL_USER")

        message = EmailMessage()
        message["Subject"] = format_email_subject(data)
        message["From"] = f'"{APP_NAME}" <{sender}>'
        message["To"] = data.to
        message.set_content(format_email_subject(data))
        message.add_alternative(format_email_html(data, self.settings.app_url), subtype="html")
        return message

    async def _deliver(self, data: NotificationData, recipient: str) -> bool:
        message = self.build_message(data)
        # smtplib blocks, keep it off the event loop
        await asyncio.to_thread(self._submit, message)
        logger.info(f"Email sent successfully to {recipient}")
        return True

    def _submit(self, message: EmailMessage) -> None:
        host = self.settings.get("SMTP_HOST")
        port = self.settings.get_int("SMTP_PORT", 587)

        with smtplib.SMTP(host, port, timeout=HTTP_TIMEOUT) as server:
            server.starttls()
            server.login(self.settings.get("EMAIL_USER"), self.settings.get("EMAIL_PASS"))
            server.send_message(message)
