"""Message text formatters for each channel."""

from html import escape

from roydadyar.channels.base import NotificationData
from roydadyar.utils.constants import APP_NAME
from roydadyar.utils.time_utils import format_days_left


def format_email_subject(data: NotificationData) -> str:
    """Subject line: day-of wording differs from lead-time wording."""
    if data.days_until == 0:
        return f"Today: {data.event_title}"
    return f"Reminder: {data.event_title} - {format_days_left(data.days_until)}"


def format_email_html(data: NotificationData, app_url: str) -> str:
    """Format the HTML email body."""
    title = escape(data.event_title)
    name = escape(data.user_full_name)
    date_str = data.event_date.strftime("%Y-%m-%d")

    if data.days_until == 0:
        banner = (
            '<div style="background: #fef3c7; border: 1px solid #f59e0b; '
            'border-radius: 8px; padding: 20px; margin: 20px 0;">'
            f"<h3>🔔 Today is the day!</h3><p><b>{title}</b></p></div>"
        )
    else:
        banner = (
            '<div style="background: #dbeafe; border: 1px solid #3b82f6; '
            'border-radius: 8px; padding: 20px; margin: 20px 0;">'
            f"<h3>⏰ Event reminder</h3><p><b>{title}</b></p>"
            f"<p>{format_days_left(data.days_until)} until the event</p></div>"
        )

    return f"""
<div style="font-family: Tahoma, Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h1>📅 {APP_NAME}</h1>
  <h2>Hello {name},</h2>
  {banner}
  <p><b>Event:</b> {title}</p>
  <p><b>Date:</b> {date_str}</p>
  <p><a href="{app_url}/dashboard">Open dashboard</a></p>
  <p style="color: #9ca3af; font-size: 14px;">
    This message was sent by {APP_NAME}. Manage your reminders from the dashboard.
  </p>
</div>
""".strip()


def format_sms_text(data: NotificationData, app_url: str) -> str:
    """Format a plain-text SMS."""
    if data.days_until == 0:
        return f'🔔 {APP_NAME}: today is "{data.event_title}"! Details: {app_url}/dashboard'
    return (
        f'⏰ {APP_NAME}: {format_days_left(data.days_until)} until "{data.event_title}". '
        f"Dashboard: {app_url}"
    )


def format_whatsapp_text(data: NotificationData, app_url: str) -> str:
    """Format a WhatsApp message (WhatsApp markdown)."""
    if data.days_until == 0:
        return (
            f"🔔 *{APP_NAME}*\n\n"
            f'Today is "{data.event_title}"!\n\n'
            f"See the details on your dashboard:\n{app_url}"
        )
    return (
        f"⏰ *{APP_NAME}*\n\n"
        f'{format_days_left(data.days_until)} until "{data.event_title}".\n\n'
        f"Dashboard: {app_url}"
    )
