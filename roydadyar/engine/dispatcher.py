"""Dispatch cycle - selects due reminders and sends them."""

import logging
from datetime import datetime
from typing import Callable

from roydadyar.channels.base import NotificationData
from roydadyar.channels.registry import Channels, send_notification
from roydadyar.db.models import CycleReport, DeliveryOutcome, DueReminder
from roydadyar.db.repository import Repository
from roydadyar.engine.ledger import record_sent, should_send_today
from roydadyar.engine.selector import days_until, select_due
from roydadyar.engine.tier_gate import is_channel_allowed
from roydadyar.utils.time_utils import local_midnight, utc_now

logger = logging.getLogger(__name__)


def build_notification(candidate: DueReminder, today_start: datetime) -> NotificationData:
    """Template fields for one candidate."""
    return NotificationData(
        to=candidate.user.email,
        event_title=candidate.event.title,
        event_date=candidate.event.event_date,
        days_until=days_until(candidate.event.event_date, today_start),
        user_full_name=candidate.user.full_name,
    )


async def run_cycle(
    repo: Repository,
    channels: Channels,
    timezone: str,
    clock: Callable[[], datetime] = utc_now,
) -> CycleReport:
    """Run one dispatch cycle.

    1. Fetch live reminders for active, not-yet-past events
    2. Keep those whose lead time matches today (or the event is today)
    3. Skip ones already sent today or no longer allowed by the owner's tier
    4. Send, and on success advance the ledger

    A failure on one reminder is recorded and the cycle moves on. Errors
    while fetching the pool propagate to the caller.
    """
    now = clock()
    today_start = local_midnight(now, timezone)
    report = CycleReport(started_at=now)

    candidates = await repo.get_candidate_reminders(today_start)
    report.total_checked = len(candidates)
    logger.info(f"Found {len(candidates)} reminders to check")

    for candidate in select_due(candidates, today_start):
        reminder, event, user = candidate.reminder, candidate.event, candidate.user

        if not should_send_today(reminder, today_start):
            continue  # Already sent today

        outcome = DeliveryOutcome(
            reminder_id=reminder.id,  # type: ignore
            event_title=event.title,
            method=reminder.method,
            status="sent",
            recipient=user.email if reminder.method == "EMAIL" else user.phone,
        )

        if not is_channel_allowed(user.subscription_type, reminder.method):
            logger.info(
                f"Skipping {reminder.method} reminder {reminder.id}: "
                f"not available on {user.subscription_type} plan"
            )
            outcome.status = "skipped"
            outcome.error = f"{reminder.method} not available on {user.subscription_type} plan"
            report.outcomes.append(outcome)
            continue

        try:
            data = build_notification(candidate, today_start)
            success = await send_notification(channels, reminder.method, data, user.phone)

            if success:
                await record_sent(repo, reminder, clock())
                logger.info(f"Sent {reminder.method} notification for event: {event.title}")
            else:
                outcome.status = "failed"
                outcome.error = "Failed to send notification"
                logger.error(
                    f"Failed to send {reminder.method} notification for event: {event.title}"
                )

        except Exception as e:
            logger.error(f"Error processing reminder {reminder.id}: {e}")
            outcome.status = "failed"
            outcome.error = str(e)

        report.outcomes.append(outcome)

    report.finished_at = clock()
    logger.info(
        f"Notification check completed. Sent: {report.sent}, "
        f"Failed: {report.failed}, Skipped: {report.skipped}"
    )
    return report
