"""Delivery ledger: the last successful send time per reminder.

The ledger is the only thing that stops a reminder from being sent twice on
the same day. It is written after the channel reports success, so a crash in
between can produce one duplicate on the next cycle.
"""

from datetime import datetime

from roydadyar.db.models import Reminder
from roydadyar.db.repository import Repository


def should_send_today(reminder: Reminder, today_start: datetime) -> bool:
    """True unless the reminder was already sent since today's midnight."""
    return reminder.last_sent_at is None or reminder.last_sent_at < today_start


async def record_sent(repo: Repository, reminder: Reminder, sent_at: datetime) -> None:
    """Advance the ledger after a confirmed send."""
    advanced = await repo.record_sent(reminder.id, sent_at)  # type: ignore
    if advanced and (reminder.last_sent_at is None or reminder.last_sent_at < sent_at):
        reminder.last_sent_at = sent_at
