"""Due-reminder selection."""

from datetime import datetime
from typing import Iterable, List

from roydadyar.db.models import DueReminder
from roydadyar.utils.time_utils import days_between


def days_until(event_date: datetime, today_start: datetime) -> int:
    """Days from the start of today to the event, partial days rounded up."""
    return days_between(today_start, event_date)


def is_due(candidate: DueReminder, today_start: datetime) -> bool:
    """Check if a reminder fires today.

    A reminder fires on its lead-time day, and every reminder fires again on
    the day of the event itself even if its lead time did not match.
    """
    remaining = days_until(candidate.event.event_date, today_start)
    return remaining == candidate.reminder.days_before or remaining == 0


def select_due(
    candidates: Iterable[DueReminder], today_start: datetime
) -> List[DueReminder]:
    """Filter the candidate pool down to reminders that fire today.

    Selection is per reminder, so an event dated today with a
    ``days_before=0`` reminder is still selected exactly once.
    """
    return [c for c in candidates if is_due(c, today_start)]
