"""Tier gate: which channels a subscriber may use.

Checked twice. When reminders are configured, channels the owner is not
entitled to are dropped before anything is stored. At dispatch time the
owner's current tier is checked again, so a downgrade silences premium
channels on the next cycle without touching stored reminders.
"""

import logging
from typing import FrozenSet, Iterable, List

from roydadyar.db.models import Event, Reminder, User
from roydadyar.db.repository import Repository
from roydadyar.utils.constants import (
    ALL_CHANNELS,
    DEFAULT_REMINDER_DAYS,
    DEFAULT_REMINDER_METHODS,
    EVENT_TYPES,
    FREE,
    FREE_EVENT_LIMIT,
    PLANS,
)
from roydadyar.utils.exceptions import NotFound, PlanLimitExceeded

logger = logging.getLogger(__name__)


def allowed_channels(tier: str) -> FrozenSet[str]:
    """Channels available on a tier. Unknown tiers get the free set."""
    plan = PLANS.get(tier, PLANS[FREE])
    return frozenset(plan.reminder_methods)


def is_channel_allowed(tier: str, method: str) -> bool:
    """Check a single channel against a tier."""
    return method in allowed_channels(tier)


def filter_methods(tier: str, methods: Iterable[str]) -> List[str]:
    """Drop channels the tier does not allow, keeping order and removing repeats."""
    allowed = allowed_channels(tier)
    kept: List[str] = []
    for method in methods:
        if method not in ALL_CHANNELS:
            raise ValueError(f"Unknown reminder method: {method}")
        if method in allowed and method not in kept:
            kept.append(method)
    return kept


def _unique_days(days: Iterable[int]) -> List[int]:
    result: List[int] = []
    for day in days:
        if day < 0:
            raise ValueError("days_before must be zero or positive")
        if day not in result:
            result.append(day)
    return result


def _gate_config(
    user: User, days: Iterable[int], methods: Iterable[str]
) -> tuple[List[int], List[str]]:
    """Validate lead times and drop channels the owner may not use."""
    methods = list(methods)
    permitted = filter_methods(user.subscription_type, methods)
    dropped = [m for m in methods if m not in permitted]
    if dropped:
        logger.info(
            f"Dropped {', '.join(sorted(set(dropped)))} for user {user.id} "
            f"on {user.subscription_type} plan"
        )
    return _unique_days(days), permitted


async def _create_reminders(
    repo: Repository, event_id: int, days: List[int], permitted: List[str]
) -> List[Reminder]:
    """Create one reminder per (lead time, allowed channel) pair."""
    reminders = []
    for day in days:
        for method in permitted:
            reminder = await repo.create_reminder(
                Reminder(event_id=event_id, days_before=day, method=method)  # type: ignore
            )
            reminders.append(reminder)
    return reminders


async def create_event_with_reminders(
    repo: Repository,
    user: User,
    event: Event,
    days: Iterable[int] | None = None,
    methods: Iterable[str] | None = None,
) -> tuple[Event, List[Reminder]]:
    """Store a new event and its gated reminders.

    Free users may only keep a limited number of active events.
    """
    if event.event_type not in EVENT_TYPES:
        raise ValueError(f"Unknown event type: {event.event_type}")

    if user.subscription_type == FREE:
        count = await repo.count_active_events(user.id)  # type: ignore
        if count >= FREE_EVENT_LIMIT:
            raise PlanLimitExceeded(
                f"The free plan allows at most {FREE_EVENT_LIMIT} events"
            )

    day_list, permitted = _gate_config(
        user,
        DEFAULT_REMINDER_DAYS if days is None else days,
        DEFAULT_REMINDER_METHODS if methods is None else methods,
    )

    event.user_id = user.id  # type: ignore
    created = await repo.create_event(event)
    reminders = await _create_reminders(repo, created.id, day_list, permitted)  # type: ignore

    logger.info(f"Created event {created.id} with {len(reminders)} reminders")
    return created, reminders


async def update_event_reminders(
    repo: Repository,
    user: User,
    event_id: int,
    days: Iterable[int] | None = None,
    methods: Iterable[str] | None = None,
) -> List[Reminder]:
    """Replace an event's reminders.

    Reminders are only replaced when both lead times and channels are
    given; the old ones are soft-deleted so their ledger is kept.
    """
    event = await repo.get_event(event_id)
    if event is None or not event.is_active or event.user_id != user.id:
        raise NotFound("Event not found")

    if days is None or methods is None:
        return await repo.get_reminders_for_event(event_id)

    day_list, permitted = _gate_config(user, days, methods)
    await repo.deactivate_reminders_for_event(event_id)
    return await _create_reminders(repo, event_id, day_list, permitted)


async def deactivate_event(repo: Repository, user: User, event_id: int) -> None:
    """Soft-delete an event so no reminder acts on it any more."""
    event = await repo.get_event(event_id)
    if event is None or not event.is_active or event.user_id != user.id:
        raise NotFound("Event not found")

    await repo.deactivate_event(event_id)
    logger.info(f"Deactivated event {event_id} and its reminders")

