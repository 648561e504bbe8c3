"""Tests for tier-based channel gating."""

import pytest

from roydadyar.db.models import Event
from roydadyar.engine.tier_gate import (
    allowed_channels,
    create_event_with_reminders,
    deactivate_event,
    filter_methods,
    is_channel_allowed,
    update_event_reminders,
)
from roydadyar.utils.exceptions import NotFound, PlanLimitExceeded


def test_allowed_channels_per_tier():
    assert allowed_channels("FREE") == {"EMAIL"}
    assert allowed_channels("PREMIUM") == {"EMAIL", "SMS", "WHATSAPP"}
    assert allowed_channels("BUSINESS") == {"EMAIL", "SMS", "WHATSAPP"}


def test_unknown_tier_gets_free_channels():
    assert allowed_channels("GOLD") == {"EMAIL"}


def test_is_channel_allowed():
    assert is_channel_allowed("FREE", "EMAIL")
    assert not is_channel_allowed("FREE", "SMS")
    assert is_channel_allowed("PREMIUM", "WHATSAPP")


def test_filter_methods_drops_silently():
    """Free users keep only email; order is preserved and repeats removed."""
    assert filter_methods("FREE", ["SMS", "EMAIL", "WHATSAPP"]) == ["EMAIL"]
    assert filter_methods("PREMIUM", ["SMS", "EMAIL", "SMS"]) == ["SMS", "EMAIL"]


def test_filter_methods_rejects_unknown_channel():
    with pytest.raises(ValueError):
        filter_methods("PREMIUM", ["FAX"])


async def test_create_event_free_user_stores_only_email(repo, make_user, local_day):
    """Non-email channels requested by a free user are never stored."""
    user = await make_user("FREE")

    event, reminders = await create_event_with_reminders(
        repo,
        user,
        Event(user_id=user.id, title="Contract renewal", event_date=local_day(10)),
        days=[1, 7],
        methods=["EMAIL", "SMS", "WHATSAPP"],
    )

    assert {r.method for r in reminders} == {"EMAIL"}
    assert sorted(r.days_before for r in reminders) == [1, 7]
    stored = await repo.get_reminders_for_event(event.id)
    assert len(stored) == 2


async def test_create_event_premium_cross_product(repo, make_user, local_day):
    """One reminder per lead time and channel."""
    user = await make_user("PREMIUM")

    _, reminders = await create_event_with_reminders(
        repo,
        user,
        Event(user_id=user.id, title="Check due", event_date=local_day(10)),
        days=[1, 3, 7],
        methods=["EMAIL", "SMS"],
    )

    assert len(reminders) == 6
    assert {(r.days_before, r.method) for r in reminders} == {
        (d, m) for d in (1, 3, 7) for m in ("EMAIL", "SMS")
    }


async def test_create_event_defaults(repo, make_user, local_day):
    """Without a choice, reminders go out by email 1 and 7 days before."""
    user = await make_user("FREE")

    _, reminders = await create_event_with_reminders(
        repo, user, Event(user_id=user.id, title="Birthday", event_date=local_day(30))
    )

    assert sorted((r.days_before, r.method) for r in reminders) == [(1, "EMAIL"), (7, "EMAIL")]


async def test_free_plan_event_limit(repo, make_user, local_day):
    """A free user cannot keep more than three active events."""
    user = await make_user("FREE")
    for i in range(3):
        await create_event_with_reminders(
            repo, user, Event(user_id=user.id, title=f"Event {i}", event_date=local_day(10))
        )

    with pytest.raises(PlanLimitExceeded):
        await create_event_with_reminders(
            repo, user, Event(user_id=user.id, title="One too many", event_date=local_day(10))
        )


async def test_negative_lead_time_rejected_before_storing(repo, make_user, local_day):
    user = await make_user("FREE")

    with pytest.raises(ValueError):
        await create_event_with_reminders(
            repo,
            user,
            Event(user_id=user.id, title="Bad", event_date=local_day(10)),
            days=[-1],
        )

    assert await repo.count_active_events(user.id) == 0


async def test_unknown_event_type_rejected(repo, make_user, local_day):
    """Only the known event types are accepted."""
    user = await make_user("FREE")

    with pytest.raises(ValueError):
        await create_event_with_reminders(
            repo,
            user,
            Event(user_id=user.id, title="Party", event_date=local_day(5), event_type="PARTY"),
        )

    assert await repo.count_active_events(user.id) == 0


async def test_event_type_is_stored(repo, make_user, local_day):
    user = await make_user("FREE")

    event, _ = await create_event_with_reminders(
        repo,
        user,
        Event(user_id=user.id, title="Car insurance", event_date=local_day(5), event_type="INSURANCE"),
    )

    assert (await repo.get_event(event.id)).event_type == "INSURANCE"


async def test_update_replaces_and_soft_deletes(repo, make_user, local_day):
    """Old reminders are deactivated, not deleted, when the config changes."""
    user = await make_user("PREMIUM")
    event, old = await create_event_with_reminders(
        repo,
        user,
        Event(user_id=user.id, title="Insurance", event_date=local_day(10)),
        days=[7],
        methods=["SMS"],
    )

    new = await update_event_reminders(repo, user, event.id, days=[2], methods=["EMAIL"])

    assert [(r.days_before, r.method) for r in new] == [(2, "EMAIL")]
    everything = await repo.get_reminders_for_event(event.id, active_only=False)
    assert len(everything) == 2
    retired = await repo.get_reminder(old[0].id)
    assert retired is not None and not retired.is_active


async def test_update_gates_on_current_tier(repo, make_user, local_day):
    """A user who dropped to FREE cannot re-add SMS on update."""
    user = await make_user("PREMIUM")
    event, _ = await create_event_with_reminders(
        repo,
        user,
        Event(user_id=user.id, title="Insurance", event_date=local_day(10)),
        days=[7],
        methods=["SMS"],
    )
    await repo.set_subscription_type(user.id, "FREE")
    user = await repo.get_user(user.id)

    new = await update_event_reminders(repo, user, event.id, days=[7], methods=["SMS", "EMAIL"])

    assert [r.method for r in new] == ["EMAIL"]


async def test_update_without_both_lists_keeps_reminders(repo, make_user, local_day):
    user = await make_user("FREE")
    event, created = await create_event_with_reminders(
        repo, user, Event(user_id=user.id, title="Birthday", event_date=local_day(10))
    )

    kept = await update_event_reminders(repo, user, event.id, days=[3])

    assert [r.id for r in kept] == [r.id for r in created]


async def test_deactivate_event_retires_reminders(repo, make_user, local_day):
    """An inactive event has no live reminders."""
    user = await make_user("FREE")
    event, _ = await create_event_with_reminders(
        repo, user, Event(user_id=user.id, title="Birthday", event_date=local_day(10))
    )

    await deactivate_event(repo, user, event.id)

    assert (await repo.get_event(event.id)).is_active is False
    assert await repo.get_reminders_for_event(event.id) == []


async def test_other_users_event_not_found(repo, make_user, local_day):
    owner = await make_user("FREE")
    stranger = await make_user("FREE")
    event, _ = await create_event_with_reminders(
        repo, owner, Event(user_id=owner.id, title="Private", event_date=local_day(10))
    )

    with pytest.raises(NotFound):
        await deactivate_event(repo, stranger, event.id)
