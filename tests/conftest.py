"""Shared test fixtures."""

import itertools
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from roydadyar.channels.registry import build_channels
from roydadyar.db.migrations import run_migrations
from roydadyar.db.models import Event, Reminder
from roydadyar.db.repository import Repository
from roydadyar.settings_store import SettingsStore
from roydadyar.utils.time_utils import local_midnight

TZ = "Asia/Tehran"
# 11:30 local time in Tehran
NOW = datetime(2026, 3, 1, 8, 0, tzinfo=ZoneInfo("UTC"))
TODAY_START = local_midnight(NOW, TZ)

_emails = itertools.count(1)


def local_day(days_from_today: int) -> datetime:
    """Local midnight ``days_from_today`` days after today, in UTC."""
    return TODAY_START + timedelta(days=days_from_today)


@pytest.fixture
async def repo(tmp_path):
    """A migrated, connected repository on a fresh database file."""
    db_path = tmp_path / "test.db"
    await run_migrations(db_path)

    repository = Repository(db_path)
    await repository.connect()
    yield repository
    await repository.close()


@pytest.fixture
def settings():
    """Settings with no provider credentials (every channel in demo mode)."""
    return SettingsStore()


@pytest.fixture
def channels(settings):
    return build_channels(settings)


@pytest.fixture
def make_user(repo):
    """Factory for users with unique email addresses."""

    async def _make(tier: str = "FREE", phone: str | None = "09120000000"):
        n = next(_emails)
        return await repo.create_user(
            email=f"user{n}@example.com",
            full_name=f"User {n}",
            phone=phone,
            subscription_type=tier,
        )

    return _make


@pytest.fixture
def make_reminder(repo, make_user):
    """Factory for a user + event + one reminder.

    Returns:
        Tuple of (user, event, reminder)
    """

    async def _make(
        days_from_today: int,
        days_before: int,
        method: str = "EMAIL",
        tier: str = "FREE",
        user=None,
        event=None,
        last_sent_at: datetime | None = None,
    ):
        if user is None:
            user = await make_user(tier)
        if event is None:
            event = await repo.create_event(
                Event(user_id=user.id, title="Car insurance", event_date=local_day(days_from_today))
            )
        reminder = await repo.create_reminder(
            Reminder(
                event_id=event.id,
                days_before=days_before,
                method=method,
                last_sent_at=last_sent_at,
            )
        )
        return user, event, reminder

    return _make


@pytest.fixture
def tz():
    return TZ


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    """Frozen clock at NOW."""
    return lambda: NOW


@pytest.fixture
def today_start():
    return TODAY_START


@pytest.fixture(name="local_day")
def local_day_fixture():
    return local_day
