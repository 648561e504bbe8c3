"""Data models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal


Channel = Literal["EMAIL", "SMS", "WHATSAPP"]
Tier = Literal["FREE", "PREMIUM", "BUSINESS"]
EventType = Literal["BIRTHDAY", "INSURANCE", "CONTRACT", "CHECK", "CUSTOM"]
OutcomeStatus = Literal["sent", "failed", "skipped"]


@dataclass
class User:
    """Account holder. ``subscription_type`` is the tier enforced at dispatch."""

    email: str
    full_name: str
    phone: str | None = None
    subscription_type: Tier = "FREE"
    created_at: datetime | None = None
    id: int | None = None


@dataclass
class Event:
    """A dated event owned by one user."""

    user_id: int
    title: str
    event_date: datetime  # UTC
    event_type: EventType = "CUSTOM"
    description: str | None = None
    is_active: bool = True
    created_at: datetime | None = None
    id: int | None = None


@dataclass
class Reminder:
    """One lead time on one channel for an event."""

    event_id: int
    days_before: int
    method: Channel
    is_active: bool = True
    last_sent_at: datetime | None = None  # UTC, the delivery ledger
    created_at: datetime | None = None
    id: int | None = None


@dataclass
class DueReminder:
    """A candidate reminder joined with its event and owner."""

    reminder: Reminder
    event: Event
    user: User


@dataclass
class Subscription:
    """A paid plan purchase. Pending until the payment provider verifies it.

    ``activated_at`` is set once, on verification. A row that is inactive but
    was activated has been cancelled, not left pending.
    """

    user_id: int
    type: Tier
    amount: int
    end_date: datetime  # UTC
    is_active: bool = False
    payment_id: str | None = None  # Provider authority, then the ref id
    activated_at: datetime | None = None  # UTC
    start_date: datetime | None = None
    created_at: datetime | None = None
    id: int | None = None

    @property
    def is_pending(self) -> bool:
        return not self.is_active and self.activated_at is None


@dataclass
class DeliveryOutcome:
    """Result of one reminder in a dispatch cycle."""

    reminder_id: int
    event_title: str
    method: Channel
    status: OutcomeStatus
    recipient: str | None = None
    error: str | None = None


@dataclass
class CycleReport:
    """Summary of one scheduler cycle."""

    started_at: datetime
    total_checked: int = 0
    finished_at: datetime | None = None
    outcomes: list[DeliveryOutcome] = field(default_factory=list)

    @property
    def sent(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "sent")

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "failed")

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "skipped")
