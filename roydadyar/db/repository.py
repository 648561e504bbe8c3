"""Database repository - all SQL queries."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List
from zoneinfo import ZoneInfo

import aiosqlite

from roydadyar.db.models import DueReminder, Event, Reminder, Subscription, User

logger = logging.getLogger(__name__)


def to_db_time(dt: datetime) -> str:
    """Serialize a datetime as a sortable UTC ISO string."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=ZoneInfo("UTC"))
    return dt.astimezone(ZoneInfo("UTC")).isoformat(timespec="seconds")


def from_db_time(value: str | None) -> datetime | None:
    """Parse a stored timestamp back into an aware datetime."""
    if not value:
        return None
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=ZoneInfo("UTC"))
    return dt


class Repository:
    """Database access layer."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open database connection."""
        self._db = await aiosqlite.connect(self.db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.execute("PRAGMA foreign_keys = ON")
        logger.info(f"Connected to database at {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        if self._db:
            await self._db.close()
            self._db = None
            logger.info("Database connection closed")

    @property
    def db(self) -> aiosqlite.Connection:
        """Get the database connection."""
        if self._db is None:
            raise RuntimeError("Database not connected")
        return self._db

    # User operations

    async def create_user(
        self,
        email: str,
        full_name: str,
        phone: str | None = None,
        subscription_type: str = "FREE",
    ) -> User:
        """Create a new user."""
        async with self.db.execute(
            """
            INSERT INTO users (email, full_name, phone, subscription_type)
            VALUES (?, ?, ?, ?)
            RETURNING *
            """,
            (email, full_name, phone, subscription_type),
        ) as cursor:
            row = await cursor.fetchone()
        await self.db.commit()

        logger.info(f"Created user {email}")
        return self._row_to_user(row)

    async def get_user(self, user_id: int) -> User | None:
        """Get user by database ID."""
        async with self.db.execute(
            "SELECT * FROM users WHERE id = ?", (user_id,)
        ) as cursor:
            row = await cursor.fetchone()
            if row:
                return self._row_to_user(row)
            return None

    async def set_subscription_type(self, user_id: int, subscription_type: str) -> None:
        """Set the tier enforced for a user."""
        await self.db.execute(
            "UPDATE users SET subscription_type = ? WHERE id = ?",
            (subscription_type, user_id),
        )
        await self.db.commit()

    # Event operations

    async def create_event(self, event: Event) -> Event:
        """Create a new event."""
        async with self.db.execute(
            """
            INSERT INTO events (user_id, title, description, event_date, event_type, is_active)
            VALUES (?, ?, ?, ?, ?, ?)
            RETURNING *
            """,
            (
                event.user_id,
                event.title,
                event.description,
                to_db_time(event.event_date),
                event.event_type,
                1 if event.is_active else 0,
            ),
        ) as cursor:
            row = await cursor.fetchone()
        await self.db.commit()
        return self._row_to_event(row)

    async def get_event(self, event_id: int) -> Event | None:
        """Get an event by ID."""
        async with self.db.execute(
            "SELECT * FROM events WHERE id = ?", (event_id,)
        ) as cursor:
            row = await cursor.fetchone()
            if row:
                return self._row_to_event(row)
            return None

    async def count_active_events(self, user_id: int) -> int:
        """Count a user's active events."""
        async with self.db.execute(
            "SELECT COUNT(*) FROM events WHERE user_id = ? AND is_active = 1",
            (user_id,),
        ) as cursor:
            row = await cursor.fetchone()
            return row[0]

    async def deactivate_event(self, event_id: int) -> None:
        """Soft-delete an event together with its reminders."""
        await self.db.execute(
            "UPDATE events SET is_active = 0 WHERE id = ?", (event_id,)
        )
        await self.db.execute(
            "UPDATE reminders SET is_active = 0 WHERE event_id = ?", (event_id,)
        )
        await self.db.commit()

    # Reminder operations

    async def create_reminder(self, reminder: Reminder) -> Reminder:
        """Create a new reminder."""
        async with self.db.execute(
            """
            INSERT INTO reminders (event_id, days_before, method, is_active, last_sent_at)
            VALUES (?, ?, ?, ?, ?)
            RETURNING *
            """,
            (
                reminder.event_id,
                reminder.days_before,
                reminder.method,
                1 if reminder.is_active else 0,
                to_db_time(reminder.last_sent_at) if reminder.last_sent_at else None,
            ),
        ) as cursor:
            row = await cursor.fetchone()
        await self.db.commit()
        return self._row_to_reminder(row)

    async def get_reminder(self, reminder_id: int) -> Reminder | None:
        """Get a reminder by ID."""
        async with self.db.execute(
            "SELECT * FROM reminders WHERE id = ?", (reminder_id,)
        ) as cursor:
            row = await cursor.fetchone()
            if row:
                return self._row_to_reminder(row)
            return None

    async def get_reminders_for_event(
        self, event_id: int, active_only: bool = True
    ) -> List[Reminder]:
        """Get reminders of an event, by default only live ones."""
        if active_only:
            query = "SELECT * FROM reminders WHERE event_id = ? AND is_active = 1 ORDER BY id"
        else:
            query = "SELECT * FROM reminders WHERE event_id = ? ORDER BY id"

        async with self.db.execute(query, (event_id,)) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_reminder(row) for row in rows]

    async def deactivate_reminders_for_event(self, event_id: int) -> None:
        """Soft-delete every reminder of an event."""
        await self.db.execute(
            "UPDATE reminders SET is_active = 0 WHERE event_id = ?", (event_id,)
        )
        await self.db.commit()

    async def get_candidate_reminders(self, today_start: datetime) -> List[DueReminder]:
        """Get live reminders whose event is active and not in the past.

        This is the pool the selector filters each cycle.
        """
        async with self.db.execute(
            """
            SELECT
                r.id AS r_id, r.event_id AS r_event_id, r.days_before AS r_days_before,
                r.method AS r_method, r.is_active AS r_is_active,
                r.last_sent_at AS r_last_sent_at, r.created_at AS r_created_at,
                e.id AS e_id, e.user_id AS e_user_id, e.title AS e_title,
                e.description AS e_description, e.event_date AS e_event_date,
                e.event_type AS e_event_type, e.is_active AS e_is_active,
                e.created_at AS e_created_at,
                u.id AS u_id, u.email AS u_email, u.full_name AS u_full_name,
                u.phone AS u_phone, u.subscription_type AS u_subscription_type,
                u.created_at AS u_created_at
            FROM reminders r
            JOIN events e ON e.id = r.event_id
            JOIN users u ON u.id = e.user_id
            WHERE r.is_active = 1
            AND e.is_active = 1
            AND e.event_date >= ?
            ORDER BY e.event_date, r.id
            """,
            (to_db_time(today_start),),
        ) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_due_reminder(row) for row in rows]

    async def record_sent(self, reminder_id: int, sent_at: datetime) -> bool:
        """Store a successful send time.

        The stored value never moves backwards.

        Returns:
            True if the ledger was advanced
        """
        stamp = to_db_time(sent_at)
        cursor = await self.db.execute(
            """
            UPDATE reminders SET last_sent_at = ?
            WHERE id = ?
            AND (last_sent_at IS NULL OR last_sent_at < ?)
            """,
            (stamp, reminder_id, stamp),
        )
        await self.db.commit()
        return cursor.rowcount > 0

    # Subscription operations

    async def create_subscription(self, subscription: Subscription) -> Subscription:
        """Create a subscription row (pending unless is_active is set)."""
        async with self.db.execute(
            """
            INSERT INTO subscriptions (user_id, type, amount, end_date, is_active, payment_id)
            VALUES (?, ?, ?, ?, ?, ?)
            RETURNING *
            """,
            (
                subscription.user_id,
                subscription.type,
                subscription.amount,
                to_db_time(subscription.end_date),
                1 if subscription.is_active else 0,
                subscription.payment_id,
            ),
        ) as cursor:
            row = await cursor.fetchone()
        await self.db.commit()
        return self._row_to_subscription(row)

    async def get_subscription(self, subscription_id: int) -> Subscription | None:
        """Get a subscription by ID."""
        async with self.db.execute(
            "SELECT * FROM subscriptions WHERE id = ?", (subscription_id,)
        ) as cursor:
            row = await cursor.fetchone()
            if row:
                return self._row_to_subscription(row)
            return None

    async def get_active_subscription(
        self, user_id: int, ends_after: datetime | None = None
    ) -> Subscription | None:
        """Get the user's entitlement-granting subscription.

        Args:
            user_id: Owner of the subscription
            ends_after: If given, only match subscriptions ending after this time
        """
        query = "SELECT * FROM subscriptions WHERE user_id = ? AND is_active = 1"
        params: list = [user_id]
        if ends_after is not None:
            query += " AND end_date > ?"
            params.append(to_db_time(ends_after))
        query += " ORDER BY created_at DESC, id DESC LIMIT 1"

        async with self.db.execute(query, params) as cursor:
            row = await cursor.fetchone()
            if row:
                return self._row_to_subscription(row)
            return None

    async def get_subscriptions_by_user(self, user_id: int) -> List[Subscription]:
        """Get a user's subscription history, newest first."""
        async with self.db.execute(
            "SELECT * FROM subscriptions WHERE user_id = ? ORDER BY created_at DESC, id DESC",
            (user_id,),
        ) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_subscription(row) for row in rows]

    async def set_payment_id(self, subscription_id: int, payment_id: str) -> None:
        """Store the provider reference on a subscription."""
        await self.db.execute(
            "UPDATE subscriptions SET payment_id = ? WHERE id = ?",
            (payment_id, subscription_id),
        )
        await self.db.commit()

    async def activate_subscription(
        self, subscription: Subscription, payment_id: str, activated_at: datetime
    ) -> bool:
        """Mark a verified pending subscription active and grant its tier to the user.

        Any other active subscription of the same user is deactivated in
        the same transaction. Rows that were activated before are left alone.

        Returns:
            True if the subscription was activated
        """
        cursor = await self.db.execute(
            """
            UPDATE subscriptions SET is_active = 1, payment_id = ?, activated_at = ?
            WHERE id = ? AND is_active = 0 AND activated_at IS NULL
            """,
            (payment_id, to_db_time(activated_at), subscription.id),
        )
        if cursor.rowcount == 0:
            await self.db.rollback()
            return False

        await self.db.execute(
            "UPDATE subscriptions SET is_active = 0 WHERE user_id = ? AND id != ? AND is_active = 1",
            (subscription.user_id, subscription.id),
        )
        await self.db.execute(
            "UPDATE users SET subscription_type = ? WHERE id = ?",
            (subscription.type, subscription.user_id),
        )
        await self.db.commit()
        return True

    async def deactivate_subscription(self, subscription: Subscription) -> None:
        """Stop a subscription granting entitlement and drop the user to FREE."""
        await self.db.execute(
            "UPDATE subscriptions SET is_active = 0 WHERE id = ?", (subscription.id,)
        )
        await self.db.execute(
            "UPDATE users SET subscription_type = 'FREE' WHERE id = ?",
            (subscription.user_id,),
        )
        await self.db.commit()

    async def delete_subscription(self, subscription_id: int) -> None:
        """Delete a subscription row."""
        await self.db.execute(
            "DELETE FROM subscriptions WHERE id = ?", (subscription_id,)
        )
        await self.db.commit()

    # Settings operations

    async def get_settings(self) -> Dict[str, str]:
        """Get all stored settings."""
        async with self.db.execute("SELECT key, value FROM settings") as cursor:
            rows = await cursor.fetchall()
            return {row["key"]: row["value"] for row in rows}

    async def save_settings(self, values: Dict[str, str]) -> None:
        """Insert or replace settings."""
        await self.db.executemany(
            """
            INSERT INTO settings (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = strftime('%Y-%m-%dT%H:%M:%S+00:00', 'now')
            """,
            list(values.items()),
        )
        await self.db.commit()

    # Helper methods

    def _row_to_user(self, row: aiosqlite.Row, prefix: str = "") -> User:
        """Convert a database row to a User object."""
        return User(
            id=row[f"{prefix}id"],
            email=row[f"{prefix}email"],
            full_name=row[f"{prefix}full_name"],
            phone=row[f"{prefix}phone"],
            subscription_type=row[f"{prefix}subscription_type"],
            created_at=from_db_time(row[f"{prefix}created_at"]),
        )

    def _row_to_event(self, row: aiosqlite.Row, prefix: str = "") -> Event:
        """Convert a database row to an Event object."""
        return Event(
            id=row[f"{prefix}id"],
            user_id=row[f"{prefix}user_id"],
            title=row[f"{prefix}title"],
            description=row[f"{prefix}description"],
            event_date=from_db_time(row[f"{prefix}event_date"]),  # type: ignore
            event_type=row[f"{prefix}event_type"],
            is_active=bool(row[f"{prefix}is_active"]),
            created_at=from_db_time(row[f"{prefix}created_at"]),
        )

    def _row_to_reminder(self, row: aiosqlite.Row, prefix: str = "") -> Reminder:
        """Convert a database row to a Reminder object."""
        return Reminder(
            id=row[f"{prefix}id"],
            event_id=row[f"{prefix}event_id"],
            days_before=row[f"{prefix}days_before"],
            method=row[f"{prefix}method"],
            is_active=bool(row[f"{prefix}is_active"]),
            last_sent_at=from_db_time(row[f"{prefix}last_sent_at"]),
            created_at=from_db_time(row[f"{prefix}created_at"]),
        )

    def _row_to_due_reminder(self, row: aiosqlite.Row) -> DueReminder:
        """Convert a joined reminder/event/user row."""
        return DueReminder(
            reminder=self._row_to_reminder(row, prefix="r_"),
            event=self._row_to_event(row, prefix="e_"),
            user=self._row_to_user(row, prefix="u_"),
        )

    def _row_to_subscription(self, row: aiosqlite.Row) -> Subscription:
        """Convert a database row to a Subscription object."""
        return Subscription(
            id=row["id"],
            user_id=row["user_id"],
            type=row["type"],
            amount=row["amount"],
            start_date=from_db_time(row["start_date"]),
            end_date=from_db_time(row["end_date"]),  # type: ignore
            is_active=bool(row["is_active"]),
            payment_id=row["payment_id"],
            activated_at=from_db_time(row["activated_at"]),
            created_at=from_db_time(row["created_at"]),
        )
