"""Database migration runner."""

import logging
from pathlib import Path

import aiosqlite

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).parent / "schema.sql"


async def init_database(db_path: Path) -> None:
    """Create all tables and indexes if they do not exist yet."""
    schema_sql = SCHEMA_PATH.read_text(encoding="utf-8")

    async with aiosqlite.connect(db_path) as db:
        await db.executescript(schema_sql)
        await db.commit()

    logger.info(f"Database initialized at {db_path}")


async def run_migrations(db_path: Path) -> None:
    """Run any pending migrations.

    The schema is idempotent, so this only ensures it has been applied.
    """
    await init_database(db_path)
