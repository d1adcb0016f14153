"""
Database connection and initialization.
"""

import aiosqlite
from datetime import datetime, timezone
from pathlib import Path
from app.config import settings
from app.logging import get_logger

logger = get_logger('database')

SCHEMA_PATH = Path(__file__).parent / "init_db.sql"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _table_columns(db: aiosqlite.Connection, table_name: str) -> set[str]:
    cursor = await db.execute(f"PRAGMA table_info({table_name})")
    rows = await cursor.fetchall()
    return {row[1] for row in rows}


async def _migrate_kv_store_version(db: aiosqlite.Connection) -> None:
    columns = await _table_columns(db, "kv_store")
    if "version" in columns:
        return
    logger.info("Applying migration: add kv_store.version")
    await db.execute("ALTER TABLE kv_store ADD COLUMN version INTEGER NOT NULL DEFAULT 0")


async def init_db(db_path: str | Path | None = None):
    """
    Initialize database with schema.

    :param db_path: Database file, defaults to settings.DATABASE_PATH
    :type db_path: str | Path | None
    :return: None
    :rtype: None
    """
    path = Path(db_path or settings.DATABASE_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)

    async with aiosqlite.connect(path) as db:
        with open(SCHEMA_PATH) as f:
            await db.executescript(f.read())
        await _migrate_kv_store_version(db)
        await db.commit()
        logger.info(f"Database initialized at {path}")


async def read_slot(db_path: str | Path, name: str) -> str | None:
    """
    Read a key-value slot.

    :param db_path: Database file
    :type db_path: str | Path
    :param name: Slot name
    :type name: str
    :return: Stored value, or None when the slot was never written
    :rtype: str | None
    """
    async with aiosqlite.connect(db_path) as db:
        cursor = await db.execute("SELECT value FROM kv_store WHERE name = ?", (name,))
        row = await cursor.fetchone()
        return str(row[0]) if row else None


async def write_slot(db_path: str | Path, name: str, value: str) -> None:
    """
    Overwrite a key-value slot, bumping its version.

    :param db_path: Database file
    :type db_path: str | Path
    :param name: Slot name
    :type name: str
    :param value: Serialized value
    :type value: str
    :return: None
    :rtype: None
    """
    async with aiosqlite.connect(db_path) as db:
        await db.execute(
            """INSERT INTO kv_store (name, value, version, updated_at)
               VALUES (?, ?, 1, ?)
               ON CONFLICT(name) DO UPDATE SET
                   value = excluded.value,
                   version = kv_store.version + 1,
                   updated_at = excluded.updated_at""",
            (name, value, _now()),
        )
        await db.commit()
