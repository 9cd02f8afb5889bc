"""Migration runner: brings a suggestion database up to the latest schema.

Migrations live beside this module as `m_NNN_description.py`, where NNN
is a zero-padded version number, and each defines
`async def upgrade(db: aiosqlite.Connection)`. Applied versions are
recorded in `schema_version`, so running the runner twice is a no-op.
"""

from __future__ import annotations

import importlib
import logging
from pathlib import Path

import aiosqlite

_logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent
MIGRATION_PREFIX = "m_"


def discover_migrations() -> list[tuple[int, str]]:
    """(version, module name) for every migration module, in version order."""
    found = []
    for path in MIGRATIONS_DIR.glob(f"{MIGRATION_PREFIX}*.py"):
        parts = path.stem.split("_")
        if len(parts) < 2 or not parts[1].isdigit():
            continue
        found.append((int(parts[1]), path.stem))
    return sorted(found)


async def get_schema_version(db_path: str) -> int:
    async with aiosqlite.connect(db_path) as db:
        await db.execute(
            "CREATE TABLE IF NOT EXISTS schema_version "
            "(version INTEGER PRIMARY KEY, applied_at TEXT DEFAULT CURRENT_TIMESTAMP)"
        )
        await db.commit()
        cursor = await db.execute("SELECT MAX(version) FROM schema_version")
        row = await cursor.fetchone()
        return row[0] or 0


async def apply_migrations(db_path: str) -> list[int]:
    """Apply pending migrations. Returns the versions applied this call."""
    current = await get_schema_version(db_path)
    applied: list[int] = []

    for version, name in discover_migrations():
        if version <= current:
            continue
        module = importlib.import_module(f"cryptoagency.migrations.{name}")
        async with aiosqlite.connect(db_path) as db:
            await module.upgrade(db)
            await db.execute("INSERT INTO schema_version (version) VALUES (?)", (version,))
            await db.commit()
        _logger.info("Applied migration %03d (%s)", version, name)
        applied.append(version)

    return applied
