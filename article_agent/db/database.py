"""SQLite connection and migration helpers."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

SCHEMA_PATH = Path(__file__).with_name("schema.sql")


async def _init_connection(db: aiosqlite.Connection) -> None:
    await db.execute("PRAGMA journal_mode = WAL")
    await db.execute("PRAGMA synchronous = NORMAL")
    await db.execute("PRAGMA foreign_keys = ON")
    await db.execute("PRAGMA temp_store = MEMORY")


async def run_migrations(db: aiosqlite.Connection) -> None:
    schema_sql = SCHEMA_PATH.read_text(encoding="utf-8")
    await db.executescript(schema_sql)
    await db.commit()


async def open_db(db_path: str) -> aiosqlite.Connection:
    """Open a long-lived connection (caller closes it)."""
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    db = await aiosqlite.connect(str(path))
    db.row_factory = aiosqlite.Row
    await _init_connection(db)
    await run_migrations(db)
    return db


@asynccontextmanager
async def get_db(db_path: str = "data/article_agent.db") -> AsyncIterator[aiosqlite.Connection]:
    db = await open_db(db_path)
    try:
        yield db
    finally:
        await db.close()
