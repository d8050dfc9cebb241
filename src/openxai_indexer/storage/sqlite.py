"""SQLite implementation of the DocumentMedium protocol."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite

SCHEMA = """
-- One row per named document; the body is replaced as a whole
CREATE TABLE IF NOT EXISTS documents (
    name TEXT PRIMARY KEY,
    body TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteDocumentMedium:
    """SQLite-backed named document store. Every save is committed."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(SCHEMA)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        assert self._db is not None, "Medium not initialized. Call initialize() first."
        return self._db

    async def load(self, name: str) -> Any | None:
        async with self.db.execute("SELECT body FROM documents WHERE name=?", (name,)) as cur:
            row = await cur.fetchone()
            return json.loads(row["body"]) if row else None

    async def save(self, name: str, document: Any) -> None:
        await self.db.execute(
            "INSERT INTO documents (name, body, updated_at) VALUES (?, ?, ?)"
            " ON CONFLICT(name) DO UPDATE SET body=excluded.body,"
            " updated_at=excluded.updated_at",
            (name, json.dumps(document, separators=(",", ":")), _now()),
        )
        await self.db.commit()
