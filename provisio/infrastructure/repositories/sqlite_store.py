"""
SQLite Machine Store

Architectural Intent:
- Persistent MachineStorePort backend using SQLite (stdlib, zero external deps)
- One row per (scope, machine name) holding the whole record as JSON text,
  so fields outside the provisioning namespace survive untouched
- Uses WAL mode for concurrent read/write support

Design Decisions:
- Single database file at configurable path (default: provisio.db)
- Auto-creates tables on first use
- Thread-safe via sqlite3's check_same_thread=False
- The default scope is stored as '' because NULL never matches in a key
- Timestamps stored as ISO 8601 strings
"""

from __future__ import annotations
import json
import logging
import sqlite3
from datetime import datetime, UTC
from typing import Any, Optional

from provisio.domain.errors import NotFound

logger = logging.getLogger(__name__)


def _scope_key(scope: Optional[str]) -> str:
    return scope or ""


class SQLiteMachineStore:
    """Machine records persisted in SQLite."""

    def __init__(self, db_path: str = "provisio.db"):
        self._db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None

    def connect(self) -> None:
        """Open database connection and create tables."""
        self._conn = sqlite3.connect(
            self._db_path,
            check_same_thread=False,
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.row_factory = sqlite3.Row
        self._create_tables()
        logger.info("SQLite machine store connected: %s", self._db_path)

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def _create_tables(self) -> None:
        assert self._conn is not None
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS machine_records (
                scope TEXT NOT NULL,
                name TEXT NOT NULL,
                document TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                PRIMARY KEY (scope, name)
            );
        """)

    def load(self, name: str, scope: Optional[str] = None) -> dict[str, Any]:
        assert self._conn is not None
        row = self._conn.execute(
            "SELECT document FROM machine_records WHERE scope = ? AND name = ?",
            (_scope_key(scope), name),
        ).fetchone()
        if row is None:
            raise NotFound(f"No record for machine {name!r} in scope {scope!r}", name)
        return json.loads(row["document"])

    def save(self, record: dict[str, Any], scope: Optional[str] = None) -> None:
        assert self._conn is not None
        self._conn.execute(
            """INSERT INTO machine_records (scope, name, document, updated_at)
               VALUES (?, ?, ?, ?)
               ON CONFLICT(scope, name) DO UPDATE SET
                   document = excluded.document,
                   updated_at = excluded.updated_at""",
            (
                _scope_key(scope),
                record["name"],
                json.dumps(record),
                datetime.now(UTC).isoformat(),
            ),
        )
        self._conn.commit()

    def exists(self, name: str, scope: Optional[str] = None) -> bool:
        assert self._conn is not None
        row = self._conn.execute(
            "SELECT 1 FROM machine_records WHERE scope = ? AND name = ?",
            (_scope_key(scope), name),
        ).fetchone()
        return row is not None

    def delete(self, name: str, scope: Optional[str] = None) -> bool:
        assert self._conn is not None
        cursor = self._conn.execute(
            "DELETE FROM machine_records WHERE scope = ? AND name = ?",
            (_scope_key(scope), name),
        )
        self._conn.commit()
        return cursor.rowcount > 0

    def list_names(self, scope: Optional[str] = None) -> list[str]:
        assert self._conn is not None
        rows = self._conn.execute(
            "SELECT name FROM machine_records WHERE scope = ? ORDER BY name",
            (_scope_key(scope),),
        ).fetchall()
        return [r["name"] for r in rows]

    def updated_at(self, name: str, scope: Optional[str] = None) -> Optional[str]:
        """When the record was last saved, or None if it doesn't exist."""
        assert self._conn is not None
        row = self._conn.execute(
            "SELECT updated_at FROM machine_records WHERE scope = ? AND name = ?",
            (_scope_key(scope), name),
        ).fetchone()
        return row["updated_at"] if row else None
