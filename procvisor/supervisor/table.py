# procvisor - Worker Process Supervisor
# Copyright (C) 2026 procvisor Authors
# SPDX-License-Identifier: Apache-2.0

"""SQLite-backed process table shared between the supervisor and workers.

The table is a fixed-capacity map from pid to :class:`ProcessRecord`.
It lives in a database file (WAL mode) so that separate OS processes can
read and write it without sharing an address space.  Every mutation runs
inside ``BEGIN IMMEDIATE`` so concurrent writers are serialised by
SQLite's file lock, and the capacity check happens inside the same
transaction as the insert.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any

from procvisor.exceptions import TableFullError
from procvisor.schemas import ProcessRecord, ProcessStatus, TransportKind
from procvisor.time_utils import ensure_aware

logger = logging.getLogger(__name__)

# ── Schema SQL ──────────────────────────────────────────────

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS processes (
    pid         INTEGER PRIMARY KEY,
    name        TEXT NOT NULL,
    status      TEXT NOT NULL,
    started_at  TEXT NOT NULL,
    transport   TEXT NOT NULL,
    metadata    TEXT NOT NULL DEFAULT '{}'
);
CREATE TABLE IF NOT EXISTS table_meta (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL
);
"""

_BUSY_TIMEOUT_S = 5.0


# ── ProcessTable ───────────────────────────────────────────


class ProcessTable:
    """Fixed-capacity pid -> ProcessRecord registry.

    Use :meth:`create` from the supervisor (resets any rows left over
    from a previous run) and :meth:`attach` from other processes that
    only need to look at the table.

    Args:
        db_path: Path to the SQLite database file.  Parent directories
            are created automatically.
        capacity: Maximum number of records.  ``None`` reads the
            capacity stored by the creating process.
        read_only: Reject mutations from this handle.
    """

    def __init__(
        self,
        db_path: Path,
        capacity: int | None = None,
        read_only: bool = False,
    ) -> None:
        if capacity is not None and capacity < 1:
            raise ValueError("capacity must be at least 1")
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self.db_path = db_path
        self.read_only = read_only
        # Autocommit mode: transactions are opened explicitly below.
        self.conn = sqlite3.connect(
            str(db_path), timeout=_BUSY_TIMEOUT_S, isolation_level=None,
        )
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.executescript(_SCHEMA_SQL)

        if capacity is None:
            row = self.conn.execute(
                "SELECT value FROM table_meta WHERE key = 'capacity'"
            ).fetchone()
            if row is None:
                self.conn.close()
                raise ValueError(f"Process table at {db_path} has no stored capacity")
            capacity = int(row["value"])
        elif not read_only:
            self.conn.execute(
                "INSERT OR REPLACE INTO table_meta (key, value) VALUES ('capacity', ?)",
                (str(capacity),),
            )
        self.capacity = capacity

    # ── Constructors ───────────────────────────────────────

    @classmethod
    def create(cls, db_path: Path, capacity: int) -> ProcessTable:
        """Open the table for the owning supervisor, dropping stale rows."""
        table = cls(db_path, capacity=capacity)
        with table._write() as conn:
            stale = conn.execute("SELECT COUNT(*) FROM processes").fetchone()[0]
            conn.execute("DELETE FROM processes")
        if stale:
            logger.info("Dropped %d stale process records from %s", stale, db_path)
        return table

    @classmethod
    def attach(cls, db_path: Path, read_only: bool = True) -> ProcessTable:
        """Open a table created by another process."""
        return cls(db_path, capacity=None, read_only=read_only)

    # ── Lifecycle ──────────────────────────────────────────

    def close(self) -> None:
        """Close the database connection."""
        self.conn.close()

    def __enter__(self) -> ProcessTable:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ── Operations ─────────────────────────────────────────

    def put(self, pid: int, record: ProcessRecord) -> None:
        """Insert or replace the record for *pid*.

        Raises:
            TableFullError: If *pid* is new and the table is at capacity.
        """
        with self._write() as conn:
            exists = conn.execute(
                "SELECT 1 FROM processes WHERE pid = ?", (pid,)
            ).fetchone()
            if exists is None:
                count = conn.execute("SELECT COUNT(*) FROM processes").fetchone()[0]
                if count >= self.capacity:
                    raise TableFullError(
                        f"Process table is full ({count}/{self.capacity}); "
                        f"cannot track pid {pid}"
                    )
            conn.execute(
                "INSERT OR REPLACE INTO processes "
                "(pid, name, status, started_at, transport, metadata) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    pid,
                    record.name,
                    record.status.value,
                    record.started_at.isoformat(),
                    record.transport.value,
                    json.dumps(record.metadata, default=str),
                ),
            )

    def get(self, pid: int) -> ProcessRecord | None:
        row = self.conn.execute(
            "SELECT * FROM processes WHERE pid = ?", (pid,)
        ).fetchone()
        return _row_to_record(row) if row is not None else None

    def remove(self, pid: int) -> bool:
        """Delete the record for *pid*.  Returns False if it was absent."""
        with self._write() as conn:
            cur = conn.execute("DELETE FROM processes WHERE pid = ?", (pid,))
            return cur.rowcount > 0

    def scan(self) -> list[tuple[int, ProcessRecord]]:
        rows = self.conn.execute("SELECT * FROM processes").fetchall()
        return [(row["pid"], _row_to_record(row)) for row in rows]

    def set_status(self, pid: int, status: ProcessStatus) -> bool:
        with self._write() as conn:
            cur = conn.execute(
                "UPDATE processes SET status = ? WHERE pid = ?",
                (status.value, pid),
            )
            return cur.rowcount > 0

    def set_metadata(self, pid: int, metadata: dict[str, Any]) -> bool:
        """Merge *metadata* into the record's metadata blob."""
        with self._write() as conn:
            row = conn.execute(
                "SELECT metadata FROM processes WHERE pid = ?", (pid,)
            ).fetchone()
            if row is None:
                return False
            merged = json.loads(row["metadata"])
            merged.update(metadata)
            conn.execute(
                "UPDATE processes SET metadata = ? WHERE pid = ?",
                (json.dumps(merged, default=str), pid),
            )
            return True

    def __len__(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM processes").fetchone()[0]

    def __contains__(self, pid: object) -> bool:
        if not isinstance(pid, int):
            return False
        return self.conn.execute(
            "SELECT 1 FROM processes WHERE pid = ?", (pid,)
        ).fetchone() is not None

    # ── Internals ──────────────────────────────────────────

    def _write(self) -> _WriteTransaction:
        if self.read_only:
            raise PermissionError(f"Process table {self.db_path} is attached read-only")
        return _WriteTransaction(self.conn)


class _WriteTransaction:
    """``BEGIN IMMEDIATE`` ... ``COMMIT``/``ROLLBACK`` context manager."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def __enter__(self) -> sqlite3.Connection:
        self.conn.execute("BEGIN IMMEDIATE")
        return self.conn

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        if exc_type is None:
            self.conn.execute("COMMIT")
        else:
            self.conn.execute("ROLLBACK")


def _row_to_record(row: sqlite3.Row) -> ProcessRecord:
    return ProcessRecord(
        pid=row["pid"],
        name=row["name"],
        status=ProcessStatus(row["status"]),
        started_at=ensure_aware(datetime.fromisoformat(row["started_at"])),
        transport=TransportKind(row["transport"]),
        metadata=json.loads(row["metadata"]),
    )
