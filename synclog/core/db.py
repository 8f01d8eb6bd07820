"""
SQLite event store for synclog.

Single-file implementation: schema, append, ordered range queries.
The processing_events table is append-only: there is no update or delete.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import ProcessingEvent
from .timestamps import normalize_timestamp

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

COMPLETED_STATE = "Completed"

# ── Schema ────────────────────────────────────────────────────────────────────

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT DEFAULT (datetime('now')),
    description TEXT
);

CREATE TABLE IF NOT EXISTS processing_events (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    event_type TEXT NOT NULL,
    agent_state TEXT NOT NULL,
    message TEXT NOT NULL,
    level TEXT,
    duration_ms INTEGER,
    details TEXT,
    metadata TEXT,
    created_at TEXT NOT NULL
);

-- Indexes
CREATE INDEX IF NOT EXISTS idx_events_user_time ON processing_events(user_id, created_at);
CREATE INDEX IF NOT EXISTS idx_events_user_state ON processing_events(user_id, agent_state, created_at DESC);
"""


class StoreUnavailable(Exception):
    """The event store could not be reached or a query failed."""


def _load_json(value: Optional[str]) -> Dict[str, Any]:
    if not value:
        return {}
    try:
        data = json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return {}
    return data if isinstance(data, dict) else {}


# ── Event store ───────────────────────────────────────────────────────────────


class EventStore:
    """Thread-safe SQLite store for the processing event log."""

    def __init__(self, db_path: Path, *, read_only: bool = False):
        self.db_path = Path(db_path).expanduser()
        self.read_only = read_only
        self._local = threading.local()

        if not read_only:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _conn(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            return conn

        if self.read_only and not self.db_path.exists():
            raise StoreUnavailable(f"Event store {self.db_path} does not exist. Run: synclog init")

        try:
            if self.read_only:
                uri = f"file:{self.db_path}?mode=ro"
                try:
                    conn = sqlite3.connect(
                        uri, uri=True, timeout=5.0, check_same_thread=False
                    )
                except sqlite3.OperationalError:
                    # WAL fallback
                    conn = sqlite3.connect(
                        str(self.db_path), timeout=5.0, check_same_thread=False
                    )
                    conn.execute("PRAGMA query_only=ON;")
            else:
                conn = sqlite3.connect(self.db_path, timeout=5.0, check_same_thread=False)
                conn.execute("PRAGMA journal_mode=WAL;")
                conn.execute("PRAGMA synchronous=NORMAL;")
                conn.execute("PRAGMA busy_timeout=5000;")
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Cannot open event store {self.db_path}: {e}") from e

        conn.row_factory = sqlite3.Row
        self._local.conn = conn
        return conn

    def initialize(self) -> None:
        """Create tables if this is a fresh database."""
        if self.read_only:
            return
        conn = self._conn()
        conn.executescript(SCHEMA_SQL)
        conn.execute(
            "INSERT OR IGNORE INTO schema_version (version, description) VALUES (?, ?)",
            (SCHEMA_VERSION, "synclog initial schema"),
        )
        conn.commit()

    def close(self) -> None:
        conn = getattr(self._local, "conn", None)
        if conn:
            conn.close()
            self._local.conn = None

    # ── Append ────────────────────────────────────────────────────────────

    def append_event(self, e: ProcessingEvent) -> bool:
        """Append one event. Returns False if an event with this id already exists.

        created_at is stored in the canonical UTC millisecond form so that
        window queries can compare timestamps as strings. Raises ValueError
        if it cannot be parsed.
        """
        created_at = normalize_timestamp(e.created_at)
        if created_at is None:
            raise ValueError(f"Event {e.id} has an invalid created_at: {e.created_at!r}")
        conn = self._conn()
        try:
            cur = conn.execute(
                """INSERT OR IGNORE INTO processing_events
                   (id, user_id, event_type, agent_state, message, level,
                    duration_ms, details, metadata, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    e.id,
                    e.user_id,
                    e.event_type,
                    e.agent_state,
                    e.message,
                    e.level,
                    e.duration_ms,
                    json.dumps(e.details or {}, ensure_ascii=False, default=str),
                    json.dumps(e.metadata or {}, ensure_ascii=False, default=str),
                    created_at,
                ),
            )
            conn.commit()
        except sqlite3.Error as err:
            raise StoreUnavailable(f"Failed to append event {e.id}: {err}") from err
        return cur.rowcount > 0

    # ── Queries ───────────────────────────────────────────────────────────

    def get_event(self, event_id: str) -> Optional[ProcessingEvent]:
        rows = self._query(
            "SELECT * FROM processing_events WHERE id=?", (event_id,)
        )
        return self._row_to_event(rows[0]) if rows else None

    def list_completed_runs(self, user_id: str, limit: int = 50) -> List[ProcessingEvent]:
        """Completed-state events for a user, newest first."""
        rows = self._query(
            """SELECT * FROM processing_events
               WHERE user_id=? AND agent_state=?
               ORDER BY created_at DESC, rowid DESC LIMIT ?""",
            (user_id, COMPLETED_STATE, limit),
        )
        return [self._row_to_event(r) for r in rows]

    def list_events_in_window(
        self, user_id: str, start: str, end: str
    ) -> List[ProcessingEvent]:
        """All events for a user with start <= created_at <= end, ascending."""
        rows = self._query(
            """SELECT * FROM processing_events
               WHERE user_id=? AND created_at >= ? AND created_at <= ?
               ORDER BY created_at ASC, rowid ASC""",
            (user_id, start, end),
        )
        return [self._row_to_event(r) for r in rows]

    def _query(self, sql: str, params: tuple) -> List[sqlite3.Row]:
        try:
            return self._conn().execute(sql, params).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Event store query failed: {e}")
            raise StoreUnavailable(str(e)) from e

    def _row_to_event(self, row: sqlite3.Row) -> ProcessingEvent:
        keys = row.keys()

        def _get(key, default=None):
            return row[key] if key in keys else default

        return ProcessingEvent(
            id=row["id"],
            user_id=row["user_id"],
            event_type=row["event_type"],
            agent_state=row["agent_state"],
            message=row["message"],
            created_at=row["created_at"],
            level=_get("level"),
            duration_ms=_get("duration_ms"),
            details=_load_json(_get("details")),
            metadata=_load_json(_get("metadata")),
        )

    # ── Stats ─────────────────────────────────────────────────────────────

    def stats(self) -> Dict[str, Any]:
        events = self._query("SELECT COUNT(*) as c FROM processing_events", ())[0]["c"]
        runs = self._query(
            "SELECT COUNT(*) as c FROM processing_events WHERE agent_state=?",
            (COMPLETED_STATE,),
        )[0]["c"]
        users = self._query(
            "SELECT COUNT(DISTINCT user_id) as c FROM processing_events", ()
        )[0]["c"]
        span = self._query(
            "SELECT MIN(created_at) as first, MAX(created_at) as last FROM processing_events",
            (),
        )[0]

        db_size = self.db_path.stat().st_size if self.db_path.exists() else 0
        return {
            "db_path": str(self.db_path),
            "db_size_mb": round(db_size / (1024 * 1024), 2),
            "events": events,
            "runs": runs,
            "users": users,
            "first_event_at": span["first"],
            "last_event_at": span["last"],
        }


# ── Singleton accessor ────────────────────────────────────────────────────────

_db_instances: Dict[str, EventStore] = {}
_db_lock = threading.Lock()


def get_db(*, read_only: bool = True) -> EventStore:
    """Get or create the event store (process-wide singleton per path)."""
    from .config import Config

    cfg = Config.load()
    db_path = str(cfg.resolved_db_path)
    key = f"{db_path}:{'ro' if read_only else 'rw'}"

    with _db_lock:
        if key not in _db_instances:
            db = EventStore(cfg.resolved_db_path, read_only=read_only)
            if not read_only:
                db.initialize()
            _db_instances[key] = db
        return _db_instances[key]
