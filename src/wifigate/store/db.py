"""
SQLite storage for wifigate.

This module provides persistent storage for principals, policies, usage
totals, sessions and violations. Everything lives in a single SQLite file.

Design Principles:
    - Explicit lifecycle: opened at process start, closed at shutdown
    - Serialized writes: every statement+commit pair runs under one lock
    - Atomic counters: usage increments are single upsert statements
    - Compare-and-set session end: only an active row can be ended

Tables:
    - principals: user -> role binding and active flag
    - policies: one JSON-encoded policy per role
    - categories: category tag -> JSON list of keywords
    - usage: per-user, per-day counters
    - sessions: session lifecycle
    - violations: append-only denial log
"""

import json
import sqlite3
import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

from wifigate.errors import (
    ActiveSessionExistsError,
    StorageConnectionError,
    StorageReadError,
    StorageWriteError,
)
from wifigate.schema import (
    Policy,
    Principal,
    Session,
    SessionEndReason,
    UsageRecord,
    Violation,
    ViolationType,
)

# Schema version for migrations
SCHEMA_VERSION = 2

CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS principals (
    user_id TEXT PRIMARY KEY,
    role_id TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1,
    username TEXT
);

CREATE TABLE IF NOT EXISTS policies (
    role_id TEXT PRIMARY KEY,
    policy_json TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS categories (
    tag TEXT PRIMARY KEY,
    keywords_json TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS usage (
    user_id TEXT NOT NULL,
    day TEXT NOT NULL,
    data_used_bytes INTEGER NOT NULL DEFAULT 0,
    time_used_minutes INTEGER NOT NULL DEFAULT 0,
    session_count INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (user_id, day)
);

CREATE TABLE IF NOT EXISTS sessions (
    session_id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    role_id TEXT NOT NULL,
    started_at TEXT NOT NULL,
    ended_at TEXT,
    is_active INTEGER NOT NULL DEFAULT 1,
    ip_address TEXT,
    mac_address TEXT,
    data_used_bytes INTEGER NOT NULL DEFAULT 0,
    end_reason TEXT
);

CREATE TABLE IF NOT EXISTS violations (
    violation_id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    session_id TEXT,
    violation_type TEXT NOT NULL,
    details TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL
);

-- At most one active session per user
CREATE UNIQUE INDEX IF NOT EXISTS idx_sessions_one_active
    ON sessions(user_id) WHERE is_active = 1;
CREATE INDEX IF NOT EXISTS idx_sessions_user ON sessions(user_id, started_at);
CREATE INDEX IF NOT EXISTS idx_violations_user ON violations(user_id, created_at);
CREATE INDEX IF NOT EXISTS idx_violations_created_at ON violations(created_at);
"""

UPSERT_USAGE_SQL = """
INSERT INTO usage (user_id, day, data_used_bytes, time_used_minutes, session_count)
VALUES (?, ?, ?, ?, ?)
ON CONFLICT (user_id, day) DO UPDATE SET
    data_used_bytes = data_used_bytes + excluded.data_used_bytes,
    time_used_minutes = time_used_minutes + excluded.time_used_minutes,
    session_count = session_count + excluded.session_count
"""


def generate_session_id() -> str:
    """Generate a unique session ID."""
    return uuid.uuid4().hex


def to_iso(value: datetime) -> str:
    """Serialize a timestamp as UTC ISO-8601 so text order is time order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()


def from_iso(value: str | None) -> datetime | None:
    """Parse a stored timestamp."""
    return datetime.fromisoformat(value) if value else None


class AccessDB:
    """
    SQLite database for wifigate storage.

    One connection is shared by every component and every thread; a
    re-entrant lock serializes access to it.

    Usage:
        db = AccessDB("wifigate.db")
        db.put_policy(policy)
        db.add_usage("u-1", date.today(), 1024, 0)
        db.close()

    Or use as context manager:
        with AccessDB("wifigate.db") as db:
            ...
    """

    def __init__(self, db_path: str | Path) -> None:
        """
        Initialize the database connection.

        Args:
            db_path: Path to the SQLite database file, or ":memory:".
                     Will be created if it doesn't exist.
        """
        self.db_path = db_path if db_path == ":memory:" else Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._connect()
        self._init_schema()

    def _connect(self) -> None:
        """Establish database connection."""
        try:
            self._conn = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
                timeout=30.0,
            )
            self._conn.row_factory = sqlite3.Row
        except sqlite3.Error as e:
            raise StorageConnectionError(
                db_path=str(self.db_path),
                operation="connect",
                message=f"Failed to connect to database: {e}",
            ) from e

    def _init_schema(self) -> None:
        """Initialize database schema if needed."""
        with self._lock:
            try:
                self._conn.executescript(CREATE_TABLES_SQL).close()
                row = self._conn.execute(
                    "SELECT version FROM schema_version ORDER BY version DESC LIMIT 1"
                ).fetchone()
                if row is None or row["version"] < SCHEMA_VERSION:
                    self._conn.execute(
                        "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                        (SCHEMA_VERSION, to_iso(datetime.now(UTC))),
                    )
                self._conn.commit()
            except sqlite3.Error as e:
                raise StorageWriteError(
                    operation="init_schema",
                    underlying_error=str(e),
                ) from e

    @property
    def is_open(self) -> bool:
        """Whether the connection is still open."""
        return self._conn is not None

    def _require_conn(self, operation: str) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageConnectionError(
                db_path=str(self.db_path),
                operation=operation,
                message="Database is closed",
            )
        return self._conn

    @contextmanager
    def _writing(self, operation: str) -> Iterator[sqlite3.Connection]:
        """Run a write under the lock; commit on success, roll back on error."""
        with self._lock:
            conn = self._require_conn(operation)
            try:
                yield conn
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise StorageWriteError(
                    operation=operation,
                    underlying_error=str(e),
                ) from e
            except Exception:
                conn.rollback()
                raise

    @contextmanager
    def _reading(self, operation: str) -> Iterator[sqlite3.Connection]:
        with self._lock:
            conn = self._require_conn(operation)
            try:
                yield conn
            except sqlite3.Error as e:
                raise StorageReadError(
                    operation=operation,
                    underlying_error=str(e),
                ) from e

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None

    def __enter__(self) -> "AccessDB":
        """Enter context manager."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context manager."""
        self.close()

    def schema_version(self) -> int | None:
        """Return the applied schema version."""
        with self._reading("schema_version") as conn:
            row = conn.execute(
                "SELECT version FROM schema_version ORDER BY version DESC LIMIT 1"
            ).fetchone()
            return row["version"] if row else None

    # =========================================================================
    # Principal Operations
    # =========================================================================

    def put_principal(self, principal: Principal) -> None:
        """Insert or replace a principal."""
        with self._writing("put_principal") as conn:
            conn.execute(
                """
                INSERT INTO principals (user_id, role_id, is_active, username)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (user_id) DO UPDATE SET
                    role_id = excluded.role_id,
                    is_active = excluded.is_active,
                    username = excluded.username
                """,
                (
                    principal.user_id,
                    principal.role_id,
                    int(principal.is_active),
                    principal.username,
                ),
            )

    def get_principal(self, user_id: str) -> Principal | None:
        """Get a principal by user ID."""
        with self._reading("get_principal") as conn:
            row = conn.execute(
                "SELECT * FROM principals WHERE user_id = ?",
                (user_id,),
            ).fetchone()
            if row is None:
                return None
            return self._row_to_principal(row)

    def list_principals(self) -> list[Principal]:
        """List every principal ordered by user ID."""
        with self._reading("list_principals") as conn:
            rows = conn.execute("SELECT * FROM principals ORDER BY user_id").fetchall()
            return [self._row_to_principal(row) for row in rows]

    @staticmethod
    def _row_to_principal(row: sqlite3.Row) -> Principal:
        return Principal(
            user_id=row["user_id"],
            role_id=row["role_id"],
            is_active=bool(row["is_active"]),
            username=row["username"],
        )

    # =========================================================================
    # Policy Operations
    # =========================================================================

    def put_policy(self, policy: Policy, updated_at: datetime | None = None) -> None:
        """Insert or replace the policy for a role."""
        stamp = to_iso(updated_at or datetime.now(UTC))
        with self._writing("put_policy") as conn:
            conn.execute(
                """
                INSERT INTO policies (role_id, policy_json, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT (role_id) DO UPDATE SET
                    policy_json = excluded.policy_json,
                    updated_at = excluded.updated_at
                """,
                (policy.role_id, policy.model_dump_json(), stamp),
            )

    def get_policy(self, role_id: str) -> Policy | None:
        """Get the policy bound to a role."""
        with self._reading("get_policy") as conn:
            row = conn.execute(
                "SELECT policy_json FROM policies WHERE role_id = ?",
                (role_id,),
            ).fetchone()
            if row is None:
                return None
            return Policy.model_validate_json(row["policy_json"])

    def list_policies(self) -> list[Policy]:
        """List every policy ordered by role."""
        with self._reading("list_policies") as conn:
            rows = conn.execute(
                "SELECT policy_json FROM policies ORDER BY role_id"
            ).fetchall()
            return [Policy.model_validate_json(row["policy_json"]) for row in rows]

    # =========================================================================
    # Category Operations
    # =========================================================================

    def put_categories(self, categories: dict[str, list[str]]) -> None:
        """Insert or replace the keywords of each category tag."""
        with self._writing("put_categories") as conn:
            conn.executemany(
                """
                INSERT INTO categories (tag, keywords_json) VALUES (?, ?)
                ON CONFLICT (tag) DO UPDATE SET keywords_json = excluded.keywords_json
                """,
                [(tag, json.dumps(list(keywords))) for tag, keywords in categories.items()],
            )

    def list_categories(self) -> dict[str, list[str]]:
        """Every stored category tag with its keywords, ordered by tag."""
        with self._reading("list_categories") as conn:
            rows = conn.execute(
                "SELECT tag, keywords_json FROM categories ORDER BY tag"
            ).fetchall()
            return {row["tag"]: json.loads(row["keywords_json"]) for row in rows}

    # =========================================================================
    # Usage Operations
    # =========================================================================

    def add_usage(
        self,
        user_id: str,
        day: date,
        data_bytes: int,
        minutes: int,
        sessions: int = 0,
    ) -> UsageRecord:
        """
        Atomically increment the usage counters for (user_id, day).

        The row is created on first increment. The returned record is the
        total immediately after this increment.
        """
        with self._writing("add_usage") as conn:
            conn.execute(
                UPSERT_USAGE_SQL,
                (user_id, day.isoformat(), data_bytes, minutes, sessions),
            )
            row = conn.execute(
                "SELECT * FROM usage WHERE user_id = ? AND day = ?",
                (user_id, day.isoformat()),
            ).fetchone()
            return self._row_to_usage(row)

    def get_usage(self, user_id: str, day: date) -> UsageRecord | None:
        """Get the usage totals for (user_id, day)."""
        with self._reading("get_usage") as conn:
            row = conn.execute(
                "SELECT * FROM usage WHERE user_id = ? AND day = ?",
                (user_id, day.isoformat()),
            ).fetchone()
            if row is None:
                return None
            return self._row_to_usage(row)

    def list_usage(self, user_id: str, start: date, end: date) -> list[UsageRecord]:
        """Get daily usage rows for a user over an inclusive day range."""
        with self._reading("list_usage") as conn:
            rows = conn.execute(
                """
                SELECT * FROM usage
                WHERE user_id = ? AND day >= ? AND day <= ?
                ORDER BY day
                """,
                (user_id, start.isoformat(), end.isoformat()),
            ).fetchall()
            return [self._row_to_usage(row) for row in rows]

    @staticmethod
    def _row_to_usage(row: sqlite3.Row) -> UsageRecord:
        return UsageRecord(
            user_id=row["user_id"],
            day=date.fromisoformat(row["day"]),
            data_used_bytes=row["data_used_bytes"],
            time_used_minutes=row["time_used_minutes"],
            session_count=row["session_count"],
        )

    # =========================================================================
    # Session Operations
    # =========================================================================

    def create_session(
        self,
        user_id: str,
        role_id: str,
        started_at: datetime,
        ip_address: str | None = None,
        mac_address: str | None = None,
    ) -> Session:
        """
        Create an active session.

        Raises:
            ActiveSessionExistsError: If the user already has an active session
        """
        session_id = generate_session_id()
        with self._writing("create_session") as conn:
            existing = conn.execute(
                "SELECT session_id FROM sessions WHERE user_id = ? AND is_active = 1",
                (user_id,),
            ).fetchone()
            if existing is not None:
                raise ActiveSessionExistsError(
                    user_id=user_id,
                    active_session_id=existing["session_id"],
                )
            conn.execute(
                """
                INSERT INTO sessions (
                    session_id, user_id, role_id, started_at,
                    is_active, ip_address, mac_address
                ) VALUES (?, ?, ?, ?, 1, ?, ?)
                """,
                (
                    session_id,
                    user_id,
                    role_id,
                    to_iso(started_at),
                    ip_address,
                    mac_address,
                ),
            )
            row = conn.execute(
                "SELECT * FROM sessions WHERE session_id = ?",
                (session_id,),
            ).fetchone()
            return self._row_to_session(row)

    def end_session(
        self,
        session_id: str,
        ended_at: datetime,
        reason: SessionEndReason,
    ) -> bool:
        """
        Move an active session to ENDED.

        Returns:
            True if this call performed the transition, False if the session
            was already ended (or does not exist)
        """
        with self._writing("end_session") as conn:
            cursor = conn.execute(
                """
                UPDATE sessions
                SET is_active = 0, ended_at = ?, end_reason = ?
                WHERE session_id = ? AND is_active = 1
                """,
                (to_iso(ended_at), reason.value, session_id),
            )
            return cursor.rowcount == 1

    def add_session_data(self, session_id: str, data_bytes: int) -> bool:
        """Add transferred bytes to an active session. Returns False if ended."""
        with self._writing("add_session_data") as conn:
            cursor = conn.execute(
                """
                UPDATE sessions SET data_used_bytes = data_used_bytes + ?
                WHERE session_id = ? AND is_active = 1
                """,
                (data_bytes, session_id),
            )
            return cursor.rowcount == 1

    def get_session(self, session_id: str) -> Session | None:
        """Get a session by ID."""
        with self._reading("get_session") as conn:
            row = conn.execute(
                "SELECT * FROM sessions WHERE session_id = ?",
                (session_id,),
            ).fetchone()
            if row is None:
                return None
            return self._row_to_session(row)

    def get_active_session(self, user_id: str) -> Session | None:
        """Get the active session of a user, if any."""
        with self._reading("get_active_session") as conn:
            row = conn.execute(
                "SELECT * FROM sessions WHERE user_id = ? AND is_active = 1",
                (user_id,),
            ).fetchone()
            if row is None:
                return None
            return self._row_to_session(row)

    def list_active_sessions(self) -> list[Session]:
        """List every active session, oldest first."""
        with self._reading("list_active_sessions") as conn:
            rows = conn.execute(
                "SELECT * FROM sessions WHERE is_active = 1 ORDER BY started_at"
            ).fetchall()
            return [self._row_to_session(row) for row in rows]

    def list_sessions_for_user(self, user_id: str, limit: int = 20) -> list[Session]:
        """List a user's sessions, most recent first."""
        with self._reading("list_sessions_for_user") as conn:
            rows = conn.execute(
                """
                SELECT * FROM sessions WHERE user_id = ?
                ORDER BY started_at DESC LIMIT ?
                """,
                (user_id, limit),
            ).fetchall()
            return [self._row_to_session(row) for row in rows]

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> Session:
        return Session(
            session_id=row["session_id"],
            user_id=row["user_id"],
            role_id=row["role_id"],
            started_at=from_iso(row["started_at"]),
            ended_at=from_iso(row["ended_at"]),
            is_active=bool(row["is_active"]),
            ip_address=row["ip_address"],
            mac_address=row["mac_address"],
            data_used_bytes=row["data_used_bytes"],
            end_reason=SessionEndReason(row["end_reason"]) if row["end_reason"] else None,
        )

    # =========================================================================
    # Violation Operations
    # =========================================================================

    def insert_violation(
        self,
        user_id: str,
        session_id: str | None,
        violation_type: ViolationType,
        details: str,
        created_at: datetime,
    ) -> int:
        """Append a violation and return its ID."""
        with self._writing("insert_violation") as conn:
            cursor = conn.execute(
                """
                INSERT INTO violations (
                    user_id, session_id, violation_type, details, created_at
                ) VALUES (?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    session_id,
                    violation_type.value,
                    details,
                    to_iso(created_at),
                ),
            )
            return cursor.lastrowid

    def list_violations(
        self,
        user_id: str | None = None,
        violation_type: ViolationType | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int = 100,
    ) -> list[Violation]:
        """List violations, most recent first, with optional filters."""
        clauses: list[str] = []
        params: list[Any] = []

        if user_id is not None:
            clauses.append("user_id = ?")
            params.append(user_id)
        if violation_type is not None:
            clauses.append("violation_type = ?")
            params.append(violation_type.value)
        if since is not None:
            clauses.append("created_at >= ?")
            params.append(to_iso(since))
        if until is not None:
            clauses.append("created_at <= ?")
            params.append(to_iso(until))

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        params.append(limit)

        with self._reading("list_violations") as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM violations {where}
                ORDER BY created_at DESC, violation_id DESC LIMIT ?
                """,
                params,
            ).fetchall()
            return [
                Violation(
                    violation_id=row["violation_id"],
                    user_id=row["user_id"],
                    session_id=row["session_id"],
                    violation_type=ViolationType(row["violation_type"]),
                    details=row["details"],
                    created_at=from_iso(row["created_at"]),
                )
                for row in rows
            ]

    def count_violations(self) -> int:
        """Total number of recorded violations."""
        with self._reading("count_violations") as conn:
            row = conn.execute("SELECT COUNT(*) AS n FROM violations").fetchone()
            return row["n"]
