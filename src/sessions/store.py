"""SQLite persistence for onboarding sessions."""

import json
import secrets
import sqlite3
import string
import time
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

import structlog

from db import wal_connect
from shared_types import SessionStatus

from .models import Message, Session

logger = structlog.get_logger()

DEFAULT_TTL_SECONDS = 48 * 3600
_TOKEN_ALPHABET = string.ascii_lowercase + string.digits


class SessionNotFoundError(Exception):
    """No active session for the token."""

    def __init__(self, token: str, message: str | None = None):
        self.token = token
        super().__init__(message or f"Session not found: {token}")


class SessionExpiredError(SessionNotFoundError):
    """Session existed but its expiry passed; it is now abandoned."""

    def __init__(self, token: str):
        super().__init__(token, f"Session expired: {token}")


def _to_dt(ts: float | None) -> datetime | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def new_token(now: float) -> str:
    suffix = "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(12))
    return f"session_{int(now * 1000)}_{suffix}"


class SessionStore:
    """Durable session records keyed by token.

    Each mutation is a single UPDATE guarded by ``status = 'active'`` so a
    session leaves the active state at most once.
    """

    def __init__(
        self,
        db_path: Path,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.db_path = Path(db_path).expanduser()
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._init_tables()

    def _init_tables(self):
        with wal_connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS sessions (
                    token TEXT PRIMARY KEY,
                    owner_id TEXT,
                    status TEXT NOT NULL DEFAULT 'active'
                        CHECK(status IN ('active','completed','abandoned')),
                    messages TEXT NOT NULL DEFAULT '[]',
                    current_phase INTEGER NOT NULL DEFAULT 0,
                    geolocation TEXT,
                    enriched_context TEXT,
                    suggested_examples TEXT NOT NULL DEFAULT '[]',
                    estimated_completion REAL NOT NULL DEFAULT 0,
                    created_at REAL NOT NULL,
                    last_activity_at REAL NOT NULL,
                    expires_at REAL NOT NULL,
                    completed_at REAL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_sessions_owner ON sessions(owner_id)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_sessions_expiry ON sessions(expires_at)")

    def create(
        self,
        owner_id: str | None = None,
        geolocation: dict | None = None,
        enriched_context: dict | None = None,
    ) -> Session:
        now = self._clock()
        token = new_token(now)
        with wal_connect(self.db_path) as conn:
            conn.execute(
                """INSERT INTO sessions
                (token, owner_id, status, messages, current_phase, geolocation,
                 enriched_context, suggested_examples, estimated_completion,
                 created_at, last_activity_at, expires_at)
                VALUES (?, ?, 'active', '[]', 0, ?, ?, '[]', 0, ?, ?, ?)""",
                (
                    token,
                    owner_id,
                    json.dumps(geolocation) if geolocation is not None else None,
                    json.dumps(enriched_context) if enriched_context is not None else None,
                    now,
                    now,
                    now + self.ttl_seconds,
                ),
            )
        logger.info("session_store.created", token=token, owner_id=owner_id)
        return self.get(token)

    def get(self, token: str) -> Session:
        """Fetch an active session.

        Raises:
            SessionExpiredError: expiry passed; the row is flipped to abandoned
            SessionNotFoundError: unknown token or session no longer active
        """
        row = self._fetch(token)
        if row is None or row["status"] != SessionStatus.ACTIVE:
            raise SessionNotFoundError(token)

        if row["expires_at"] <= self._clock():
            self._expire(token)

        return self._row_to_session(row)

    def peek(self, token: str) -> Session | None:
        """Fetch a session in any status without expiry handling."""
        row = self._fetch(token)
        return self._row_to_session(row) if row else None

    def update(
        self,
        token: str,
        *,
        messages: list[Message] | None = None,
        current_phase: int | None = None,
        suggested_examples: list[str] | None = None,
        estimated_completion: float | None = None,
    ) -> Session:
        """Replace the given fields and refresh activity/expiry.

        An active row whose expiry already passed is abandoned, not revived.
        """
        now = self._clock()
        sets = ["last_activity_at = ?", "expires_at = MAX(expires_at, ?)"]
        params: list = [now, now + self.ttl_seconds]
        if messages is not None:
            sets.append("messages = ?")
            params.append(json.dumps([m.to_dict() for m in messages]))
        if current_phase is not None:
            sets.append("current_phase = ?")
            params.append(current_phase)
        if suggested_examples is not None:
            sets.append("suggested_examples = ?")
            params.append(json.dumps(suggested_examples))
        if estimated_completion is not None:
            sets.append("estimated_completion = ?")
            params.append(estimated_completion)
        params.extend([token, now])

        with wal_connect(self.db_path) as conn:
            cur = conn.execute(
                f"UPDATE sessions SET {', '.join(sets)} "
                "WHERE token = ? AND status = 'active' AND expires_at > ?",
                params,
            )
            updated = cur.rowcount > 0
        if not updated:
            self._raise_unavailable(token, now)
        return self._row_to_session(self._fetch(token))

    def complete(self, token: str) -> Session:
        """Mark an active session completed. Raises SessionNotFoundError otherwise."""
        now = self._clock()
        with wal_connect(self.db_path) as conn:
            cur = conn.execute(
                """UPDATE sessions
                SET status = 'completed', completed_at = ?, estimated_completion = 1.0,
                    last_activity_at = ?, expires_at = MAX(expires_at, ?)
                WHERE token = ? AND status = 'active' AND expires_at > ?""",
                (now, now, now + self.ttl_seconds, token, now),
            )
            updated = cur.rowcount > 0
        if not updated:
            self._raise_unavailable(token, now)
        logger.info("session_store.completed", token=token)
        return self._row_to_session(self._fetch(token))

    def abandon(self, token: str) -> None:
        """Mark an active session abandoned; no-op for any other state."""
        if self._transition(token, SessionStatus.ABANDONED):
            logger.info("session_store.abandoned", token=token)

    def list_for_owner(self, owner_id: str, limit: int = 10) -> list[Session]:
        """Owner's sessions, newest first, any status."""
        with wal_connect(self.db_path, row_factory=True) as conn:
            rows = conn.execute(
                "SELECT * FROM sessions WHERE owner_id = ? "
                "ORDER BY created_at DESC, rowid DESC LIMIT ?",
                (owner_id, limit),
            ).fetchall()
        return [self._row_to_session(r) for r in rows]

    def _expire(self, token: str):
        self._transition(token, SessionStatus.ABANDONED)
        logger.info("session_store.expired", token=token)
        raise SessionExpiredError(token)

    def _raise_unavailable(self, token: str, now: float):
        """A guarded write matched nothing: expire the row if that is why."""
        row = self._fetch(token)
        if row is not None and row["status"] == SessionStatus.ACTIVE and row["expires_at"] <= now:
            self._expire(token)
        raise SessionNotFoundError(token)

    def _transition(self, token: str, status: SessionStatus) -> bool:
        with wal_connect(self.db_path) as conn:
            cur = conn.execute(
                "UPDATE sessions SET status = ? WHERE token = ? AND status = 'active'",
                (str(status), token),
            )
            return cur.rowcount > 0

    def _fetch(self, token: str) -> sqlite3.Row | None:
        with wal_connect(self.db_path, row_factory=True) as conn:
            return conn.execute("SELECT * FROM sessions WHERE token = ?", (token,)).fetchone()

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> Session:
        return Session(
            token=row["token"],
            owner_id=row["owner_id"],
            status=SessionStatus(row["status"]),
            messages=[Message.from_dict(m) for m in json.loads(row["messages"] or "[]")],
            current_phase=row["current_phase"],
            geolocation=json.loads(row["geolocation"]) if row["geolocation"] else None,
            enriched_context=(
                json.loads(row["enriched_context"]) if row["enriched_context"] else None
            ),
            suggested_examples=json.loads(row["suggested_examples"] or "[]"),
            estimated_completion=row["estimated_completion"],
            created_at=_to_dt(row["created_at"]),
            last_activity_at=_to_dt(row["last_activity_at"]),
            expires_at=_to_dt(row["expires_at"]),
            completed_at=_to_dt(row["completed_at"]),
        )
