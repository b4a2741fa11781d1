"""Reply cache keyed on the user's literal (normalized) message.

Keys ignore session and transcript: two users sending the same text get the
same reply. That policy can be switched off with
``conversation.cache_enabled: false``.
"""

import hashlib
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable

import structlog

from db import wal_connect
from observability import metrics

logger = structlog.get_logger()

DEFAULT_TTL = 3600
DEFAULT_SWEEP_THRESHOLD = 1000


def normalize_key(text: str) -> str:
    return text.lower().strip()


class ResponseCache(ABC):
    """get/put on normalized input text with a TTL."""

    ttl: int

    @abstractmethod
    def get(self, key: str) -> str | None: ...

    @abstractmethod
    def put(self, key: str, text: str) -> None: ...

    @staticmethod
    def normalize_key(text: str) -> str:
        return normalize_key(text)

    def _record(self, hit: bool, key: str):
        metrics.counter("cache.hit" if hit else "cache.miss")
        if hit:
            logger.debug("response_cache.hit", key_len=len(key))


class InMemoryResponseCache(ResponseCache):
    """Process-local cache; only correct for a single-instance deployment."""

    def __init__(
        self,
        ttl: int = DEFAULT_TTL,
        sweep_threshold: int = DEFAULT_SWEEP_THRESHOLD,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl = ttl
        self.sweep_threshold = sweep_threshold
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> str | None:
        key = normalize_key(key)
        with self._lock:
            entry = self._entries.get(key)
        if entry is None or self._clock() - entry[1] >= self.ttl:
            self._record(False, key)
            return None
        self._record(True, key)
        return entry[0]

    def put(self, key: str, text: str) -> None:
        key = normalize_key(key)
        now = self._clock()
        with self._lock:
            self._entries[key] = (text, now)
            if len(self._entries) > self.sweep_threshold:
                self._sweep(now)

    def _sweep(self, now: float):
        expired = [k for k, (_, stored) in self._entries.items() if now - stored >= self.ttl]
        for k in expired:
            del self._entries[k]
        logger.info("response_cache.swept", removed=len(expired), remaining=len(self._entries))


class SQLiteResponseCache(ResponseCache):
    """Cache in a shared SQLite file so several workers share hits."""

    def __init__(
        self,
        db_path,
        ttl: int = DEFAULT_TTL,
        sweep_threshold: int = DEFAULT_SWEEP_THRESHOLD,
        clock: Callable[[], float] = time.time,
    ):
        self.db_path = db_path
        self.ttl = ttl
        self.sweep_threshold = sweep_threshold
        self._clock = clock
        self._init_db()

    def _init_db(self):
        with wal_connect(self.db_path) as conn:
            conn.execute(
                """CREATE TABLE IF NOT EXISTS response_cache (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    created_at REAL NOT NULL
                )"""
            )

    @staticmethod
    def _hash(key: str) -> str:
        return hashlib.sha256(normalize_key(key).encode()).hexdigest()

    def get(self, key: str) -> str | None:
        with wal_connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT value, created_at FROM response_cache WHERE key = ?",
                (self._hash(key),),
            ).fetchone()
        if row is None:
            self._record(False, key)
            return None
        value, created_at = row
        if self._clock() - created_at >= self.ttl:
            self._record(False, key)
            return None
        self._record(True, key)
        return value

    def put(self, key: str, text: str) -> None:
        with wal_connect(self.db_path) as conn:
            conn.execute(
                """INSERT INTO response_cache (key, value, created_at)
                   VALUES (?, ?, ?)
                   ON CONFLICT(key) DO UPDATE
                   SET value = excluded.value, created_at = excluded.created_at""",
                (self._hash(key), text, self._clock()),
            )
            (count,) = conn.execute("SELECT COUNT(*) FROM response_cache").fetchone()
        if count > self.sweep_threshold:
            self.clear_expired()

    def clear_expired(self) -> int:
        """Delete entries older than TTL. Returns number removed."""
        cutoff = self._clock() - self.ttl
        with wal_connect(self.db_path) as conn:
            cur = conn.execute("DELETE FROM response_cache WHERE created_at <= ?", (cutoff,))
            removed = cur.rowcount
        logger.info("response_cache.swept", removed=removed)
        return removed


def create_response_cache(
    backend: str,
    db_path=None,
    ttl: int = DEFAULT_TTL,
    sweep_threshold: int = DEFAULT_SWEEP_THRESHOLD,
) -> ResponseCache:
    if backend == "sqlite":
        if db_path is None:
            raise ValueError("sqlite response cache needs a db_path")
        return SQLiteResponseCache(db_path, ttl=ttl, sweep_threshold=sweep_threshold)
    if backend == "memory":
        return InMemoryResponseCache(ttl=ttl, sweep_threshold=sweep_threshold)
    raise ValueError(f"Unknown cache backend: {backend}")
