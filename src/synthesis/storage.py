"""SQLite persistence for generated skin profiles."""

import json
import sqlite3
import time
import uuid
from dataclasses import dataclass
from pathlib import Path

import structlog

from db import wal_connect
from sessions.models import Message

from .models import GeneratedProfile

logger = structlog.get_logger()


@dataclass
class StoredProfile:
    id: str
    profile: GeneratedProfile
    session_token: str | None
    owner_id: str | None
    messages: list[Message]
    created_at: float


class ProfileStore:
    """Profiles keyed by id, with the transcript that produced them."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path).expanduser()
        self._init_tables()

    def _init_tables(self):
        with wal_connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS profiles (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT,
                    session_token TEXT,
                    skin_type TEXT NOT NULL,
                    profile TEXT NOT NULL,
                    conversation_messages TEXT NOT NULL DEFAULT '[]',
                    created_at REAL NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_profiles_owner ON profiles(owner_id)")
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_profiles_session ON profiles(session_token)"
            )

    def save(
        self,
        profile: GeneratedProfile,
        session_token: str | None = None,
        owner_id: str | None = None,
        messages: list[Message] | None = None,
    ) -> str:
        """Insert profile, return its id."""
        profile_id = uuid.uuid4().hex
        with wal_connect(self.db_path) as conn:
            conn.execute(
                """INSERT INTO profiles
                (id, owner_id, session_token, skin_type, profile, conversation_messages, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    profile_id,
                    owner_id,
                    session_token,
                    profile.skin_type,
                    profile.model_dump_json(),
                    json.dumps([m.to_dict() for m in messages or []]),
                    time.time(),
                ),
            )
        logger.info(
            "profile_store.saved",
            profile_id=profile_id,
            session_token=session_token,
            skin_type=profile.skin_type,
        )
        return profile_id

    def get(self, profile_id: str) -> StoredProfile | None:
        with wal_connect(self.db_path, row_factory=True) as conn:
            row = conn.execute("SELECT * FROM profiles WHERE id = ?", (profile_id,)).fetchone()
        return self._row_to_stored(row) if row else None

    def latest_for_owner(self, owner_id: str) -> StoredProfile | None:
        with wal_connect(self.db_path, row_factory=True) as conn:
            row = conn.execute(
                "SELECT * FROM profiles WHERE owner_id = ? "
                "ORDER BY created_at DESC, rowid DESC LIMIT 1",
                (owner_id,),
            ).fetchone()
        return self._row_to_stored(row) if row else None

    @staticmethod
    def _row_to_stored(row: sqlite3.Row) -> StoredProfile:
        return StoredProfile(
            id=row["id"],
            profile=GeneratedProfile.model_validate_json(row["profile"]),
            session_token=row["session_token"],
            owner_id=row["owner_id"],
            messages=[Message.from_dict(m) for m in json.loads(row["conversation_messages"])],
            created_at=row["created_at"],
        )
