"""
SQLite-backed local fallback store for match state.

Keeps a single snapshot of the current match on this device so a match can
be resumed when the remote store is unreachable. Everything here is
best-effort: a failed write is logged and forgotten, and an unreadable or
invalid snapshot is discarded so it isn't retried on every load.

The snapshot remembers which user wrote it (None for an anonymous session),
so a device shared between users never hands one user another's match.
"""

import json
import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from constants import LOCAL_STORE_KEY
from models.match_state import MatchState
from state_validator import parse_match_state

logger = logging.getLogger(__name__)


@dataclass
class LocalSnapshot:
    """A stored match and the user it belongs to (None = anonymous)."""
    state: MatchState
    owner: Optional[str] = None


class LocalStore:
    """Synchronous key/value store holding one serialized match snapshot."""

    def __init__(self, db_path: str = "match_state.db", key: str = LOCAL_STORE_KEY):
        """
        Initialize the local store, creating the table if needed.

        Args:
            db_path: SQLite database file.
            key: Key the snapshot is stored under.
        """
        self.db_path = Path(db_path)
        self.key = key
        self._init_db()

    def _init_db(self) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    owner TEXT,
                    updated_at TIMESTAMP
                )
                """
            )
            # Files written before snapshots had owners
            columns = {row[1] for row in conn.execute("PRAGMA table_info(kv_store)")}
            if "owner" not in columns:
                conn.execute("ALTER TABLE kv_store ADD COLUMN owner TEXT")

    def save(self, state: MatchState, owner: Optional[str] = None) -> None:
        """Save the match snapshot for owner. Failures are logged, never raised."""
        try:
            serialized = json.dumps(state.to_dict())
            with sqlite3.connect(self.db_path) as conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO kv_store (key, value, owner, updated_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (self.key, serialized, owner, datetime.now(timezone.utc).isoformat()),
                )
        except (TypeError, ValueError, sqlite3.Error) as e:
            logger.warning(f"Failed to save match state locally: {e}")

    def _read(self) -> Optional[tuple[str, Optional[str]]]:
        with sqlite3.connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT value, owner FROM kv_store WHERE key = ?",
                (self.key,),
            ).fetchone()
        return (row[0], row[1]) if row else None

    def load_snapshot(self) -> Optional[LocalSnapshot]:
        """
        Load the match snapshot together with its owner.

        Returns:
            The saved snapshot, or None if nothing usable is stored.
        """
        try:
            row = self._read()
        except sqlite3.Error as e:
            logger.warning(f"Failed to read local match state: {e}")
            return None

        if row is None:
            return None
        serialized, owner = row

        try:
            blob = json.loads(serialized)
        except ValueError as e:
            logger.warning(f"Corrupt match state in local store, clearing it: {e}")
            self.clear()
            return None

        state = parse_match_state(blob)
        if state is None:
            logger.warning("Invalid match state found in local store, clearing it")
            self.clear()
            return None

        return LocalSnapshot(state=state, owner=owner)

    def load(self) -> Optional[MatchState]:
        """Load the match snapshot whoever wrote it."""
        snapshot = self.load_snapshot()
        return snapshot.state if snapshot else None

    def clear(self) -> None:
        """Remove the snapshot. Clearing an empty store is fine."""
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute("DELETE FROM kv_store WHERE key = ?", (self.key,))
        except sqlite3.Error as e:
            logger.warning(f"Failed to clear local match state: {e}")

    def exists(self) -> bool:
        """Check whether a snapshot is stored (without validating it)."""
        try:
            return self._read() is not None
        except sqlite3.Error:
            return False
