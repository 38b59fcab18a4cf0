"""
PostgreSQL-backed remote store for match state.

One row per user holds that user's current match as an opaque JSONB blob.
This is the authoritative copy whenever the database is reachable; the
local store only fills in when it isn't.

Failure policy:
- Missing user id on save is a caller bug and raises UsageError.
- "No row" is not an error; it loads as None.
- A stored blob that fails validation is deleted and loads as None.
- Any other database/network failure is logged; save and clear report
  False, load reports None, exists raises ConnectivityError so callers
  can tell "nothing saved" apart from "couldn't ask".
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

import asyncpg

from models.match_state import MatchState
from state_validator import parse_match_state

logger = logging.getLogger(__name__)


class UsageError(ValueError):
    """Raised when an operation that needs a user id is called without one."""
    pass


class ConnectivityError(Exception):
    """Raised when the remote store can't be reached or errors out."""
    pass


# SQL schema for the remote store
SCHEMA_SQL = """
-- One current match per user
CREATE TABLE IF NOT EXISTS user_current_match (
    user_id VARCHAR(64) PRIMARY KEY,
    match_data JSONB NOT NULL,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW()
);
"""


def decode_match_blob(value: Any) -> Any:
    """asyncpg hands JSONB back as text unless a codec is registered."""
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return value


class RemoteStore:
    """
    PostgreSQL-backed per-user match store.

    Uses asyncpg for async database access.
    """

    def __init__(self, pool: asyncpg.Pool):
        """
        Initialize remote store with connection pool.

        Args:
            pool: asyncpg connection pool.
        """
        self.pool = pool

    @classmethod
    async def create(cls, postgres_url: str) -> "RemoteStore":
        """
        Create a RemoteStore with a new connection pool.

        Args:
            postgres_url: PostgreSQL connection URL.

        Returns:
            Configured RemoteStore instance.
        """
        pool = await asyncpg.create_pool(postgres_url, min_size=1, max_size=5)
        store = cls(pool)
        await store.initialize_schema()
        return store

    async def initialize_schema(self) -> None:
        """Create database tables if they don't exist."""
        async with self.pool.acquire() as conn:
            await conn.execute(SCHEMA_SQL)
        logger.info("Remote store schema initialized")

    async def close(self) -> None:
        """Close the connection pool."""
        await self.pool.close()

    # -------------------------------------------------------------------------
    # Match State
    # -------------------------------------------------------------------------

    async def save(self, state: MatchState, user_id: Optional[str]) -> bool:
        """
        Upsert a user's match state.

        Args:
            state: Match state to store.
            user_id: Owner of the match.

        Returns:
            True on success, False on any database/network error.

        Raises:
            UsageError: If user_id is missing.
        """
        if not user_id:
            raise UsageError("User ID is required to save match state")

        try:
            async with self.pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO user_current_match (user_id, match_data, updated_at)
                    VALUES ($1, $2::jsonb, $3)
                    ON CONFLICT (user_id) DO UPDATE
                    SET match_data = EXCLUDED.match_data,
                        updated_at = EXCLUDED.updated_at
                    """,
                    user_id,
                    json.dumps(state.to_dict()),
                    datetime.now(timezone.utc),
                )
            return True
        except Exception as e:
            logger.error(f"Failed to save match state for {user_id}: {e}")
            return False

    async def load(self, user_id: Optional[str]) -> Optional[MatchState]:
        """
        Load a user's match state.

        Args:
            user_id: Owner of the match.

        Returns:
            The stored MatchState, or None if there is nothing usable.
        """
        if not user_id:
            return None

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    "SELECT match_data FROM user_current_match WHERE user_id = $1",
                    user_id,
                )
        except Exception as e:
            logger.error(f"Failed to load match state for {user_id}: {e}")
            return None

        # No row is normal for a new user
        if row is None or row["match_data"] is None:
            return None

        try:
            blob = decode_match_blob(row["match_data"])
        except ValueError:
            blob = None

        state = parse_match_state(blob)
        if state is None:
            logger.warning(f"Invalid match state found for {user_id}, clearing it")
            await self.clear(user_id)
            return None

        return state

    async def clear(self, user_id: Optional[str]) -> bool:
        """
        Delete a user's match state.

        Args:
            user_id: Owner of the match. Nothing to clear if missing.

        Returns:
            True on success (or nothing to clear), False on error.
        """
        if not user_id:
            return True

        try:
            async with self.pool.acquire() as conn:
                await conn.execute(
                    "DELETE FROM user_current_match WHERE user_id = $1",
                    user_id,
                )
            return True
        except Exception as e:
            logger.error(f"Failed to clear match state for {user_id}: {e}")
            return False

    async def exists(self, user_id: Optional[str]) -> bool:
        """
        Check whether a user has a match to resume.

        Only checks that a record holding a JSON object is present; full
        validation happens on load.

        Raises:
            ConnectivityError: If the database can't be queried.
        """
        if not user_id:
            return False

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    "SELECT match_data FROM user_current_match WHERE user_id = $1",
                    user_id,
                )
        except Exception as e:
            logger.error(f"Failed to check saved match for {user_id}: {e}")
            raise ConnectivityError(str(e)) from e

        if row is None:
            return False

        try:
            return isinstance(decode_match_blob(row["match_data"]), dict)
        except ValueError:
            return False


# Global remote store instance (initialized on first use)
_remote_store: Optional[RemoteStore] = None


async def get_remote_store(postgres_url: str) -> RemoteStore:
    """
    Get or create the global remote store instance.

    Args:
        postgres_url: PostgreSQL connection URL.

    Returns:
        RemoteStore instance.
    """
    global _remote_store
    if _remote_store is None:
        _remote_store = await RemoteStore.create(postgres_url)
    return _remote_store


async def close_remote_store() -> None:
    """Close the global remote store connection pool."""
    global _remote_store
    if _remote_store is not None:
        await _remote_store.close()
        _remote_store = None
