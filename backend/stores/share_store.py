"""
PostgreSQL-backed share codes for spectator access.

A match owner can hand out a 4-digit code; anyone holding an active code
can read (never write) the owner's current match. Each user has at most one
active code at a time. Creating a new code deactivates the old ones.
"""

from dataclasses import dataclass
from typing import Optional

import asyncpg

from constants import SHARE_CODE_MAX_ATTEMPTS
from logging_config import get_logger
from models.match_state import MatchState
from share_codes import generate_share_code, is_valid_share_code_format
from state_validator import parse_match_state
from stores.remote_store import UsageError, decode_match_blob

logger = get_logger(__name__)


# SQL schema for share codes (user_current_match lives in remote_store)
SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS match_shares (
    id BIGSERIAL PRIMARY KEY,
    user_id VARCHAR(64) NOT NULL,
    share_code VARCHAR(4) NOT NULL UNIQUE,
    is_active BOOLEAN DEFAULT TRUE,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_match_shares_code ON match_shares(share_code) WHERE is_active = TRUE;
CREATE INDEX IF NOT EXISTS idx_match_shares_user_id ON match_shares(user_id);
"""


@dataclass
class ShareLookup:
    """Result of checking a share code."""
    valid: bool
    user_id: Optional[str] = None


@dataclass
class SharedMatch:
    """A spectator's view of a shared match."""
    match_state: Optional[MatchState] = None
    error: Optional[str] = None


class ShareStore:
    """Manages share codes and spectator reads."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    @classmethod
    async def create(cls, postgres_url: str) -> "ShareStore":
        """Create a ShareStore with a new connection pool."""
        pool = await asyncpg.create_pool(postgres_url, min_size=1, max_size=5)
        store = cls(pool)
        await store.initialize_schema()
        return store

    async def initialize_schema(self) -> None:
        """Create database tables if they don't exist."""
        async with self.pool.acquire() as conn:
            await conn.execute(SCHEMA_SQL)
        logger.info("Share store schema initialized")

    async def close(self) -> None:
        """Close the connection pool."""
        await self.pool.close()

    async def create_share_code(self, user_id: Optional[str]) -> Optional[str]:
        """
        Issue a new active share code for a user.

        Existing codes are deactivated first. Code collisions are retried a
        few times before giving up.

        Args:
            user_id: Match owner.

        Returns:
            The new code, or None on failure.

        Raises:
            UsageError: If user_id is missing.
        """
        if not user_id:
            raise UsageError("User ID is required to create share code")

        if not await self.deactivate_share_codes(user_id):
            return None

        try:
            async with self.pool.acquire() as conn:
                for _ in range(SHARE_CODE_MAX_ATTEMPTS):
                    code = generate_share_code()
                    try:
                        await conn.execute(
                            """
                            INSERT INTO match_shares (user_id, share_code, is_active)
                            VALUES ($1, $2, TRUE)
                            """,
                            user_id,
                            code,
                        )
                        logger.with_context(share_code=code, user_id=user_id).info("Share code created")
                        return code
                    except asyncpg.UniqueViolationError:
                        continue
        except Exception as e:
            logger.error(f"Failed to create share code for {user_id}: {e}")
            return None

        logger.error("Failed to generate unique share code after max attempts")
        return None

    async def get_share_code(self, user_id: Optional[str]) -> Optional[str]:
        """Get a user's active share code, if any."""
        if not user_id:
            return None

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    SELECT share_code FROM match_shares
                    WHERE user_id = $1 AND is_active = TRUE
                    ORDER BY created_at DESC
                    LIMIT 1
                    """,
                    user_id,
                )
        except Exception as e:
            logger.error(f"Failed to get share code for {user_id}: {e}")
            return None

        return row["share_code"] if row else None

    async def deactivate_share_codes(self, user_id: Optional[str]) -> bool:
        """
        Deactivate all of a user's codes.

        Returns:
            True on success (or no user), False on error.
        """
        if not user_id:
            return True

        try:
            async with self.pool.acquire() as conn:
                await conn.execute(
                    """
                    UPDATE match_shares SET is_active = FALSE
                    WHERE user_id = $1 AND is_active = TRUE
                    """,
                    user_id,
                )
            return True
        except Exception as e:
            logger.error(f"Failed to deactivate share codes for {user_id}: {e}")
            return False

    async def validate_share_code(self, code: str) -> ShareLookup:
        """Check that a code is well-formed and active, and find its owner."""
        if not is_valid_share_code_format(code):
            return ShareLookup(valid=False)

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    SELECT user_id FROM match_shares
                    WHERE share_code = $1 AND is_active = TRUE
                    """,
                    code,
                )
        except Exception as e:
            logger.with_context(share_code=code, store="remote").error(f"Failed to validate share code: {e}")
            return ShareLookup(valid=False)

        if row is None:
            return ShareLookup(valid=False)
        return ShareLookup(valid=True, user_id=row["user_id"])

    async def get_match_by_share_code(self, code: str) -> SharedMatch:
        """
        Read the match behind a share code.

        Returns:
            SharedMatch with either match_state or a display error.
        """
        if not is_valid_share_code_format(code):
            return SharedMatch(error="Invalid code format")

        lookup = await self.validate_share_code(code)
        if not lookup.valid or not lookup.user_id:
            return SharedMatch(error="Invalid or expired code")

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    "SELECT match_data FROM user_current_match WHERE user_id = $1",
                    lookup.user_id,
                )
        except Exception as e:
            logger.with_context(share_code=code, user_id=lookup.user_id, store="remote").error(
                f"Failed to get match by share code: {e}"
            )
            return SharedMatch(error="Failed to load match")

        if row is None or row["match_data"] is None:
            return SharedMatch(error="No match found")

        try:
            blob = decode_match_blob(row["match_data"])
        except ValueError:
            blob = None

        state = parse_match_state(blob)
        if state is None:
            return SharedMatch(error="No match found")
        return SharedMatch(match_state=state)
