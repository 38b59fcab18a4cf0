"""
Shared fixtures for persistence tests.

FakeConnection is a tiny in-memory stand-in for an asyncpg connection that
understands just the statements the stores issue.
"""

from typing import Optional

import pytest
import asyncpg

from models.match_state import (
    HoleResult,
    MatchPhase,
    MatchState,
    Matchup,
    MatchupResult,
    Player,
)
from stores.local_store import LocalStore


def _normalize(query: str) -> str:
    return " ".join(query.split())


class FakeConnection:
    """In-memory asyncpg connection for user_current_match and match_shares."""

    def __init__(self):
        self.matches: dict[str, dict] = {}
        self.shares: list[dict] = []
        self.executed: list[str] = []
        self.fail_with: Optional[Exception] = None

    def _check(self):
        if self.fail_with is not None:
            raise self.fail_with

    async def execute(self, query, *args):
        self._check()
        q = _normalize(query)
        self.executed.append(q)

        if q.startswith("INSERT INTO user_current_match"):
            user_id, match_data, updated_at = args
            self.matches[user_id] = {"match_data": match_data, "updated_at": updated_at}
        elif q.startswith("DELETE FROM user_current_match"):
            self.matches.pop(args[0], None)
        elif q.startswith("INSERT INTO match_shares"):
            user_id, code = args
            if any(s["share_code"] == code for s in self.shares):
                raise asyncpg.UniqueViolationError("duplicate key value violates unique constraint")
            self.shares.append({"user_id": user_id, "share_code": code, "is_active": True})
        elif q.startswith("UPDATE match_shares"):
            for share in self.shares:
                if share["user_id"] == args[0]:
                    share["is_active"] = False
        return "OK"

    async def fetchrow(self, query, *args):
        self._check()
        q = _normalize(query)

        if "FROM user_current_match" in q:
            row = self.matches.get(args[0])
            return {"match_data": row["match_data"]} if row else None

        if q.startswith("SELECT share_code FROM match_shares"):
            active = [s for s in self.shares if s["user_id"] == args[0] and s["is_active"]]
            return {"share_code": active[-1]["share_code"]} if active else None

        if q.startswith("SELECT user_id FROM match_shares"):
            for share in self.shares:
                if share["share_code"] == args[0] and share["is_active"]:
                    return {"user_id": share["user_id"]}
            return None

        raise AssertionError(f"Unexpected query: {q}")


class _Acquire:
    def __init__(self, conn):
        self.conn = conn

    async def __aenter__(self):
        return self.conn

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakePool:
    """Minimal asyncpg.Pool: acquire() and close()."""

    def __init__(self, conn: FakeConnection):
        self.conn = conn
        self.closed = False

    def acquire(self):
        return _Acquire(self.conn)

    async def close(self):
        self.closed = True


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def fake_conn():
    return FakeConnection()


@pytest.fixture
def fake_pool(fake_conn):
    return FakePool(fake_conn)


@pytest.fixture
def local_store(tmp_path):
    return LocalStore(str(tmp_path / "match_state.db"))


@pytest.fixture
def players():
    return [Player(name=n) for n in ("Alice", "Bob", "Carol", "Dave")]


@pytest.fixture
def scoring_state(players):
    """A match two holes in, with results recorded."""
    alice, bob, carol, dave = players
    return MatchState(
        players=[
            Player(name="Alice", points=4, wins=1, draws=1, losses=0),
            Player(name="Bob", points=1, wins=0, draws=1, losses=1),
            Player(name="Carol", points=1, wins=0, draws=1, losses=1),
            Player(name="Dave", points=4, wins=1, draws=1, losses=0),
        ],
        current_hole=3,
        phase=MatchPhase.SCORING,
        hole_results=[
            HoleResult(hole=1, matchups=[
                Matchup(alice, bob, MatchupResult.PLAYER1),
                Matchup(carol, dave, MatchupResult.PLAYER2),
            ]),
            HoleResult(hole=2, matchups=[
                Matchup(alice, carol, MatchupResult.DRAW),
                Matchup(bob, dave, MatchupResult.DRAW),
            ]),
        ],
        max_hole_reached=3,
    )
