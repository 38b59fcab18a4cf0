"""Models package for round-robin match state."""

from .match_state import (
    MatchPhase,
    MatchupResult,
    Player,
    Matchup,
    HoleResult,
    MatchState,
    default_match_state,
)

__all__ = [
    "MatchPhase",
    "MatchupResult",
    "Player",
    "Matchup",
    "HoleResult",
    "MatchState",
    "default_match_state",
]
