"""
Round-robin matchup rotation for 4-player matches.

Holes cycle through three fixed pairings, so any 3 consecutive holes have
every player meet every other player exactly once, and a full 18-hole match
has each of the 6 pairs meet 6 times. Pairings are positional: the player
at index 0 of the roster is always slot 0.
"""

from typing import Any, Sequence

from constants import FIRST_HOLE, MATCHUP_PATTERNS, PLAYERS_PER_MATCH, TOTAL_HOLES
from models.match_state import Matchup, Player

Pairing = tuple[tuple[int, int], tuple[int, int]]


class HoleOutOfRangeError(ValueError):
    """Raised when a hole number is not an integer in 1-18."""
    pass


def is_valid_hole(hole: Any) -> bool:
    # bool is an int subclass and 2.0 is not a hole number
    if not isinstance(hole, int) or isinstance(hole, bool):
        return False
    return FIRST_HOLE <= hole <= TOTAL_HOLES


def pattern_for_hole(hole: int) -> Pairing:
    """
    Get the index pairing for a hole.

    Args:
        hole: Hole number (1-18).

    Returns:
        Two (index, index) pairs into the 4-player roster.

    Raises:
        HoleOutOfRangeError: If hole is outside 1-18.
    """
    if not is_valid_hole(hole):
        raise HoleOutOfRangeError(f"Hole number must be between {FIRST_HOLE} and {TOTAL_HOLES}")

    return MATCHUP_PATTERNS[(hole - 1) % len(MATCHUP_PATTERNS)]


def matchups_for_hole(players: Sequence[Player], hole: int) -> list[Matchup]:
    """
    Build the two unscored matchups for a hole.

    Args:
        players: Exactly 4 players, in roster order.
        hole: Hole number (1-18).

    Returns:
        Two matchups with result set to None.

    Raises:
        ValueError: If players is not a sequence of exactly 4.
        HoleOutOfRangeError: If hole is outside 1-18.
    """
    if isinstance(players, (str, bytes)) or not isinstance(players, Sequence):
        raise ValueError(f"Must provide exactly {PLAYERS_PER_MATCH} players")
    if len(players) != PLAYERS_PER_MATCH:
        raise ValueError(f"Must provide exactly {PLAYERS_PER_MATCH} players")

    return [
        Matchup(player1=players[a], player2=players[b], result=None)
        for a, b in pattern_for_hole(hole)
    ]


def all_patterns() -> list[Pairing]:
    """Pairings for holes 1-18, in order."""
    return [pattern_for_hole(hole) for hole in range(FIRST_HOLE, TOTAL_HOLES + 1)]
