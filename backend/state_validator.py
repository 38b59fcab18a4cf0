"""
Validation gate for persisted match state.

Every blob read back from a store passes through is_valid_match_state()
before anything else touches it. Stored data can be corrupt, written by an
older schema, or edited by hand, so the check is total: it answers True or
False for any input and never raises.
"""

from typing import Any, Optional

from constants import FIRST_HOLE, PLAYERS_PER_MATCH, TOTAL_HOLES
from models.match_state import MatchPhase, MatchState

_PHASES = {phase.value for phase in MatchPhase}
_COUNTER_FIELDS = ("points", "wins", "draws", "losses")


def _is_int(value: Any) -> bool:
    # bool is an int subclass; a stored true/false is not a hole number
    return isinstance(value, int) and not isinstance(value, bool)


def _is_valid_player(player: Any) -> bool:
    if not isinstance(player, dict):
        return False
    if not isinstance(player.get("name"), str):
        return False
    for name in _COUNTER_FIELDS:
        value = player.get(name)
        if not _is_int(value) or value < 0:
            return False
    return True


def is_valid_match_state(candidate: Any) -> bool:
    """
    Check that a persisted blob is a usable match state.

    Args:
        candidate: Anything, typically a decoded JSON object.

    Returns:
        True if the blob satisfies every match state invariant.
    """
    if not isinstance(candidate, dict):
        return False

    players = candidate.get("players")
    current_hole = candidate.get("currentHole")
    phase = candidate.get("phase")
    hole_results = candidate.get("holeResults")
    max_hole_reached = candidate.get("maxHoleReached")

    # Required fields and their types
    if (
        not isinstance(players, list)
        or not _is_int(current_hole)
        or not isinstance(phase, str)
        or not isinstance(hole_results, list)
        or not _is_int(max_hole_reached)
    ):
        return False

    if phase not in _PHASES:
        return False

    if current_hole < FIRST_HOLE or current_hole > TOTAL_HOLES:
        return False

    if (
        max_hole_reached < FIRST_HOLE
        or max_hole_reached > TOTAL_HOLES
        or max_hole_reached < current_hole
    ):
        return False

    if phase in (MatchPhase.SCORING.value, MatchPhase.COMPLETE.value):
        if len(players) != PLAYERS_PER_MATCH:
            return False

    return all(_is_valid_player(p) for p in players)


def parse_match_state(candidate: Any) -> Optional[MatchState]:
    """
    Validate a persisted blob and convert it to a MatchState.

    Returns None when the blob fails validation or when nested hole
    results can't be rebuilt.
    """
    if not is_valid_match_state(candidate):
        return None
    try:
        return MatchState.from_dict(candidate)
    except (KeyError, TypeError, ValueError, AttributeError):
        return None
