"""
Match progression for round-robin golf.

Pure functions that take a MatchState and return a new one: starting a
match, recording each hole's results, moving between holes, and correcting
an earlier hole. Results arrive already decided (player1, player2, or draw);
nothing here looks at strokes.
"""

import logging
from dataclasses import replace
from typing import Sequence

from constants import (
    FIRST_HOLE,
    MATCHUPS_PER_HOLE,
    PLAYERS_PER_MATCH,
    POINTS_FOR_DRAW,
    POINTS_FOR_LOSS,
    POINTS_FOR_WIN,
    TOTAL_HOLES,
)
from matchups import HoleOutOfRangeError, is_valid_hole
from models.match_state import (
    HoleResult,
    MatchPhase,
    MatchState,
    Matchup,
    MatchupResult,
    Player,
)

logger = logging.getLogger(__name__)

WIN = "win"
DRAW = "draw"
LOSS = "loss"


def create_player(name: str) -> Player:
    """Create a player with zeroed stats. Name is trimmed and must be non-empty."""
    if not isinstance(name, str) or not name.strip():
        raise ValueError("Player name must be a non-empty string")
    return Player(name=name.strip())


def apply_matchup_result(player: Player, outcome: str) -> Player:
    """Return a copy of player with one win, draw, or loss added."""
    if outcome == WIN:
        return replace(player, points=player.points + POINTS_FOR_WIN, wins=player.wins + 1)
    if outcome == DRAW:
        return replace(player, points=player.points + POINTS_FOR_DRAW, draws=player.draws + 1)
    if outcome == LOSS:
        return replace(player, points=player.points + POINTS_FOR_LOSS, losses=player.losses + 1)
    raise ValueError(f'Result must be "{WIN}", "{DRAW}", or "{LOSS}"')


def holes_completed(player: Player) -> int:
    """Each hole is one game per player."""
    return player.wins + player.draws + player.losses


def rank_players(players: Sequence[Player]) -> list[Player]:
    """Points descending, then name ascending."""
    return sorted(players, key=lambda p: (-p.points, p.name))


def _check_matchups(matchups: Sequence[Matchup]) -> None:
    if len(matchups) != MATCHUPS_PER_HOLE:
        raise ValueError(f"Exactly {MATCHUPS_PER_HOLE} matchup results are required")
    if any(m.result is None for m in matchups):
        raise ValueError("All matchups must have results before processing")


def _check_hole(hole: int) -> None:
    if not is_valid_hole(hole):
        raise HoleOutOfRangeError(f"Hole number must be between {FIRST_HOLE} and {TOTAL_HOLES}")


def process_hole_result(players: Sequence[Player], matchups: Sequence[Matchup]) -> list[Player]:
    """
    Apply a scored hole to the roster.

    Args:
        players: The 4 players, in roster order.
        matchups: The hole's 2 matchups, each with a result.

    Returns:
        Updated players, in the original order.
    """
    if len(players) != PLAYERS_PER_MATCH:
        raise ValueError(f"Must provide exactly {PLAYERS_PER_MATCH} players")
    _check_matchups(matchups)

    by_name = {p.name: p for p in players}
    for matchup in matchups:
        name1, name2 = matchup.player1.name, matchup.player2.name
        if name1 not in by_name or name2 not in by_name:
            raise ValueError("Matchup contains players not found in players list")

        if matchup.result == MatchupResult.DRAW:
            outcomes = (DRAW, DRAW)
        elif matchup.result == MatchupResult.PLAYER1:
            outcomes = (WIN, LOSS)
        else:
            outcomes = (LOSS, WIN)

        by_name[name1] = apply_matchup_result(by_name[name1], outcomes[0])
        by_name[name2] = apply_matchup_result(by_name[name2], outcomes[1])

    return [by_name[p.name] for p in players]


def start_match(player_names: Sequence[str]) -> MatchState:
    """
    Begin scoring with four named players.

    Raises:
        ValueError: Unless there are exactly 4 unique, non-empty names.
    """
    if len(player_names) != PLAYERS_PER_MATCH:
        raise ValueError(f"Exactly {PLAYERS_PER_MATCH} player names are required")
    if any(not isinstance(n, str) or not n.strip() for n in player_names):
        raise ValueError("All player names must be non-empty")
    if len({n.strip() for n in player_names}) != PLAYERS_PER_MATCH:
        raise ValueError("All player names must be unique")

    players = [create_player(name) for name in player_names]
    logger.debug(f"Starting match: {', '.join(p.name for p in players)}")
    return MatchState(
        players=players,
        current_hole=FIRST_HOLE,
        phase=MatchPhase.SCORING,
        hole_results=[],
        max_hole_reached=FIRST_HOLE,
    )


def record_hole_result(state: MatchState, matchups: Sequence[Matchup]) -> MatchState:
    """
    Record the current hole and advance.

    After hole 18 the match is complete and current_hole stays at 18.
    """
    if state.phase != MatchPhase.SCORING:
        raise ValueError("Hole results can only be recorded while scoring")

    players = process_hole_result(state.players, matchups)
    hole_result = HoleResult(hole=state.current_hole, matchups=list(matchups))

    next_hole = state.current_hole + 1
    if next_hole > TOTAL_HOLES:
        phase, next_hole = MatchPhase.COMPLETE, TOTAL_HOLES
    else:
        phase = MatchPhase.SCORING

    return replace(
        state,
        players=players,
        current_hole=next_hole,
        phase=phase,
        hole_results=[*state.hole_results, hole_result],
        max_hole_reached=max(state.max_hole_reached, next_hole),
    )


def navigate_to_hole(state: MatchState, hole: int) -> MatchState:
    """Move to an already-reached hole."""
    _check_hole(hole)
    if hole > state.max_hole_reached:
        raise ValueError(f"Cannot navigate beyond hole {state.max_hole_reached}")
    return replace(state, current_hole=hole)


def recalculate_players(players: Sequence[Player], hole_results: Sequence[HoleResult]) -> list[Player]:
    """Rebuild every player's stats from scratch by replaying hole results."""
    rebuilt = [Player(name=p.name) for p in players]
    for hole_result in sorted(hole_results, key=lambda hr: hr.hole):
        rebuilt = process_hole_result(rebuilt, hole_result.matchups)
    return rebuilt


def update_hole_result(state: MatchState, hole: int, matchups: Sequence[Matchup]) -> MatchState:
    """
    Replace (or fill in) one hole's results and recalculate all stats.

    Hole results stay ordered by hole number.
    """
    _check_hole(hole)
    _check_matchups(matchups)

    new_result = HoleResult(hole=hole, matchups=list(matchups))
    hole_results = [hr for hr in state.hole_results if hr.hole != hole]
    hole_results.append(new_result)
    hole_results.sort(key=lambda hr: hr.hole)

    return replace(
        state,
        hole_results=hole_results,
        players=recalculate_players(state.players, hole_results),
    )
