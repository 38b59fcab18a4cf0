"""
Match state models for round-robin golf.

Defines the players, matchups, and per-hole results that make up a match,
plus the JSON shape they are persisted in. The wire format uses camelCase
keys so snapshots stay compatible with what clients already have saved.

Usage:
    state = MatchState.from_dict(blob)
    blob = state.to_dict()
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Any

from constants import FIRST_HOLE


class MatchPhase(str, Enum):
    """Lifecycle phase of a match."""
    SETUP = "setup"
    SCORING = "scoring"
    COMPLETE = "complete"


class MatchupResult(str, Enum):
    """Recorded outcome of a single matchup."""
    PLAYER1 = "player1"
    PLAYER2 = "player2"
    DRAW = "draw"


@dataclass
class Player:
    """
    A player and their running totals.

    Attributes:
        name: Unique display name; identity for the whole match.
        points: 3 per win, 1 per draw.
        wins: Matchups won.
        draws: Matchups halved.
        losses: Matchups lost.
    """
    name: str
    points: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "points": self.points,
            "wins": self.wins,
            "draws": self.draws,
            "losses": self.losses,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Player":
        return cls(
            name=d["name"],
            points=d.get("points", 0),
            wins=d.get("wins", 0),
            draws=d.get("draws", 0),
            losses=d.get("losses", 0),
        )


@dataclass
class Matchup:
    """
    One pairing of two players on a hole.

    Attributes:
        player1: First player in the pairing.
        player2: Second player in the pairing.
        result: None until the hole is scored.
    """
    player1: Player
    player2: Player
    result: Optional[MatchupResult] = None

    def to_dict(self) -> dict:
        return {
            "player1": self.player1.to_dict(),
            "player2": self.player2.to_dict(),
            "result": self.result.value if self.result else None,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Matchup":
        result = d.get("result")
        return cls(
            player1=Player.from_dict(d["player1"]),
            player2=Player.from_dict(d["player2"]),
            result=MatchupResult(result) if result else None,
        )


@dataclass
class HoleResult:
    """The two matchups played on a hole."""
    hole: int
    matchups: list[Matchup] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "holeNumber": self.hole,
            "matchups": [m.to_dict() for m in self.matchups],
        }

    @classmethod
    def from_dict(cls, d: dict) -> "HoleResult":
        return cls(
            hole=d["holeNumber"],
            matchups=[Matchup.from_dict(m) for m in d.get("matchups", [])],
        )


@dataclass
class MatchState:
    """
    Full state of one match.

    Attributes:
        players: Empty during setup, exactly 4 once scoring starts.
        current_hole: Hole being viewed or scored (1-18).
        phase: setup, scoring, or complete.
        hole_results: One entry per scored hole, in hole order.
        max_hole_reached: Furthest hole reached; never below current_hole.
        share_code: Active spectator code, if the match is shared.
    """
    players: list[Player] = field(default_factory=list)
    current_hole: int = FIRST_HOLE
    phase: MatchPhase = MatchPhase.SETUP
    hole_results: list[HoleResult] = field(default_factory=list)
    max_hole_reached: int = FIRST_HOLE
    share_code: Optional[str] = None

    @property
    def is_empty_setup(self) -> bool:
        """True when there is nothing worth persisting yet."""
        return self.phase == MatchPhase.SETUP and not self.players

    def to_dict(self) -> dict[str, Any]:
        return {
            "players": [p.to_dict() for p in self.players],
            "currentHole": self.current_hole,
            "phase": self.phase.value,
            "holeResults": [hr.to_dict() for hr in self.hole_results],
            "maxHoleReached": self.max_hole_reached,
            "shareCode": self.share_code,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "MatchState":
        """
        Create from a persisted blob.

        Callers are expected to gate the blob with is_valid_match_state()
        first; this only fills in optional fields.
        """
        return cls(
            players=[Player.from_dict(p) for p in d.get("players", [])],
            current_hole=d.get("currentHole", FIRST_HOLE),
            phase=MatchPhase(d.get("phase", MatchPhase.SETUP.value)),
            hole_results=[HoleResult.from_dict(hr) for hr in d.get("holeResults", [])],
            max_hole_reached=d.get("maxHoleReached", FIRST_HOLE),
            share_code=d.get("shareCode"),
        )


def default_match_state() -> MatchState:
    """The empty setup state a match starts from and resets to."""
    return MatchState()
