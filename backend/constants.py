"""
Match format constants for round-robin golf.

This module is the single source of truth for the shape of a match:
how many holes, how many players, and how the players are paired.

Round-Robin Pairing:
    - 4 players, 2 matchups per hole
    - 3 canonical pairings, cycled every 3 holes
    - Over 18 holes every pair of players meets exactly 6 times

Tunable values (debounce window, storage paths) live in config.py.
"""

# =============================================================================
# Match Format
# =============================================================================

TOTAL_HOLES: int = 18
FIRST_HOLE: int = 1
PLAYERS_PER_MATCH: int = 4
MATCHUPS_PER_HOLE: int = 2

# Index pairings, selected by (hole - 1) % 3
MATCHUP_PATTERNS: tuple[tuple[tuple[int, int], tuple[int, int]], ...] = (
    ((0, 1), (2, 3)),  # P1 vs P2, P3 vs P4
    ((0, 2), (1, 3)),  # P1 vs P3, P2 vs P4
    ((0, 3), (1, 2)),  # P1 vs P4, P2 vs P3
)


# =============================================================================
# Scoring
# =============================================================================

POINTS_FOR_WIN: int = 3
POINTS_FOR_DRAW: int = 1
POINTS_FOR_LOSS: int = 0


# =============================================================================
# Persistence
# =============================================================================

# Key holding the serialized match blob in the local store
LOCAL_STORE_KEY: str = "golf-match-state"

# Quiet period before a burst of edits is written out
DEFAULT_SAVE_DEBOUNCE_MS: int = 800

# Generic message surfaced when the remote store can't be reached
CONNECTION_LOST_MESSAGE: str = "Connection lost."


# =============================================================================
# Sharing
# =============================================================================

SHARE_CODE_LENGTH: int = 4
SHARE_CODE_MAX_ATTEMPTS: int = 5
