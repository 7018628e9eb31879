from __future__ import annotations

import math
from typing import TYPE_CHECKING, Dict, Iterable, List

if TYPE_CHECKING:
    from .player import PlayerState


def compute_wpm(score: int, time_limit: int, time_left: int) -> int:
    """Words per minute from the seconds elapsed in the round.

    Elapsed time comes from ticks, not wall-clock time, so every replica
    computes the same value.
    """
    elapsed = time_limit - time_left
    if elapsed <= 0:
        return 0
    # half-up, not banker's rounding
    return int(math.floor(score / (elapsed / 60) + 0.5))


def rank_players(players: Iterable[PlayerState]) -> List[PlayerState]:
    """Completed players first, then by score; ties keep join order."""
    return sorted(players, key=lambda p: (not p.is_completed(), -p.score))


def leaderboard(players: Iterable[PlayerState]) -> List[Dict]:
    rows = []
    for position, player in enumerate(rank_players(players), start=1):
        rows.append({
            'rank': position,
            'id': player.view_id,
            'initials': player.initials,
            'score': player.score,
            'wpm': player.wpm,
            'progress': player.completion_percentage(),
            'completed': player.is_completed(),
        })
    return rows
