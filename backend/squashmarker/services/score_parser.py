"""
Minimal score parser for squash score strings.

Supports formats like:
  "11-7"              → 1 game, 11-7
  "11-7 9-11 11-5"    → 3 games
  "11-7, 9-11, 11-5"  → comma-separated variant

Scores are always from participant_a's point of view.
Returns None on parse failure (non-fatal).
"""
from __future__ import annotations

from typing import List, Optional

from squashmarker.services.formats.schemas import GameScore


def parse_score(score: Optional[str]) -> Optional[List[GameScore]]:
    """Parse strings like '11-7', '11-7 9-11 11-5', '11-7, 9-11, 11-5'.

    Returns None if the score cannot be parsed.
    """
    if not score or not score.strip():
        return None

    games: List[GameScore] = []
    for part in score.replace(",", " ").split():
        pair = part.split("-")
        if len(pair) != 2:
            return None
        try:
            a = int(pair[0])
            b = int(pair[1])
        except ValueError:
            return None
        if a < 0 or b < 0:
            return None
        games.append(GameScore(player1=a, player2=b))

    return games or None
