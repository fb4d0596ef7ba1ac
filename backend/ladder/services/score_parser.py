"""
Minimal parser for per-set detailed scores.

Each team's detailed score is a comma-separated list of games per set, with
``X`` (or blank) for a set that was not played:

  team1 "6,3,10"  team2 "4,6,7"  -> 3 sets: 6-4, 3-6, 10-7
  team1 "6,6,X"   team2 "2,1,X"  -> 2 sets: 6-2, 6-1

Returns None on parse failure (non-fatal).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

UNPLAYED = "X"


@dataclass
class ParsedScore:
    sets: List[Tuple[int, int]]  # (team_a_games, team_b_games) per played set
    team_a_sets_won: int
    team_b_sets_won: int
    team_a_games: int
    team_b_games: int


def _split(detail: Optional[str]) -> List[str]:
    if not detail:
        return []
    return [part.strip() for part in detail.split(",")]


def _is_unplayed(part: str) -> bool:
    return part == "" or part.upper() == UNPLAYED


def parse_detailed_scores(team_a: Optional[str], team_b: Optional[str]) -> Optional[ParsedScore]:
    """Parse two detailed score strings into structured set/game counts.

    A set counts only when both sides have a number for it. Returns None if
    either string has a non-numeric entry or no set was played.
    """
    a_parts = _split(team_a)
    b_parts = _split(team_b)
    if not a_parts or not b_parts:
        return None

    sets: List[Tuple[int, int]] = []
    for a_raw, b_raw in zip(a_parts, b_parts):
        if _is_unplayed(a_raw) or _is_unplayed(b_raw):
            continue
        try:
            a = int(a_raw)
            b = int(b_raw)
        except ValueError:
            return None
        sets.append((a, b))

    if not sets:
        return None

    return ParsedScore(
        sets=sets,
        team_a_sets_won=sum(1 for a, b in sets if a > b),
        team_b_sets_won=sum(1 for a, b in sets if b > a),
        team_a_games=sum(a for a, _ in sets),
        team_b_games=sum(b for _, b in sets),
    )


def reshape_detailed_score(detail: Optional[str], sets: int) -> Optional[str]:
    """Fit a detailed score to a new set count: truncate, or pad with X."""
    if detail is None:
        return None
    parts = _split(detail)[:sets]
    parts += [UNPLAYED] * (sets - len(parts))
    return ",".join(parts)


def format_score_line(team_a: Optional[str], team_b: Optional[str]) -> Optional[str]:
    """'6-4 3-6 10-7' for display, or None when nothing parses."""
    parsed = parse_detailed_scores(team_a, team_b)
    if parsed is None:
        return None
    return " ".join(f"{a}-{b}" for a, b in parsed.sets)
