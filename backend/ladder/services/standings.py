"""
Ladder standings and end-of-ladder movement.

Results come from completed matches with both final scores. Match wins and
losses use the final scores; games and sets use the detailed per-set scores
when present, otherwise the final scores stand in for both.

Ordering:
  winnerBy == "games": games won, wins, head-to-head, win %
  otherwise:           wins, sets won, head-to-head, win %

Movement (ladder 1 is the top):
  4+ teams: 1st up two, 2nd up one, second-last down one, last down two
  3 teams:  1st up one, 3rd down one
Moves are limited to ladders that exist.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import cmp_to_key
from typing import Dict, Iterable, List, Optional, Sequence

from ladder.services.score_parser import parse_detailed_scores


@dataclass
class TeamResult:
    team_id: str
    wins: int = 0
    losses: int = 0
    games_won: int = 0
    total_games: int = 0
    sets_won: int = 0

    @property
    def win_percentage(self) -> float:
        played = self.wins + self.losses
        return (self.wins / played) * 100 if played else 0.0


def _played(matches: Iterable) -> List:
    return [
        m for m in matches
        if m.completed and m.team1_score is not None and m.team2_score is not None
    ]


def team_results(team_id: str, matches: Iterable) -> TeamResult:
    result = TeamResult(team_id=team_id)
    for match in _played(matches):
        if team_id not in (match.team1_id, match.team2_id):
            continue
        is_team1 = match.team1_id == team_id

        parsed = parse_detailed_scores(match.team1_detailed_score, match.team2_detailed_score)
        if parsed is not None:
            t1_games, t2_games = parsed.team_a_games, parsed.team_b_games
            t1_sets, t2_sets = parsed.team_a_sets_won, parsed.team_b_sets_won
        else:
            t1_games, t2_games = match.team1_score, match.team2_score
            t1_sets, t2_sets = t1_games, t2_games

        mine, theirs = (match.team1_score, match.team2_score) if is_team1 else (match.team2_score, match.team1_score)
        if mine > theirs:
            result.wins += 1
        elif theirs > mine:
            result.losses += 1

        result.games_won += t1_games if is_team1 else t2_games
        result.sets_won += t1_sets if is_team1 else t2_sets
        result.total_games += t1_games + t2_games
    return result


def head_to_head(team_a: str, team_b: str, matches: Iterable) -> int:
    """1 if team_a beat team_b, -1 if it lost, 0 with no decisive completed match."""
    for match in _played(matches):
        if {match.team1_id, match.team2_id} != {team_a, team_b}:
            continue
        a_score, b_score = (
            (match.team1_score, match.team2_score)
            if match.team1_id == team_a
            else (match.team2_score, match.team1_score)
        )
        if a_score > b_score:
            return 1
        if b_score > a_score:
            return -1
        return 0
    return 0


def rank_teams(team_ids: Sequence[str], matches: Sequence, winner_by: str = "sets") -> List[TeamResult]:
    results = [team_results(tid, matches) for tid in team_ids]

    def compare(a: TeamResult, b: TeamResult) -> int:
        if winner_by == "games":
            keys = [(b.games_won, a.games_won), (b.wins, a.wins)]
        else:
            keys = [(b.wins, a.wins), (b.sets_won, a.sets_won)]
        for left, right in keys:
            if left != right:
                return left - right
        h2h = head_to_head(a.team_id, b.team_id, matches)
        if h2h:
            return -h2h
        if b.win_percentage != a.win_percentage:
            return 1 if b.win_percentage > a.win_percentage else -1
        return 0

    return sorted(results, key=cmp_to_key(compare))


def next_ladder_number(current: int, position: int, total_teams: int, ladder_numbers: Iterable[int]) -> int:
    """Ladder number a team at ``position`` (1-based) moves to."""
    numbers = sorted(set(ladder_numbers))
    above = [n for n in numbers if n < current]
    below = [n for n in numbers if n > current]

    def step(target: int) -> int:
        return target if target in numbers else current

    if total_teams == 3:
        if position == 1:
            return step(current - 1)
        if position == 3:
            return step(current + 1)
        return current

    if total_teams < 4:
        return current

    if position == 1:
        if not above:
            return current
        target = max(1, current - 2)
        return target if target in above else above[0]
    if position == 2:
        return step(current - 1)
    if position == total_teams:
        if not below:
            return current
        target = current + 2
        return target if target in below else below[-1]
    if position == total_teams - 1:
        return step(current + 1)
    return current


def movement_label(current: int, target: int) -> str:
    if target == current:
        return f"— Ladder {current}"
    if target < current:
        return f"⬆️ Ladder {target}"
    return f"⬇️ Ladder {target}"


def ladder_standings(
    team_ids: Sequence[str],
    matches: Sequence,
    current_number: int,
    ladder_numbers: Iterable[int],
    winner_by: str = "sets",
    names: Optional[Dict[str, str]] = None,
) -> List[dict]:
    ladder_numbers = list(ladder_numbers)
    ranked = rank_teams(team_ids, matches, winner_by)
    rows = []
    for position, result in enumerate(ranked, start=1):
        target = next_ladder_number(current_number, position, len(ranked), ladder_numbers)
        rows.append(
            {
                "position": position,
                "teamId": result.team_id,
                "teamName": (names or {}).get(result.team_id, result.team_id),
                "wins": result.wins,
                "losses": result.losses,
                "gamesWon": result.games_won,
                "totalGames": result.total_games,
                "setsWon": result.sets_won,
                "winPercentage": round(result.win_percentage, 1),
                "nextLadder": target,
                "movement": movement_label(current_number, target),
            }
        )
    return rows
