"""
Slot reconciliation.

For one slot: my team is fully available when every distinct member has an
AVAILABLE row there. Other teams in the ladder that are fully available too,
and have no open (non-completed) match with my team, are candidate opponents.

  0 candidates -> NONE     (both available, unmatched)
  1 candidate  -> CONFIRM  (offer a direct confirm)
  2+           -> SELECT   (offer a pick list, insertion order)

Past slots and slots at/after the ladder end are read-only and never produce
candidates.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set

from ladder.services.slot_states import is_editable
from ladder.utils.time_slots import slot_key, week_grid


class SlotAction(str, Enum):
    NONE = "none"
    CONFIRM = "confirm"
    SELECT = "select"


@dataclass
class TeamAvailability:
    team_id: str
    # user_id -> AVAILABLE slot keys; a solo team has a single entry
    members: Dict[str, Set[str]] = field(default_factory=dict)
    name: str = ""
    color: str = ""

    def fully_available(self, slot: str) -> bool:
        if not self.members:
            return False
        return all(slot in slots for slots in self.members.values())


@dataclass
class SlotReconciliation:
    slot: str
    read_only: bool
    my_team_available: bool
    candidates: List[TeamAvailability] = field(default_factory=list)
    action: SlotAction = SlotAction.NONE


def opponents_with_open_match(my_team_id: str, matches: Iterable) -> Set[str]:
    """Team ids that already have a non-completed match with my team."""
    blocked: Set[str] = set()
    for match in matches:
        if match.completed:
            continue
        if match.team1_id == my_team_id:
            blocked.add(match.team2_id)
        elif match.team2_id == my_team_id:
            blocked.add(match.team1_id)
    return blocked


def _action_for(candidates: List[TeamAvailability]) -> SlotAction:
    if len(candidates) == 1:
        return SlotAction.CONFIRM
    if len(candidates) > 1:
        return SlotAction.SELECT
    return SlotAction.NONE


def reconcile_slot(
    slot: datetime,
    my_team: TeamAvailability,
    other_teams: Iterable[TeamAvailability],
    open_matches: Iterable,
    now: datetime,
    ladder_end: Optional[datetime] = None,
    blocked: Optional[Set[str]] = None,
) -> SlotReconciliation:
    key = slot_key(slot)
    mine = my_team.fully_available(key)
    if not is_editable(slot, now, ladder_end):
        return SlotReconciliation(slot=key, read_only=True, my_team_available=mine)
    if not mine:
        return SlotReconciliation(slot=key, read_only=False, my_team_available=False)

    if blocked is None:
        blocked = opponents_with_open_match(my_team.team_id, open_matches)
    candidates = [
        team
        for team in other_teams
        if team.team_id != my_team.team_id
        and team.team_id not in blocked
        and team.fully_available(key)
    ]
    return SlotReconciliation(
        slot=key,
        read_only=False,
        my_team_available=True,
        candidates=candidates,
        action=_action_for(candidates),
    )


def reconcile_week(
    week_start: datetime,
    my_team: TeamAvailability,
    other_teams: Iterable[TeamAvailability],
    open_matches: Iterable,
    now: datetime,
    ladder_end: Optional[datetime] = None,
) -> List[SlotReconciliation]:
    """Reconcile every grid slot of the week; only slots my team can play are kept."""
    other_teams = list(other_teams)
    blocked = opponents_with_open_match(my_team.team_id, open_matches)
    results = []
    for slot in week_grid(week_start):
        outcome = reconcile_slot(slot, my_team, other_teams, (), now, ladder_end, blocked=blocked)
        if outcome.my_team_available:
            results.append(outcome)
    return results
