"""
Team identity.

A team is never stored: its id is derived from a user and their partner link
every time it is needed. Every call site that needs a team id goes through
this module so that the sort order and separator cannot drift.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

TEAM_SEPARATOR = "-"

TEAM_COLORS = [
    "#3B82F6", "#EF4444", "#10B981", "#F59E0B", "#8B5CF6",
    "#F97316", "#06B6D4", "#84CC16", "#EC4899", "#6366F1",
]


def team_id_for(user_id: str, partner_id: Optional[str]) -> str:
    if partner_id:
        return TEAM_SEPARATOR.join(sorted([user_id, partner_id]))
    return user_id


def team_id(user) -> str:
    """Team id of a User (anything with ``id`` and ``partner_id``)."""
    return team_id_for(user.id, user.partner_id)


def member_ids(team: str) -> List[str]:
    return [part for part in team.split(TEAM_SEPARATOR) if part]


def canonical_pair(a: str, b: str) -> Tuple[str, str]:
    first, second = sorted([a, b])
    return first, second


def team_ids_touching(user) -> List[str]:
    """Every team id a user can appear under: solo, plus doubles if partnered."""
    ids = [user.id]
    if user.partner_id:
        ids.append(team_id_for(user.id, user.partner_id))
    return ids


def short_name(member) -> str:
    if member.name:
        return member.name
    return member.email.split("@")[0]


def team_display_name(members: Sequence) -> str:
    """'A & B' for doubles, the single name for a solo team."""
    distinct = []
    seen = set()
    for m in members:
        if m.id not in seen:
            seen.add(m.id)
            distinct.append(m)
    if not distinct:
        return "Unknown Team"
    return " & ".join(short_name(m) for m in distinct)


@dataclass
class TeamRoster:
    id: str
    member1: object
    member2: object  # same object as member1 for a solo team
    color: str
    members: List[object] = field(default_factory=list)

    @property
    def looking_for_partner(self) -> bool:
        return self.member1.id == self.member2.id

    @property
    def name(self) -> str:
        return team_display_name(self.members)


def build_teams(users: Iterable) -> List[TeamRoster]:
    """Group users into team rosters, first-seen order.

    A partner link is honoured only when the partner is part of ``users``;
    otherwise the user is shown as a solo team.
    """
    users = list(users)
    by_id: Dict[str, object] = {u.id: u for u in users}
    processed = set()
    teams: List[TeamRoster] = []

    for user in users:
        if user.id in processed:
            continue
        color = TEAM_COLORS[len(teams) % len(TEAM_COLORS)]
        partner = by_id.get(user.partner_id) if user.partner_id else None
        if partner is not None and partner.id not in processed:
            teams.append(
                TeamRoster(
                    id=team_id_for(user.id, partner.id),
                    member1=user,
                    member2=partner,
                    color=color,
                    members=[user, partner],
                )
            )
            processed.update((user.id, partner.id))
        else:
            teams.append(
                TeamRoster(id=user.id, member1=user, member2=user, color=color, members=[user])
            )
            processed.add(user.id)

    return teams
