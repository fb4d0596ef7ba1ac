"""Team rosters: the weekly availability board, opponents and unpartnered users."""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from ladder.database import get_session
from ladder.models.availability import AVAILABLE, Availability
from ladder.services import account_service, availability_service
from ladder.services.auth_service import Principal, current_user, get_principal
from ladder.services.match_lifecycle import week_matches
from ladder.services.team_identity import TeamRoster, build_teams, team_id
from ladder.utils.clock import get_now
from ladder.utils.time_slots import WEEK, parse_week_start, slot_key

logger = logging.getLogger(__name__)

router = APIRouter()


def _member_payload(member, rows: List[Availability]) -> dict:
    available = [r for r in rows if r.availability == AVAILABLE]
    return {
        "id": member.id,
        "email": member.email,
        "name": member.name,
        "availability": [slot_key(r.start_at) for r in available],
        "setByUserIds": [r.set_by_user_id or member.id for r in available],
    }


def _team_payload(team: TeamRoster, rows_by_user: Dict[str, List[Availability]]) -> dict:
    member1 = _member_payload(team.member1, rows_by_user.get(team.member1.id, []))
    member2 = (
        member1
        if team.looking_for_partner
        else _member_payload(team.member2, rows_by_user.get(team.member2.id, []))
    )
    return {"id": team.id, "name": team.name, "color": team.color, "member1": member1, "member2": member2}


@router.get("/teams/availability")
def get_teams_availability(
    week_start: str = Query(..., alias="weekStart"),
    ladder_id: Optional[str] = Query(None, alias="ladderId"),
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
    now: datetime = Depends(get_now),
):
    """Every team of a ladder with its members' AVAILABLE slots for the week."""
    me = current_user(session, principal)
    availability_service.purge_past(session, now)

    start = parse_week_start(week_start)
    target_ladder = ladder_id or me.ladder_id
    members = availability_service.ladder_members(session, target_ladder)
    rows_by_user = availability_service.rows_for_users(session, [m.id for m in members], start)
    teams = build_teams(members)

    matches = week_matches(session, start, start + WEEK, target_ladder)
    viewing_own = target_ladder == me.ladder_id
    return {
        "teams": [_team_payload(team, rows_by_user) for team in teams],
        "myTeamId": team_id(me) if viewing_own else None,
        "currentUserId": me.id,
        "matches": [
            {
                "id": m.id,
                "startAt": slot_key(m.start_at),
                "team1Id": m.team1_id,
                "team2Id": m.team2_id,
                "team1Score": m.team1_score,
                "team2Score": m.team2_score,
                "completed": m.completed,
            }
            for m in matches
        ],
    }


@router.get("/opponents")
def get_opponents(
    ladder_id: Optional[str] = Query(None, alias="ladderId"),
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
):
    me = current_user(session, principal)
    members = availability_service.ladder_members(session, ladder_id or me.ladder_id)
    teams = build_teams(members)
    return {
        "teams": [
            {
                "id": team.id,
                "name": team.name,
                "color": team.color,
                "lookingForPartner": team.looking_for_partner,
                "members": [{"id": m.id, "email": m.email, "name": m.name} for m in team.members],
            }
            for team in teams
        ],
        "myTeamId": team_id(me),
    }


@router.get("/users")
def list_unpartnered_users(
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
):
    """Players without a partner, for the partner picker."""
    me = current_user(session, principal)
    return {
        "users": [
            {"id": u.id, "email": u.email, "name": u.name, "ladderId": u.ladder_id}
            for u in account_service.unpartnered_users(session, me)
        ]
    }
