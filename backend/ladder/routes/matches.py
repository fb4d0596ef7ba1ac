"""
Match endpoints: confirm, reschedule, cancel, weekly candidates and the full
match list of a ladder.

Notifications are queued on BackgroundTasks after the write has committed.
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlmodel import Session

from ladder.database import get_session
from ladder.models.ladder import Ladder
from ladder.models.match import Match
from ladder.services import availability_service, match_lifecycle
from ladder.services.auth_service import Principal, current_user, get_principal
from ladder.services.notifications import (
    MATCH_CANCELLED,
    MATCH_CONFIRMED,
    Notifier,
    build_match_event,
    get_notifier,
)
from ladder.services.reconciliation import TeamAvailability, reconcile_week
from ladder.services.team_identity import build_teams
from ladder.utils.clock import get_now
from ladder.utils.schema import CamelModel
from ladder.utils.time_slots import parse_week_start, slot_key

logger = logging.getLogger(__name__)

router = APIRouter()


class ConfirmRequest(CamelModel):
    slot_key: Optional[str] = None
    opponent_team_id: Optional[str] = None


class RescheduleRequest(CamelModel):
    match_id: Optional[str] = None
    new_time: Optional[str] = None


class CancelRequest(CamelModel):
    match_id: Optional[str] = None
    reason: Optional[str] = None


def match_payload(match: Match) -> dict:
    return {
        "id": match.id,
        "startAt": slot_key(match.start_at),
        "team1Id": match.team1_id,
        "team2Id": match.team2_id,
        "ladderId": match.ladder_id,
        "confirmed": match.confirmed,
        "completed": match.completed,
        "team1Score": match.team1_score,
        "team2Score": match.team2_score,
        "team1DetailedScore": match.team1_detailed_score,
        "team2DetailedScore": match.team2_detailed_score,
    }


@router.post("/matches/confirm")
def confirm_match(
    body: ConfirmRequest,
    background_tasks: BackgroundTasks,
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
    now: datetime = Depends(get_now),
):
    me = current_user(session, principal)
    match = match_lifecycle.confirm(session, me, body.slot_key, body.opponent_team_id, now)
    background_tasks.add_task(notifier.dispatch, build_match_event(session, match, MATCH_CONFIRMED))
    return {"ok": True, "match": match_payload(match)}


@router.put("/matches/reschedule")
def reschedule_match(
    body: RescheduleRequest,
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
):
    me = current_user(session, principal)
    match = match_lifecycle.reschedule(session, me, body.match_id, body.new_time)
    return {"success": True, "match": match_payload(match)}


@router.delete("/matches/cancel")
def cancel_match(
    body: CancelRequest,
    background_tasks: BackgroundTasks,
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
):
    me = current_user(session, principal)
    snapshot = match_lifecycle.cancel(session, me, body.match_id)
    event = build_match_event(session, snapshot, MATCH_CANCELLED, reason=body.reason)
    background_tasks.add_task(notifier.dispatch, event)
    return {"success": True, "message": "Match cancelled"}


@router.get("/matches/candidates")
def match_candidates(
    week_start: str = Query(..., alias="weekStart"),
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
    now: datetime = Depends(get_now),
):
    """Slots of the week my team can play, with the opponents free at the same time."""
    me = current_user(session, principal)
    start = parse_week_start(week_start)

    members = availability_service.ladder_members(session, me.ladder_id)
    rosters = build_teams(members)
    rows_by_user = availability_service.rows_for_users(session, [m.id for m in members], start)
    teams = availability_service.team_availability(rosters, rows_by_user)

    mine = next(
        (t for t in teams if me.id in t.members),
        TeamAvailability(team_id=me.id, members={me.id: set()}),
    )
    ladder = session.get(Ladder, me.ladder_id) if me.ladder_id else None
    slots = reconcile_week(
        start,
        mine,
        [t for t in teams if t.team_id != mine.team_id],
        match_lifecycle.open_matches(session, me.ladder_id),
        now,
        ladder.end_date if ladder else None,
    )
    return {
        "myTeamId": mine.team_id,
        "slots": [
            {
                "slot": s.slot,
                "readOnly": s.read_only,
                "action": s.action.value,
                "candidates": [{"id": c.team_id, "name": c.name, "color": c.color} for c in s.candidates],
            }
            for s in slots
        ],
    }


@router.get("/matches/all")
def all_matches(
    ladder_id: Optional[str] = Query(None, alias="ladderId"),
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
):
    me = current_user(session, principal)
    matches = match_lifecycle.ladder_matches(session, ladder_id or me.ladder_id)
    return {"matches": [match_payload(m) for m in matches]}
