import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session, select

from ladder.database import get_session
from ladder.models.user import User
from ladder.services import match_lifecycle
from ladder.services.auth_service import Principal, current_user, get_principal
from ladder.services.score_parser import format_score_line
from ladder.services.team_identity import member_ids, team_display_name
from ladder.utils.clock import get_now
from ladder.utils.time_slots import slot_key

logger = logging.getLogger(__name__)

router = APIRouter()

ACTIVITY_WINDOW = timedelta(days=7)
ACTIVITY_LIMIT = 15


def _team_names(session: Session, matches) -> Dict[str, str]:
    ids = {uid for m in matches for team in (m.team1_id, m.team2_id) for uid in member_ids(team)}
    users = session.exec(select(User).where(User.id.in_(sorted(ids)))).all() if ids else []  # type: ignore
    by_id = {u.id: u for u in users}
    names = {}
    for m in matches:
        for team in (m.team1_id, m.team2_id):
            names[team] = team_display_name([by_id[uid] for uid in member_ids(team) if uid in by_id])
    return names


@router.get("/activity")
def recent_activity(
    ladder_id: Optional[str] = Query(None, alias="ladderId"),
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
    now: datetime = Depends(get_now),
):
    """Matches created in the last week, newest first, across all ladders unless one is given."""
    current_user(session, principal)
    matches = match_lifecycle.recent_matches(session, now - ACTIVITY_WINDOW, ladder_id, limit=ACTIVITY_LIMIT)
    names = _team_names(session, matches)
    return {
        "activity": [
            {
                "id": m.id,
                "slot": slot_key(m.start_at),
                "team1Name": names.get(m.team1_id, "Unknown Team"),
                "team2Name": names.get(m.team2_id, "Unknown Team"),
                "confirmed": m.confirmed,
                "completed": m.completed,
                "score": (
                    format_score_line(m.team1_detailed_score, m.team2_detailed_score)
                    or (f"{m.team1_score}-{m.team2_score}" if m.completed else None)
                ),
            }
            for m in matches
        ]
    }
