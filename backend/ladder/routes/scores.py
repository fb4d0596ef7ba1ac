import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from ladder.database import get_session
from ladder.routes.matches import match_payload
from ladder.services import match_lifecycle
from ladder.services.auth_service import Principal, current_user, get_principal
from ladder.services.match_lifecycle import ScoreEntry
from ladder.services.score_parser import format_score_line
from ladder.utils.schema import CamelModel
from ladder.utils.time_slots import WEEK, parse_week_start

logger = logging.getLogger(__name__)

router = APIRouter()


class ScoreItem(CamelModel):
    match_id: str
    team1_score: int
    team2_score: int
    team1_detailed_score: Optional[str] = None
    team2_detailed_score: Optional[str] = None


class RecordScoresRequest(CamelModel):
    scores: List[ScoreItem]


@router.get("/scores")
def week_scores(
    week_start: str = Query(..., alias="weekStart"),
    ladder_id: Optional[str] = Query(None, alias="ladderId"),
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
):
    me = current_user(session, principal)
    start = parse_week_start(week_start)
    matches = match_lifecycle.week_matches(session, start, start + WEEK, ladder_id or me.ladder_id)
    return {
        "matches": [
            {
                **match_payload(m),
                "scoreLine": format_score_line(m.team1_detailed_score, m.team2_detailed_score),
            }
            for m in matches
        ]
    }


@router.post("/scores")
def record_scores(
    body: RecordScoresRequest,
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
):
    """Save final scores for one or more matches and mark them completed."""
    me = current_user(session, principal)
    entries = [
        ScoreEntry(
            match_id=item.match_id,
            team1_score=item.team1_score,
            team2_score=item.team2_score,
            team1_detailed_score=item.team1_detailed_score,
            team2_detailed_score=item.team2_detailed_score,
        )
        for item in body.scores
    ]
    updated = match_lifecycle.record_scores(session, me, entries)
    return {"ok": True, "updated": len(updated), "matches": [match_payload(m) for m in updated]}
