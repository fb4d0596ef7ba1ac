"""Ladder listing, creation, switching, match format and standings."""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from sqlmodel import Session

from ladder.database import get_session
from ladder.models.ladder import Ladder
from ladder.services import ladder_service
from ladder.services.auth_service import Principal, current_user, get_principal
from ladder.utils.schema import CamelModel
from ladder.utils.time_slots import parse_iso, slot_key

logger = logging.getLogger(__name__)

router = APIRouter()


class CreateLadderRequest(CamelModel):
    name: Optional[str] = None
    end_date: Optional[str] = None


class SwitchLadderRequest(CamelModel):
    new_ladder_id: Optional[str] = None


class UpdateFormatRequest(CamelModel):
    ladder_id: Optional[str] = None
    new_match_format: Optional[dict] = None


def ladder_payload(ladder: Ladder) -> dict:
    return {
        "id": ladder.id,
        "name": ladder.name,
        "number": ladder.number,
        "endDate": slot_key(ladder.end_date),
        "isActive": ladder.is_active,
        "matchFormat": ladder_service.match_format(ladder),
    }


@router.get("/ladders")
def list_ladders(
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
):
    me = current_user(session, principal)
    current = session.get(Ladder, me.ladder_id) if me.ladder_id else None
    return {
        "currentLadder": ladder_payload(current) if current else None,
        "allLadders": [ladder_payload(ladder) for ladder in ladder_service.active_ladders(session)],
    }


@router.post("/ladders/create")
def create_ladder(
    body: CreateLadderRequest,
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
):
    me = current_user(session, principal)
    end_date: datetime = parse_iso(body.end_date, "endDate")
    ladder = ladder_service.create_ladder(session, me, body.name, end_date)
    return {"success": True, "ladder": ladder_payload(ladder)}


@router.post("/ladder/switch")
def switch_ladder(
    body: SwitchLadderRequest,
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
):
    """Move the caller and partner; their matches and availability are wiped."""
    me = current_user(session, principal)
    return ladder_service.switch_ladder(session, me, body.new_ladder_id)


@router.post("/ladders/update-format")
def update_match_format(
    body: UpdateFormatRequest,
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
):
    current_user(session, principal)
    result = ladder_service.update_match_format(session, body.ladder_id, body.new_match_format)
    return {
        "success": True,
        "ladder": ladder_payload(result["ladder"]),
        "updatedMatches": result["updatedMatches"],
    }


@router.get("/ladders/standings")
def standings(
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
):
    current_user(session, principal)
    ladders = ladder_service.all_standings(session)
    for ladder in ladders:
        ladder["endDate"] = slot_key(ladder["endDate"])
    return {"ladders": ladders}
