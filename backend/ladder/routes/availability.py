"""Availability endpoints: own week, proxy save and takeover."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field
from sqlmodel import Session

from ladder.database import get_session
from ladder.services import availability_service
from ladder.services.auth_service import Principal, current_user, get_principal
from ladder.services.proxy_overlay import ProxyPayload
from ladder.utils.schema import CamelModel
from ladder.utils.time_slots import parse_week_slots, parse_week_start, slot_key

logger = logging.getLogger(__name__)

router = APIRouter()


class SaveWeekRequest(CamelModel):
    week_start_iso: str = Field(alias="weekStartISO")
    slots: List[str]
    unavailable_slots: List[str] = Field(default_factory=list)


class ProxySaveRequest(CamelModel):
    week_start_iso: str = Field(alias="weekStartISO")
    target_user_id: str
    available_slots: Optional[List[str]] = None
    slots: Optional[List[str]] = None  # older clients send available slots here
    unavailable_slots: List[str] = Field(default_factory=list)
    none_slots: List[str] = Field(default_factory=list)


class TakeoverRequest(CamelModel):
    week_start_iso: str = Field(alias="weekStartISO")
    target_user_id: str
    available_slots: List[str] = Field(default_factory=list)
    unavailable_slots: List[str] = Field(default_factory=list)
    none_slots: List[str] = Field(default_factory=list)


class ProxySaveResponse(CamelModel):
    ok: bool = True
    written: int
    preserved: List[str]


@router.get("/availability")
def get_availability(
    week_start: str = Query(..., alias="weekStart"),
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
):
    """The caller's and partner's availability for one week."""
    me = current_user(session, principal)
    return availability_service.get_week_view(session, me, parse_week_start(week_start))


@router.post("/availability")
def save_availability(
    body: SaveWeekRequest,
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
):
    me = current_user(session, principal)
    week_start = parse_week_start(body.week_start_iso)
    available = parse_week_slots(body.slots, week_start)
    unavailable = parse_week_slots(body.unavailable_slots, week_start)
    availability_service.replace_own_week(session, me, week_start, available, unavailable)
    return {"ok": True}


@router.post("/availability/proxy", response_model=ProxySaveResponse)
def save_proxy_availability(
    body: ProxySaveRequest,
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
):
    """Save availability on behalf of another user without touching what they set themselves."""
    me = current_user(session, principal)
    week_start = parse_week_start(body.week_start_iso)
    available = body.available_slots if body.available_slots is not None else (body.slots or [])
    payload = ProxyPayload(
        available=parse_week_slots(available, week_start),
        unavailable=parse_week_slots(body.unavailable_slots, week_start),
        cleared=parse_week_slots(body.none_slots, week_start),
    )
    plan = availability_service.proxy_save(session, me, body.target_user_id, week_start, payload)
    return ProxySaveResponse(
        written=len(plan.inserts),
        preserved=[slot_key(s) for s in plan.preserved],
    )


@router.post("/availability/takeover")
def takeover_availability(
    body: TakeoverRequest,
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
):
    """Overwrite slots regardless of who set them."""
    me = current_user(session, principal)
    week_start = parse_week_start(body.week_start_iso)
    result = availability_service.takeover(
        session,
        me,
        body.target_user_id,
        week_start,
        available=parse_week_slots(body.available_slots, week_start),
        unavailable=parse_week_slots(body.unavailable_slots, week_start),
        cleared=parse_week_slots(body.none_slots, week_start),
    )
    return {"success": True, **result}
