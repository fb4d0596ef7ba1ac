import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlmodel import Session

from ladder.database import get_session
from ladder.services import partner_service
from ladder.services.auth_service import Principal, current_user, get_principal
from ladder.utils.schema import CamelModel

logger = logging.getLogger(__name__)

router = APIRouter()


class LinkPartnerRequest(CamelModel):
    partner_email: Optional[str] = None


@router.post("/partner/link")
def link_partner(
    body: LinkPartnerRequest,
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
):
    me = current_user(session, principal)
    return partner_service.link_partner(session, me, body.partner_email)


@router.post("/partner/unlink")
def unlink_partner(
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
):
    me = current_user(session, principal)
    return partner_service.unlink_partner(session, me)


@router.get("/partner/info")
def partner_info(
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
):
    me = current_user(session, principal)
    return partner_service.partner_info(session, me)
