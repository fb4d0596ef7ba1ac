"""Profile read/update and account deletion."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlmodel import Session

from ladder.database import get_session
from ladder.services import account_service
from ladder.services.auth_service import SESSION_COOKIE, Principal, current_user, get_principal
from ladder.utils.schema import CamelModel

logger = logging.getLogger(__name__)

router = APIRouter()


class UpdateProfileRequest(CamelModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    receive_match_notifications: Optional[bool] = None


@router.get("/profile/info")
def profile_info(
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
):
    me = current_user(session, principal)
    return account_service.profile_info(session, me)


@router.post("/profile/update")
def update_profile(
    body: UpdateProfileRequest,
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
):
    me = current_user(session, principal)
    user = account_service.update_profile(
        session,
        me,
        name=body.name,
        phone=body.phone,
        receive_match_notifications=body.receive_match_notifications,
    )
    return {"success": True, "profile": account_service.profile_info(session, user)}


@router.delete("/profile/delete")
def delete_account(
    response: Response,
    principal: Principal = Depends(get_principal),
    session: Session = Depends(get_session),
):
    """Remove the account with its availability and team matches, and end the session."""
    me = current_user(session, principal)
    account_service.delete_account(session, me)
    response.delete_cookie(SESSION_COOKIE)
    return {"success": True, "message": "Account deleted"}
