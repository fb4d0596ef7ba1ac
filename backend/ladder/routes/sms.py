"""SMS reminder opt-in, reached from the link in a match confirmation email.

These endpoints take the user and match ids from the link rather than a session.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from ladder.database import get_session
from ladder.services import account_service
from ladder.utils.schema import CamelModel

logger = logging.getLogger(__name__)

router = APIRouter()


class SmsOptInRequest(CamelModel):
    user_id: Optional[str] = None
    match_id: Optional[str] = None
    phone: Optional[str] = None


@router.get("/sms/opt-in")
def sms_opt_in_status(
    user_id: Optional[str] = Query(None, alias="userId"),
    match_id: Optional[str] = Query(None, alias="matchId"),
    session: Session = Depends(get_session),
):
    return account_service.sms_opt_in_status(session, user_id, match_id)


@router.post("/sms/opt-in")
def sms_opt_in(
    body: SmsOptInRequest,
    session: Session = Depends(get_session),
):
    user = account_service.sms_opt_in(session, body.user_id, body.match_id, body.phone)
    return {
        "success": True,
        "message": "SMS reminders enabled. You'll get a text 1 hour before your matches.",
        "phone": user.phone,
    }
