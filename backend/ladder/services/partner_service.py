"""Partner linking. A partner link is always reciprocal."""

import logging
from typing import Optional

from sqlmodel import Session, select

from ladder.database import transaction
from ladder.errors import BadRequestError
from ladder.models.ladder import Ladder
from ladder.models.user import User
from ladder.services import availability_service
from ladder.services.ladder_service import delete_team_matches

logger = logging.getLogger(__name__)


def _release_previous_partner(session: Session, user: User, keep_id: str) -> None:
    """Clear the back-link of a partner ``user`` is leaving."""
    if user.partner_id and user.partner_id != keep_id:
        old = session.get(User, user.partner_id)
        if old is not None and old.partner_id == user.id:
            old.partner_id = None
            session.add(old)


def link_partner(session: Session, me: User, partner_email: Optional[str]) -> dict:
    if not partner_email or not partner_email.strip():
        raise BadRequestError("partnerEmail required")
    email = partner_email.strip().lower()

    them = session.exec(select(User).where(User.email == email)).first()
    if them is None:
        with transaction(session):
            _release_previous_partner(session, me, keep_id="")
            me.partner_id = None
            session.add(me)
        return {
            "ok": True,
            "message": f'Partner "{email}" will be linked when they register',
            "isPlaceholder": True,
            "placeholderEmail": email,
        }

    if them.id == me.id:
        raise BadRequestError("cannot partner yourself")

    switch_ladder = bool(them.ladder_id and them.ladder_id != me.ladder_id)
    with transaction(session):
        if switch_ladder:
            delete_team_matches(session, [me])
            availability_service.delete_for_users(session, [me.id])
            me.ladder_id = them.ladder_id
        _release_previous_partner(session, me, keep_id=them.id)
        _release_previous_partner(session, them, keep_id=me.id)
        me.partner_id = them.id
        them.partner_id = me.id
        session.add(me)
        session.add(them)

    message = "Partner linked successfully!"
    if switch_ladder:
        ladder = session.get(Ladder, them.ladder_id)
        message += f" You've been moved to {ladder.name if ladder else 'their ladder'}."
    logger.info(f"Users {me.id} and {them.id} linked as partners (ladder switch: {switch_ladder})")
    return {"ok": True, "message": message, "ladderSwitched": switch_ladder}


def unlink_partner(session: Session, me: User) -> dict:
    if not me.partner_id:
        raise BadRequestError("No partner to unlink")

    partner = session.get(User, me.partner_id)
    with transaction(session):
        if partner is not None and partner.partner_id == me.id:
            partner.partner_id = None
            session.add(partner)
        me.partner_id = None
        session.add(me)

    logger.info(f"User {me.id} unlinked from partner")
    return {"ok": True, "message": "Partner unlinked"}


def partner_info(session: Session, me: User) -> dict:
    partner = session.get(User, me.partner_id) if me.partner_id else None
    if partner is None:
        return {"partner": None}
    return {
        "partner": {
            "id": partner.id,
            "name": partner.name,
            "email": partner.email,
            "phone": partner.phone,
        }
    }
