"""
Availability store operations.

Row provenance rules:
  set_by_user_id NULL or == user_id  -> self-set
  anything else                      -> set by partner (double click) or proxy

A user's own save replaces only their self-set rows. A proxy save never
deletes or overwrites a self-set row; see ``proxy_save``.
"""
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import delete, or_
from sqlmodel import Session, select

from ladder.database import transaction
from ladder.errors import NotFoundError
from ladder.models.availability import AVAILABLE, NOT_AVAILABLE, Availability
from ladder.models.user import User
from ladder.services.proxy_overlay import ProxyPayload, ProxyWritePlan, plan_proxy_write
from ladder.services.reconciliation import TeamAvailability
from ladder.services.slot_states import SlotBoard
from ladder.services.team_identity import TeamRoster
from ladder.utils.time_slots import WEEK, monday_start, slot_key

logger = logging.getLogger(__name__)


def week_rows(session: Session, user_id: str, week_start: datetime) -> List[Availability]:
    return list(
        session.exec(
            select(Availability)
            .where(Availability.user_id == user_id)
            .where(Availability.start_at >= week_start)
            .where(Availability.start_at < week_start + WEEK)
            .order_by(Availability.start_at)
        ).all()
    )


def rows_for_users(
    session: Session, user_ids: Iterable[str], week_start: datetime
) -> Dict[str, List[Availability]]:
    ids = list(dict.fromkeys(user_ids))
    by_user: Dict[str, List[Availability]] = {uid: [] for uid in ids}
    if not ids:
        return by_user
    rows = session.exec(
        select(Availability)
        .where(Availability.user_id.in_(ids))  # type: ignore
        .where(Availability.start_at >= week_start)
        .where(Availability.start_at < week_start + WEEK)
        .order_by(Availability.start_at)
    ).all()
    for row in rows:
        by_user[row.user_id].append(row)
    return by_user


def _get_user(session: Session, user_id: str) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError("user not found")
    return user


def get_week_view(session: Session, user: User, week_start: datetime) -> dict:
    """The caller's and their partner's rows for one week."""
    partner = session.get(User, user.partner_id) if user.partner_id else None
    mine = week_rows(session, user.id, week_start)
    theirs = week_rows(session, partner.id, week_start) if partner else []

    my_board = SlotBoard.from_rows(mine, user.id)
    return {
        "mySlots": my_board.available(),
        "myUnavailableSlots": my_board.unavailable(),
        "partnerSlots": [slot_key(r.start_at) for r in theirs if r.availability == AVAILABLE],
        "partnerUnavailableSlots": [
            slot_key(r.start_at) for r in theirs if r.availability == NOT_AVAILABLE
        ],
        "mySlotsSetBy": [r.set_by_user_id for r in mine],
        "partnerSlotsSetBy": [r.set_by_user_id for r in theirs],
        "partnerEmail": partner.email if partner else None,
        "myStates": {
            slot: {"state": entry.state.value, "setBy": entry.set_by}
            for slot, entry in my_board.items()
        },
    }


def replace_own_week(
    session: Session,
    user: User,
    week_start: datetime,
    available: Sequence[datetime],
    unavailable: Sequence[datetime] = (),
) -> int:
    """Replace the caller's self-set rows for the week.

    Partner/proxy rows survive unless the caller now sets the same slot
    themselves; self-set always wins.
    """
    available = list(dict.fromkeys(available))
    unavailable = [s for s in dict.fromkeys(unavailable) if s not in set(available)]
    now_self_set = available + unavailable

    with transaction(session):
        session.execute(
            delete(Availability)
            .where(Availability.user_id == user.id)
            .where(Availability.start_at >= week_start)
            .where(Availability.start_at < week_start + WEEK)
            .where(or_(Availability.set_by_user_id.is_(None), Availability.set_by_user_id == user.id))
        )
        if now_self_set:
            session.execute(
                delete(Availability)
                .where(Availability.user_id == user.id)
                .where(Availability.start_at.in_(now_self_set))  # type: ignore
            )
        for slot in available:
            session.add(_row(user.id, slot, AVAILABLE, None))
        for slot in unavailable:
            session.add(_row(user.id, slot, NOT_AVAILABLE, None))

    logger.info(
        f"User {user.id} saved week {slot_key(week_start)}: "
        f"{len(available)} available, {len(unavailable)} unavailable"
    )
    return len(now_self_set)


def proxy_save(
    session: Session, actor: User, target_id: str, week_start: datetime, payload: ProxyPayload
) -> ProxyWritePlan:
    """Flush a proxy overlay for ``target_id``; the target's self-set rows are left alone."""
    target = _get_user(session, target_id)
    existing = week_rows(session, target.id, week_start)
    plan = plan_proxy_write(existing, payload, target_id=target.id, actor_id=actor.id)
    tag = None if actor.id == target.id else actor.id

    with transaction(session):
        if plan.delete_slots:
            session.execute(
                delete(Availability)
                .where(Availability.user_id == target.id)
                .where(Availability.start_at.in_(plan.delete_slots))  # type: ignore
            )
        for slot, state in plan.inserts:
            session.add(_row(target.id, slot, state, tag))

    if plan.preserved:
        logger.info(
            f"Proxy save by {actor.id} for {target.id} kept {len(plan.preserved)} self-set slot(s)"
        )
    return plan


def takeover(
    session: Session,
    actor: User,
    target_id: str,
    week_start: datetime,
    available: Sequence[datetime] = (),
    unavailable: Sequence[datetime] = (),
    cleared: Sequence[datetime] = (),
) -> dict:
    """Overwrite slots outright, whoever set them. Used by owners reclaiming proxy-set slots."""
    payload = ProxyPayload(list(available), list(unavailable), list(cleared))
    payload.validate()
    target = _get_user(session, target_id)
    tag = None if actor.id == target.id else actor.id
    touched = payload.touched()

    with transaction(session):
        if touched:
            session.execute(
                delete(Availability)
                .where(Availability.user_id == target.id)
                .where(Availability.start_at.in_(touched))  # type: ignore
            )
        for slot in dict.fromkeys(payload.available):
            session.add(_row(target.id, slot, AVAILABLE, tag))
        for slot in dict.fromkeys(payload.unavailable):
            session.add(_row(target.id, slot, NOT_AVAILABLE, tag))

    return {
        "updated": len(set(payload.available)) + len(set(payload.unavailable)),
        "removed": len(set(payload.cleared)),
    }


def purge_past(session: Session, now: datetime) -> int:
    """Delete availability for slots that have already started."""
    result = session.execute(delete(Availability).where(Availability.start_at < now))
    session.commit()
    if result.rowcount:
        logger.debug(f"Purged {result.rowcount} past availability row(s)")
    return result.rowcount or 0


def delete_for_users(session: Session, user_ids: Iterable[str]) -> None:
    """Drop every row owned by these users. Caller owns the transaction."""
    ids = list(user_ids)
    if ids:
        session.execute(delete(Availability).where(Availability.user_id.in_(ids)))  # type: ignore


def _row(user_id: str, slot: datetime, state: str, set_by: Optional[str]) -> Availability:
    return Availability(
        user_id=user_id,
        start_at=slot,
        week_start=monday_start(slot),
        availability=state,
        set_by_user_id=set_by,
    )


def ladder_members(session: Session, ladder_id: Optional[str]) -> List[User]:
    statement = select(User).order_by(User.created_at, User.id)
    if ladder_id is not None:
        statement = statement.where(User.ladder_id == ladder_id)
    return list(session.exec(statement).all())


def team_availability(rosters: Sequence[TeamRoster], rows_by_user: Dict[str, List[Availability]]) -> List[TeamAvailability]:
    """Project team rosters onto the AVAILABLE slot keys of each distinct member."""
    teams = []
    for roster in rosters:
        members = {
            m.id: {slot_key(r.start_at) for r in rows_by_user.get(m.id, []) if r.availability == AVAILABLE}
            for m in roster.members
        }
        teams.append(TeamAvailability(team_id=roster.id, members=members, name=roster.name, color=roster.color))
    return teams
