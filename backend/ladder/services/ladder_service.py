"""Ladder membership, switching, match format and standings."""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import delete, or_
from sqlmodel import Session, select

from ladder.database import transaction
from ladder.errors import BadRequestError, NotFoundError
from ladder.models.ladder import DEFAULT_MATCH_FORMAT, Ladder
from ladder.models.match import Match
from ladder.models.user import User
from ladder.services import availability_service
from ladder.services.score_parser import reshape_detailed_score
from ladder.services.standings import ladder_standings
from ladder.services.team_identity import build_teams, team_ids_touching

logger = logging.getLogger(__name__)

WINNER_BY = ("sets", "games")


def active_ladders(session: Session) -> List[Ladder]:
    return list(
        session.exec(select(Ladder).where(Ladder.is_active == True).order_by(Ladder.number)).all()  # noqa: E712
    )


def default_ladder(session: Session) -> Optional[Ladder]:
    """Highest-numbered active ladder; new players start at the bottom."""
    return session.exec(
        select(Ladder).where(Ladder.is_active == True).order_by(Ladder.number.desc())  # noqa: E712
    ).first()


def get_ladder(session: Session, ladder_id: str) -> Ladder:
    ladder = session.get(Ladder, ladder_id)
    if ladder is None:
        raise NotFoundError("Ladder not found")
    return ladder


def match_format(ladder: Ladder) -> dict:
    return {**DEFAULT_MATCH_FORMAT, **(ladder.match_format or {})}


def with_partner(session: Session, user: User) -> List[User]:
    users = [user]
    if user.partner_id:
        partner = session.get(User, user.partner_id)
        if partner is not None:
            users.append(partner)
    return users


def delete_team_matches(session: Session, users: Iterable[User]) -> int:
    """Delete every match referencing the solo or doubles team of these users.

    Caller owns the transaction.
    """
    team_ids: List[str] = []
    for user in users:
        for tid in team_ids_touching(user):
            if tid not in team_ids:
                team_ids.append(tid)
    if not team_ids:
        return 0
    result = session.execute(
        delete(Match).where(or_(Match.team1_id.in_(team_ids), Match.team2_id.in_(team_ids)))  # type: ignore
    )
    return result.rowcount or 0


def next_free_number(session: Session) -> int:
    number = 1
    for taken in session.exec(select(Ladder.number).order_by(Ladder.number)).all():
        if taken == number:
            number += 1
        elif taken > number:
            break
    return number


def create_ladder(session: Session, user: User, name: Optional[str], end_date: datetime) -> Ladder:
    """Create a ladder with the lowest free number and move the caller (and partner) into it.

    As with a switch, the movers' matches and availability are deleted.
    """
    if not name or not name.strip():
        raise BadRequestError("name and endDate required")

    with transaction(session):
        ladder = Ladder(name=name.strip(), number=next_free_number(session), end_date=end_date, is_active=True)
        session.add(ladder)
        session.flush()
        movers = with_partner(session, user)
        delete_team_matches(session, movers)
        availability_service.delete_for_users(session, [m.id for m in movers])
        for member in movers:
            member.ladder_id = ladder.id
            session.add(member)

    session.refresh(ladder)
    logger.info(f"Ladder {ladder.number} '{ladder.name}' created by {user.id}")
    return ladder


def switch_ladder(session: Session, user: User, new_ladder_id: Optional[str]) -> dict:
    """Move the caller and partner to another ladder, wiping their matches and availability."""
    ladder = session.get(Ladder, new_ladder_id) if new_ladder_id else None
    if ladder is None or not ladder.is_active:
        raise BadRequestError("Invalid or inactive ladder")

    if user.ladder_id == ladder.id:
        return {"success": True, "message": "Already in this ladder", "movedUsers": 0}

    movers = with_partner(session, user)
    with transaction(session):
        removed_matches = delete_team_matches(session, movers)
        availability_service.delete_for_users(session, [m.id for m in movers])
        for member in movers:
            member.ladder_id = ladder.id
            session.add(member)

    logger.info(
        f"User {user.id} switched to ladder {ladder.number} with {len(movers) - 1} partner(s); "
        f"{removed_matches} match(es) removed"
    )
    return {
        "success": True,
        "message": f"Successfully switched to {ladder.name}. All previous data cleared.",
        "movedUsers": len(movers),
    }


def validate_match_format(fmt: dict) -> dict:
    sets = fmt.get("sets")
    games = fmt.get("gamesPerSet")
    winner_by = fmt.get("winnerBy", "sets")
    if not isinstance(sets, int) or sets < 1:
        raise BadRequestError("sets must be a positive integer")
    if not isinstance(games, int) or games < 1:
        raise BadRequestError("gamesPerSet must be a positive integer")
    if winner_by not in WINNER_BY:
        raise BadRequestError("winnerBy must be 'sets' or 'games'")
    return {"sets": sets, "gamesPerSet": games, "winnerBy": winner_by}


def update_match_format(session: Session, ladder_id: Optional[str], new_format: Optional[dict]) -> dict:
    """Store a new format and reshape existing detailed scores to its set count."""
    if not ladder_id or not new_format:
        raise BadRequestError("Missing required fields")
    fmt = validate_match_format(new_format)
    ladder = get_ladder(session, ladder_id)

    matches = session.exec(select(Match).where(Match.ladder_id == ladder.id)).all()
    reshaped = 0
    with transaction(session):
        ladder.match_format = fmt
        session.add(ladder)
        for match in matches:
            details = (match.team1_detailed_score or "", match.team2_detailed_score or "")
            if "," not in details[0] and "," not in details[1]:
                continue
            match.team1_detailed_score = reshape_detailed_score(details[0], fmt["sets"])
            match.team2_detailed_score = reshape_detailed_score(details[1], fmt["sets"])
            session.add(match)
            reshaped += 1

    session.refresh(ladder)
    return {"ladder": ladder, "updatedMatches": reshaped}


def standings_for_ladder(session: Session, ladder: Ladder, ladder_numbers: List[int]) -> dict:
    members = session.exec(select(User).where(User.ladder_id == ladder.id).order_by(User.created_at)).all()
    teams = build_teams(members)
    matches = session.exec(
        select(Match).where(Match.ladder_id == ladder.id).where(Match.completed == True)  # noqa: E712
    ).all()
    names: Dict[str, str] = {team.id: team.name for team in teams}
    fmt = match_format(ladder)
    return {
        "id": ladder.id,
        "name": ladder.name,
        "number": ladder.number,
        "endDate": ladder.end_date,
        "matchFormat": fmt,
        "standings": ladder_standings(
            [team.id for team in teams],
            list(matches),
            ladder.number,
            ladder_numbers,
            winner_by=fmt["winnerBy"],
            names=names,
        ),
    }


def all_standings(session: Session) -> List[dict]:
    ladders = active_ladders(session)
    numbers = [ladder.number for ladder in ladders]
    return [standings_for_ladder(session, ladder, numbers) for ladder in ladders]
