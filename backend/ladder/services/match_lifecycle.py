"""
Match lifecycle.

    (none) --confirm--> confirmed --record_scores--> completed
                           |  ^
                           |  +-- reschedule (start_at only)
                           +--cancel--> (row deleted)

Only one confirmed, non-completed match may exist per (team1, team2, ladder).
The check is a read before the insert, not a constraint.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from sqlmodel import Session, select

from ladder.database import transaction
from ladder.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from ladder.models.ladder import Ladder
from ladder.models.match import Match
from ladder.models.user import User
from ladder.services.team_identity import canonical_pair, member_ids, team_id
from ladder.utils.time_slots import parse_iso, parse_slot, slot_key

logger = logging.getLogger(__name__)

REMINDER_WINDOW = timedelta(hours=1)


@dataclass
class ScoreEntry:
    match_id: str
    team1_score: int
    team2_score: int
    team1_detailed_score: Optional[str] = None
    team2_detailed_score: Optional[str] = None


@dataclass
class MatchSnapshot:
    id: str
    start_at: datetime
    team1_id: str
    team2_id: str


def is_member(user: User, match: Match) -> bool:
    return user.id in member_ids(match.team1_id) or user.id in member_ids(match.team2_id)


def get_match(session: Session, match_id: str) -> Match:
    match = session.get(Match, match_id)
    if match is None:
        raise NotFoundError("Match not found")
    return match


def _require_member(user: User, match: Match) -> None:
    if not is_member(user, match):
        raise ForbiddenError("You can only modify matches you are part of")


def find_open_match(
    session: Session, team1_id: str, team2_id: str, ladder_id: Optional[str]
) -> Optional[Match]:
    return session.exec(
        select(Match)
        .where(Match.team1_id == team1_id)
        .where(Match.team2_id == team2_id)
        .where(Match.ladder_id == ladder_id)
        .where(Match.confirmed == True)  # noqa: E712
        .where(Match.completed == False)  # noqa: E712
    ).first()


def confirm(
    session: Session, user: User, slot_value: Optional[str], opponent_team_id: Optional[str], now: datetime
) -> Match:
    if not slot_value or not opponent_team_id:
        raise BadRequestError("slotKey and opponentTeamId required")

    my_team = team_id(user)
    opponent_members = member_ids(opponent_team_id)
    if opponent_team_id == my_team or set(opponent_members) & set(member_ids(my_team)):
        raise BadRequestError("Cannot schedule a match against your own team")

    start_at = parse_slot(slot_value)
    if start_at < now:
        raise BadRequestError("Cannot confirm a match in the past")
    ladder = session.get(Ladder, user.ladder_id) if user.ladder_id else None
    if ladder is not None and start_at >= ladder.end_date:
        raise BadRequestError("Slot is after the ladder end date")

    # Every member must exist and resolve to exactly this team in the caller's ladder
    for member_id in opponent_members:
        member = session.get(User, member_id)
        if member is None or team_id(member) != opponent_team_id:
            raise NotFoundError("Opponent not found")
        if member.ladder_id != user.ladder_id:
            raise BadRequestError("Opponent is not in your ladder")

    team1_id, team2_id = canonical_pair(my_team, opponent_team_id)
    existing = find_open_match(session, team1_id, team2_id, user.ladder_id)
    if existing is not None:
        raise ConflictError(
            "You already have a match with this team. Reschedule it instead.",
            extra={"existingMatch": {"id": existing.id, "startAt": slot_key(existing.start_at)}},
        )

    match = Match(
        start_at=start_at,
        team1_id=team1_id,
        team2_id=team2_id,
        ladder_id=user.ladder_id,
        confirmed=True,
        completed=False,
    )
    session.add(match)
    session.commit()
    session.refresh(match)
    logger.info(f"Match {match.id} confirmed: {team1_id} vs {team2_id} at {slot_key(start_at)}")
    return match


def reschedule(session: Session, user: User, match_id: Optional[str], new_time: Optional[str]) -> Match:
    """Move a match. The new slot is not re-checked against availability."""
    if not match_id or not new_time:
        raise BadRequestError("matchId and newTime required")
    match = get_match(session, match_id)
    _require_member(user, match)

    old = match.start_at
    match.start_at = parse_iso(new_time, "newTime")
    match.updated_at = datetime.utcnow()
    session.add(match)
    session.commit()
    session.refresh(match)
    logger.info(f"Match {match.id} rescheduled by {user.id}: {slot_key(old)} -> {slot_key(match.start_at)}")
    return match


def cancel(session: Session, user: User, match_id: Optional[str]) -> MatchSnapshot:
    """Delete the match row. Returns what the cancellation notice needs."""
    if not match_id:
        raise BadRequestError("matchId required")
    match = get_match(session, match_id)
    _require_member(user, match)

    snapshot = MatchSnapshot(
        id=match.id, start_at=match.start_at, team1_id=match.team1_id, team2_id=match.team2_id
    )
    session.delete(match)
    session.commit()
    logger.info(f"Match {match_id} cancelled by {user.id}")
    return snapshot


def record_scores(session: Session, user: User, entries: Sequence[ScoreEntry]) -> List[Match]:
    """Apply every score entry in one transaction and mark the matches completed.

    Any signed-in player may enter scores.
    """
    if not entries:
        raise BadRequestError("scores required")

    updated: List[Match] = []
    with transaction(session):
        for entry in entries:
            if entry.team1_score is None or entry.team2_score is None:
                raise BadRequestError("team1Score and team2Score required")
            if entry.team1_score < 0 or entry.team2_score < 0:
                raise BadRequestError("Scores cannot be negative")
            match = get_match(session, entry.match_id)
            if not is_member(user, match):
                logger.warning(f"User {user.id} entered scores for match {match.id} they are not part of")

            match.team1_score = entry.team1_score
            match.team2_score = entry.team2_score
            match.team1_detailed_score = entry.team1_detailed_score
            match.team2_detailed_score = entry.team2_detailed_score
            match.completed = True
            match.updated_at = datetime.utcnow()
            session.add(match)
            updated.append(match)

    for match in updated:
        session.refresh(match)
    return updated


def week_matches(
    session: Session, week_start: datetime, week_end: datetime, ladder_id: Optional[str] = None
) -> List[Match]:
    statement = (
        select(Match)
        .where(Match.confirmed == True)  # noqa: E712
        .where(Match.start_at >= week_start)
        .where(Match.start_at < week_end)
    )
    if ladder_id is not None:
        statement = statement.where(Match.ladder_id == ladder_id)
    return list(session.exec(statement.order_by(Match.start_at)).all())


def open_matches(session: Session, ladder_id: Optional[str]) -> List[Match]:
    """Confirmed, not yet completed matches of a ladder."""
    return list(
        session.exec(
            select(Match)
            .where(Match.ladder_id == ladder_id)
            .where(Match.confirmed == True)  # noqa: E712
            .where(Match.completed == False)  # noqa: E712
        ).all()
    )


def ladder_matches(session: Session, ladder_id: Optional[str]) -> List[Match]:
    """Confirmed matches of a ladder, newest first."""
    statement = select(Match).where(Match.confirmed == True)  # noqa: E712
    if ladder_id is not None:
        statement = statement.where(Match.ladder_id == ladder_id)
    return list(session.exec(statement.order_by(Match.start_at.desc())).all())  # type: ignore


def due_for_reminder(session: Session, now: datetime, window: timedelta = REMINDER_WINDOW) -> List[Match]:
    """Confirmed, uncompleted matches starting within ``window`` that have had no reminder yet."""
    return list(
        session.exec(
            select(Match)
            .where(Match.confirmed == True)  # noqa: E712
            .where(Match.completed == False)  # noqa: E712
            .where(Match.reminder_sent_at == None)  # noqa: E711
            .where(Match.start_at >= now)
            .where(Match.start_at <= now + window)
            .order_by(Match.start_at)
        ).all()
    )


def mark_reminded(session: Session, match: Match, now: datetime) -> None:
    match.reminder_sent_at = now
    session.add(match)
    session.commit()


def recent_matches(session: Session, since: datetime, ladder_id: Optional[str] = None, limit: int = 15) -> List[Match]:
    """Matches created since ``since``, newest first."""
    statement = select(Match).where(Match.created_at >= since)
    if ladder_id is not None:
        statement = statement.where(Match.ladder_id == ladder_id)
    return list(session.exec(statement.order_by(Match.created_at.desc()).limit(limit)).all())  # type: ignore
