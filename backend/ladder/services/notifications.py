"""
Outbound notifications.

Handlers build a ``NotificationEvent`` inside the request (recipients are
resolved while the session is open) and hand it to ``Notifier.dispatch`` via
FastAPI BackgroundTasks. ``notify`` never raises: it returns a
``NotifyResult`` so a caller can await, log or ignore it. Delivery failures
never roll back the operation that triggered them.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from sqlmodel import Session, select

from ladder.database import engine
from ladder.models.sms_log import SmsLog
from ladder.models.user import User
from ladder.services import email_service
from ladder.services.team_identity import member_ids, team_display_name
from ladder.services.twilio_service import format_e164, get_twilio_service, member_phone_numbers

logger = logging.getLogger(__name__)

MATCH_CONFIRMED = "match_confirmed"
MATCH_CANCELLED = "match_cancelled"
VERIFY_EMAIL = "verify_email"
PASSWORD_RESET_OTP = "password_reset_otp"
MATCH_REMINDER = "match_reminder"

EVENT_KINDS = (MATCH_CONFIRMED, MATCH_CANCELLED, VERIFY_EMAIL, PASSWORD_RESET_OTP, MATCH_REMINDER)

EMAIL = "email"
SMS = "sms"


@dataclass
class Recipient:
    user_id: str
    email: str
    name: str
    phone: Optional[str] = None
    team_name: str = ""
    opponents: str = ""

    @classmethod
    def from_user(cls, user: User, team_name: str = "", opponents: str = "") -> "Recipient":
        return cls(
            user_id=user.id,
            email=user.email,
            name=user.name or user.email,
            phone=user.phone,
            team_name=team_name,
            opponents=opponents,
        )


@dataclass
class NotificationEvent:
    kind: str
    recipients: List[Recipient]
    context: Dict[str, Any] = field(default_factory=dict)
    channel: str = EMAIL

    def __post_init__(self):
        if self.kind not in EVENT_KINDS:
            raise ValueError(f"Unknown notification kind: {self.kind}")


@dataclass
class NotifyResult:
    ok: bool
    delivered: int = 0
    errors: List[str] = field(default_factory=list)


def _team_members(session: Session, team: str) -> List[User]:
    ids = member_ids(team)
    users = session.exec(select(User).where(User.id.in_(ids))).all()  # type: ignore
    order = {uid: i for i, uid in enumerate(ids)}
    return sorted(users, key=lambda u: order[u.id])


def build_match_event(session: Session, match, kind: str, reason: Optional[str] = None) -> NotificationEvent:
    """Resolve both teams and address members who opted in to match emails."""
    team1 = _team_members(session, match.team1_id)
    team2 = _team_members(session, match.team2_id)
    team1_name = team_display_name(team1)
    team2_name = team_display_name(team2)

    recipients = [
        Recipient.from_user(u, team1_name, team2_name) for u in team1 if u.receive_match_notifications
    ] + [
        Recipient.from_user(u, team2_name, team1_name) for u in team2 if u.receive_match_notifications
    ]
    return NotificationEvent(
        kind=kind,
        recipients=recipients,
        context={
            "match_id": match.id,
            "start_at": match.start_at,
            "team1_name": team1_name,
            "team2_name": team2_name,
            "reason": reason,
        },
    )


def _default_session_factory() -> Session:
    return Session(engine)


class Notifier:
    """Delivers NotificationEvents by email (resend) or SMS (twilio)."""

    def __init__(
        self,
        email=None,
        sms=None,
        session_factory: Optional[Callable[[], Session]] = None,
    ):
        self._email = email
        self._sms = sms
        self.session_factory = session_factory or _default_session_factory

    @property
    def email(self):
        if self._email is None:
            self._email = email_service.get_email_service()
        return self._email

    @property
    def sms(self):
        if self._sms is None:
            self._sms = get_twilio_service()
        return self._sms

    def notify(self, event: NotificationEvent) -> NotifyResult:
        result = NotifyResult(ok=True)
        for recipient in event.recipients:
            try:
                if event.channel == SMS:
                    outcome = self._send_sms(event, recipient)
                else:
                    subject, html = self._render_email(event, recipient)
                    outcome = self.email.send(recipient.email, subject, html)
            except Exception as e:
                logger.exception(f"Notification {event.kind} to {recipient.user_id} failed")
                outcome = {"status": "failed", "error": str(e)}

            if outcome.get("status") == "failed":
                result.ok = False
                result.errors.append(f"{recipient.user_id}: {outcome.get('error')}")
            else:
                result.delivered += 1
        return result

    def dispatch(self, event: NotificationEvent) -> None:
        """Fire-and-forget entry point used from BackgroundTasks."""
        result = self.notify(event)
        if result.ok:
            logger.info(f"Notification {event.kind} delivered to {result.delivered} recipient(s)")
        else:
            logger.error(f"Notification {event.kind} had failures: {'; '.join(result.errors)}")

    def _render_email(self, event: NotificationEvent, r: Recipient):
        ctx = event.context
        if event.kind == MATCH_CONFIRMED:
            return email_service.match_confirmed_email(
                r.name, r.user_id, bool(r.phone), r.team_name, r.opponents, ctx["match_id"], ctx["start_at"]
            )
        if event.kind == MATCH_CANCELLED:
            return email_service.match_cancelled_email(
                r.name, r.team_name, r.opponents, ctx["start_at"], ctx.get("reason")
            )
        if event.kind == VERIFY_EMAIL:
            return email_service.verification_email(r.name, ctx["token"])
        if event.kind == PASSWORD_RESET_OTP:
            return email_service.password_reset_email(r.name, ctx["otp_code"])
        raise ValueError(f"No email template for {event.kind}")

    def _sms_body(self, event: NotificationEvent, r: Recipient) -> str:
        ctx = event.context
        if event.kind == PASSWORD_RESET_OTP:
            return f"Your Tennis Ladder password reset code is {ctx['otp_code']}. It expires in 10 minutes."
        if event.kind == MATCH_REMINDER:
            return (
                f"🎾 Reminder: {r.team_name} vs {r.opponents} at "
                f"{ctx['start_at']:%H:%M} UTC today. Good luck!"
            )
        raise ValueError(f"No SMS template for {event.kind}")

    def _send_sms(self, event: NotificationEvent, r: Recipient) -> dict:
        if not r.phone:
            return {"status": "failed", "error": "no phone on file"}
        phone = format_e164(r.phone)
        body = self._sms_body(event, r)
        outcome = self.sms.send_sms(phone, body)

        with self.session_factory() as session:
            session.add(
                SmsLog(
                    user_id=r.user_id,
                    match_id=event.context.get("match_id"),
                    phone_number=phone,
                    message_body=body,
                    message_type=event.kind,
                    twilio_sid=outcome.get("sid"),
                    status=outcome.get("status", "failed"),
                    error_message=outcome.get("error"),
                    trigger=event.context.get("trigger", "auto"),
                )
            )
            session.commit()
        return outcome


_notifier: Optional[Notifier] = None


def get_notifier() -> Notifier:
    """FastAPI dependency returning the process-wide Notifier."""
    global _notifier
    if _notifier is None:
        _notifier = Notifier()
    return _notifier


def build_reminder_event(session: Session, match) -> NotificationEvent:
    """SMS reminder to every member of both teams with a usable phone on file."""
    team1 = _team_members(session, match.team1_id)
    team2 = _team_members(session, match.team2_id)
    team1_name = team_display_name(team1)
    team2_name = team_display_name(team2)
    recipients = [
        Recipient.from_user(u, team1_name, team2_name) for u in team1 if member_phone_numbers([u])
    ] + [
        Recipient.from_user(u, team2_name, team1_name) for u in team2 if member_phone_numbers([u])
    ]
    return NotificationEvent(
        kind=MATCH_REMINDER,
        recipients=recipients,
        context={"match_id": match.id, "start_at": match.start_at, "trigger": "auto"},
        channel=SMS,
    )
