"""Notifier delivery with fake email and SMS backends."""
from datetime import datetime

import pytest
from sqlmodel import Session, select

from ladder.models.match import Match
from ladder.models.sms_log import SmsLog
from ladder.services.email_service import EmailService, match_confirmed_email
from ladder.services.notifications import (
    MATCH_CONFIRMED,
    MATCH_REMINDER,
    PASSWORD_RESET_OTP,
    SMS,
    NotificationEvent,
    Notifier,
    Recipient,
    build_match_event,
    build_reminder_event,
)

START = datetime(2025, 6, 3, 18, 0)


class FakeEmail:
    def __init__(self, fail_for=()):
        self.sent = []
        self.fail_for = set(fail_for)

    def send(self, to, subject, html):
        if to in self.fail_for:
            return {"id": None, "status": "failed", "error": "rejected"}
        self.sent.append((to, subject, html))
        return {"id": "em_1", "status": "sent", "error": None}


class ExplodingEmail:
    def send(self, to, subject, html):
        raise RuntimeError("resend down")


class FakeSms:
    def __init__(self):
        self.sent = []

    def send_sms(self, to, body):
        self.sent.append((to, body))
        return {"sid": "SM123", "status": "queued", "error": None}


def _recipient(uid="u1", email="u1@example.com", phone=None):
    return Recipient(user_id=uid, email=email, name="Sam", phone=phone, team_name="Sam & Jo", opponents="Kim & Lee")


def _confirmed_event(*recipients):
    return NotificationEvent(
        kind=MATCH_CONFIRMED,
        recipients=list(recipients),
        context={"match_id": "abc123def456", "start_at": START, "team1_name": "x", "team2_name": "y"},
    )


def test_unknown_kind_rejected():
    with pytest.raises(ValueError):
        NotificationEvent(kind="birthday", recipients=[])


def test_match_confirmed_email_sent_to_each_recipient():
    email = FakeEmail()
    notifier = Notifier(email=email, sms=FakeSms())
    result = notifier.notify(_confirmed_event(_recipient(), _recipient("u2", "u2@example.com")))

    assert result.ok and result.delivered == 2
    assert [to for to, _, _ in email.sent] == ["u1@example.com", "u2@example.com"]
    subject = email.sent[0][1]
    assert "Sam & Jo vs Kim & Lee" in subject


def test_failure_is_reported_not_raised():
    notifier = Notifier(email=FakeEmail(fail_for={"u2@example.com"}), sms=FakeSms())
    result = notifier.notify(_confirmed_event(_recipient(), _recipient("u2", "u2@example.com")))
    assert not result.ok
    assert result.delivered == 1
    assert result.errors == ["u2: rejected"]


def test_exception_from_backend_is_caught():
    notifier = Notifier(email=ExplodingEmail(), sms=FakeSms())
    result = notifier.notify(_confirmed_event(_recipient()))
    assert not result.ok
    assert "resend down" in result.errors[0]
    notifier.dispatch(_confirmed_event(_recipient()))


def test_opt_in_link_only_without_phone():
    _, html_without = match_confirmed_email("Sam", "u1", False, "A", "B", "m1", START)
    _, html_with = match_confirmed_email("Sam", "u1", True, "A", "B", "m1", START)
    assert "/api/sms/opt-in?userId=u1&matchId=m1" in html_without
    assert "opt-in" not in html_with


def test_dry_run_email_service():
    service = EmailService(api_key="")
    assert service.dry_run
    assert service.send("a@example.com", "hi", "<p>hi</p>")["status"] == "dry_run"


def test_sms_is_logged(session: Session):
    sms = FakeSms()
    notifier = Notifier(email=FakeEmail(), sms=sms, session_factory=lambda: Session(session.get_bind()))
    event = NotificationEvent(
        kind=PASSWORD_RESET_OTP,
        recipients=[_recipient(uid=None, phone="07911 123456")],
        context={"otp_code": "123456", "trigger": "manual"},
        channel=SMS,
    )

    result = notifier.notify(event)

    assert result.ok
    assert sms.sent[0][0] == "+447911123456"
    assert "123456" in sms.sent[0][1]
    log = session.exec(select(SmsLog)).one()
    assert log.phone_number == "+447911123456"
    assert log.message_type == PASSWORD_RESET_OTP
    assert log.status == "queued"
    assert log.trigger == "manual"


def test_sms_without_phone_fails():
    notifier = Notifier(email=FakeEmail(), sms=FakeSms())
    event = NotificationEvent(
        kind=PASSWORD_RESET_OTP, recipients=[_recipient()], context={"otp_code": "1"}, channel=SMS
    )
    result = notifier.notify(event)
    assert not result.ok
    assert "no phone" in result.errors[0]


def test_match_event_respects_opt_out(session, ladder, make_user):
    a = make_user("a@example.com", ladder=ladder, name="Amy")
    b = make_user("b@example.com", ladder=ladder, name="Ben", receive_match_notifications=False)
    match = Match(start_at=START, team1_id=a.id, team2_id=b.id, ladder_id=ladder.id)
    session.add(match)
    session.commit()

    event = build_match_event(session, match, MATCH_CONFIRMED)

    assert [r.email for r in event.recipients] == ["a@example.com"]
    assert event.recipients[0].team_name == "Amy"
    assert event.recipients[0].opponents == "Ben"
    assert event.context["start_at"] == START


def test_reminder_event_targets_members_with_phones(session, ladder, make_user):
    a = make_user("a@example.com", ladder=ladder, phone="+447911123456")
    b = make_user("b@example.com", ladder=ladder)
    match = Match(start_at=START, team1_id=a.id, team2_id=b.id, ladder_id=ladder.id)
    session.add(match)
    session.commit()

    event = build_reminder_event(session, match)

    assert event.kind == MATCH_REMINDER
    assert event.channel == SMS
    assert [r.user_id for r in event.recipients] == [a.id]
