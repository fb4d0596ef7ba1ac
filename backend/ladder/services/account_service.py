"""
Accounts: registration, email verification, login, password reset, profile.

Operations that send something return the NotificationEvent for the route to
schedule; nothing here talks to email or SMS directly.
"""
import logging
import os
import secrets
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import delete, or_, update
from sqlmodel import Session, select

from ladder.database import transaction
from ladder.errors import BadRequestError, ForbiddenError, NotFoundError, UnauthorizedError
from ladder.models.availability import Availability
from ladder.models.ladder import Ladder
from ladder.models.match import Match
from ladder.models.sms_log import SmsLog
from ladder.models.user import User
from ladder.services.auth_service import get_password_hash, verify_password
from ladder.services.ladder_service import default_ladder, delete_team_matches
from ladder.services.notifications import (
    EMAIL,
    PASSWORD_RESET_OTP,
    SMS,
    VERIFY_EMAIL,
    NotificationEvent,
    Recipient,
)
from ladder.services.team_identity import member_ids
from ladder.services.twilio_service import format_e164

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
VERIFICATION_TTL = timedelta(hours=24)
OTP_TTL = timedelta(minutes=10)


def require_email_verification() -> bool:
    return os.getenv("REQUIRE_EMAIL_VERIFICATION", "true").lower() in ("true", "1", "yes")


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """E.164 phone, None for blank; 400 when it cannot be parsed."""
    if phone is None or not phone.strip() or phone.strip() == "+44":
        return None
    try:
        return format_e164(phone)
    except ValueError as e:
        raise BadRequestError(str(e))


def find_by_email(session: Session, email: str) -> Optional[User]:
    return session.exec(select(User).where(User.email == normalize_email(email))).first()


def register(
    session: Session,
    email: Optional[str],
    password: Optional[str],
    now: datetime,
    name: Optional[str] = None,
    phone: Optional[str] = None,
    ladder_id: Optional[str] = None,
    receive_updates: bool = True,
    receive_match_notifications: bool = True,
    receive_marketing: bool = False,
) -> Tuple[User, NotificationEvent]:
    email = normalize_email(email)
    if not email or not password:
        raise BadRequestError("Email and password are required")
    if "@" not in email:
        raise BadRequestError("Invalid email address")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise BadRequestError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if find_by_email(session, email) is not None:
        raise BadRequestError("User already exists")

    ladder = session.get(Ladder, ladder_id) if ladder_id else None
    if ladder_id and (ladder is None or not ladder.is_active):
        raise BadRequestError("Invalid or inactive ladder")
    if ladder is None:
        ladder = default_ladder(session)

    user = User(
        email=email,
        name=(name or "").strip() or None,
        phone=normalize_phone(phone),
        password_hash=get_password_hash(password),
        ladder_id=ladder.id if ladder else None,
        email_verified=False,
        email_verification_token=secrets.token_urlsafe(32),
        email_verification_expiry=now + VERIFICATION_TTL,
        receive_updates=receive_updates,
        receive_match_notifications=receive_match_notifications,
        receive_marketing=receive_marketing,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info(f"Registered user {user.id} in ladder {user.ladder_id}")

    event = NotificationEvent(
        kind=VERIFY_EMAIL,
        recipients=[Recipient.from_user(user)],
        context={"token": user.email_verification_token},
    )
    return user, event


def verify_email(session: Session, token: Optional[str], now: datetime) -> User:
    if not token:
        raise BadRequestError("Verification token required")
    user = session.exec(select(User).where(User.email_verification_token == token)).first()
    if user is None:
        raise BadRequestError("Invalid verification token")
    if user.email_verification_expiry is not None and user.email_verification_expiry < now:
        raise BadRequestError("Verification token has expired")

    user.email_verified = True
    user.email_verification_token = None
    user.email_verification_expiry = None
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def authenticate(session: Session, email: Optional[str], password: Optional[str]) -> User:
    if not email or not password:
        raise BadRequestError("Email and password are required")
    user = find_by_email(session, email)
    if user is None or not verify_password(password, user.password_hash):
        raise UnauthorizedError("Invalid email or password")
    if require_email_verification() and not user.email_verified:
        raise ForbiddenError("Please verify your email before logging in")
    return user


def forgot_password(
    session: Session, email: Optional[str], method: str, now: datetime
) -> Tuple[str, Optional[NotificationEvent]]:
    """Issue a 6-digit OTP. The message never reveals whether the account exists."""
    if not email:
        raise BadRequestError("Email is required")
    if method not in (EMAIL, SMS):
        raise BadRequestError("method must be 'email' or 'sms'")

    user = find_by_email(session, email)
    if user is None:
        return f"If the email exists, an OTP will be sent to your {method}.", None
    if method == SMS and not user.phone:
        raise BadRequestError("No phone number on file. Please use email reset or contact support.")

    user.otp_code = f"{secrets.randbelow(900000) + 100000}"
    user.otp_expiry = now + OTP_TTL
    session.add(user)
    session.commit()
    session.refresh(user)

    event = NotificationEvent(
        kind=PASSWORD_RESET_OTP,
        recipients=[Recipient.from_user(user)],
        context={"otp_code": user.otp_code, "trigger": "manual"},
        channel=method,
    )
    return f"OTP sent to your {method}. Enter it on the next page to reset your password.", event


def reset_password(
    session: Session, email: Optional[str], otp_code: Optional[str], new_password: Optional[str], now: datetime
) -> None:
    if not email or not otp_code or not new_password:
        raise BadRequestError("Email, OTP code and new password are required")
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise BadRequestError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    user = find_by_email(session, email)
    if user is None or not user.otp_code or user.otp_code != otp_code.strip():
        raise BadRequestError("Invalid or expired OTP")
    if user.otp_expiry is None or user.otp_expiry < now:
        raise BadRequestError("Invalid or expired OTP")

    user.password_hash = get_password_hash(new_password)
    user.otp_code = None
    user.otp_expiry = None
    session.add(user)
    session.commit()
    logger.info(f"Password reset for user {user.id}")


def profile_info(session: Session, user: User) -> dict:
    ladder = session.get(Ladder, user.ladder_id) if user.ladder_id else None
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "phone": user.phone,
        "emailVerified": user.email_verified,
        "notificationPreference": user.notification_preference,
        "receiveUpdates": user.receive_updates,
        "receiveMatchNotifications": user.receive_match_notifications,
        "receiveMarketing": user.receive_marketing,
        "partnerId": user.partner_id,
        "ladder": {"id": ladder.id, "name": ladder.name, "number": ladder.number} if ladder else None,
    }


def update_profile(
    session: Session,
    user: User,
    name: Optional[str] = None,
    phone: Optional[str] = None,
    receive_match_notifications: Optional[bool] = None,
) -> User:
    if name is not None:
        user.name = name.strip() or None
    if phone is not None:
        user.phone = normalize_phone(phone)
    if receive_match_notifications is not None:
        user.receive_match_notifications = receive_match_notifications
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def delete_account(session: Session, user: User) -> None:
    """Unlink, then remove the user's availability, matches and the user row."""
    user_id = user.id
    with transaction(session):
        back_links = session.exec(select(User).where(User.partner_id == user_id)).all()
        for other in back_links:
            other.partner_id = None
            session.add(other)

        session.execute(
            delete(Availability).where(
                or_(Availability.user_id == user_id, Availability.set_by_user_id == user_id)
            )
        )
        session.execute(update(SmsLog).where(SmsLog.user_id == user_id).values(user_id=None))
        delete_team_matches(session, [user])
        session.delete(user)

    logger.info(f"Deleted account {user_id}")


def unpartnered_users(session: Session, me: User) -> List[User]:
    return list(
        session.exec(
            select(User)
            .where(User.id != me.id)
            .where(User.partner_id == None)  # noqa: E711
            .order_by(User.email)
        ).all()
    )


def _opt_in_target(session: Session, user_id: Optional[str], match_id: Optional[str]) -> Tuple[User, Match]:
    if not user_id or not match_id:
        raise BadRequestError("Missing userId or matchId")
    user = session.get(User, user_id)
    match = session.get(Match, match_id)
    if user is None or match is None:
        raise NotFoundError("Invalid user or match")
    if user.id not in member_ids(match.team1_id) + member_ids(match.team2_id):
        raise ForbiddenError("User not part of this match")
    return user, match


def sms_opt_in_status(session: Session, user_id: Optional[str], match_id: Optional[str]) -> dict:
    """What the opt-in link from a confirmation email shows."""
    user, match = _opt_in_target(session, user_id, match_id)
    return {
        "userId": user.id,
        "name": user.name or user.email,
        "matchId": match.id,
        "hasPhone": bool(user.phone),
    }


def sms_opt_in(session: Session, user_id: Optional[str], match_id: Optional[str], phone: Optional[str]) -> User:
    user, _ = _opt_in_target(session, user_id, match_id)
    if not phone or not phone.strip():
        raise BadRequestError("Missing required fields")
    user.phone = normalize_phone(phone)
    if user.phone is None:
        raise BadRequestError("Invalid phone number format")
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info(f"User {user.id} opted in to SMS reminders")
    return user
