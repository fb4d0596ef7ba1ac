"""
Registration, email verification, login/logout and password reset.

Login issues a JWT that is returned in the body and set as an http-only
cookie; either one authenticates later requests.
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response
from sqlmodel import Session

from ladder.database import get_session
from ladder.services import account_service
from ladder.services.auth_service import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    SESSION_COOKIE,
    create_access_token,
)
from ladder.services.notifications import EMAIL, Notifier, get_notifier
from ladder.utils.clock import get_now
from ladder.utils.schema import CamelModel

logger = logging.getLogger(__name__)

router = APIRouter()


class NotificationPreferences(CamelModel):
    receive_updates: bool = True
    receive_match_notifications: bool = True
    receive_marketing: bool = False


class RegisterRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    ladder_id: Optional[str] = None
    notification_preferences: Optional[NotificationPreferences] = None


class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ForgotPasswordRequest(CamelModel):
    email: Optional[str] = None
    method: str = EMAIL


class ResetPasswordRequest(CamelModel):
    email: Optional[str] = None
    otp_code: Optional[str] = None
    new_password: Optional[str] = None


@router.post("/auth/register")
def register(
    body: RegisterRequest,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
    now: datetime = Depends(get_now),
):
    prefs = body.notification_preferences or NotificationPreferences()
    user, event = account_service.register(
        session,
        body.email,
        body.password,
        now,
        name=body.name,
        phone=body.phone,
        ladder_id=body.ladder_id,
        receive_updates=prefs.receive_updates,
        receive_match_notifications=prefs.receive_match_notifications,
        receive_marketing=prefs.receive_marketing,
    )
    background_tasks.add_task(notifier.dispatch, event)
    return {
        "ok": True,
        "message": "Registration successful. Please check your email to verify your account.",
        "user": {"id": user.id, "email": user.email, "ladderId": user.ladder_id},
    }


@router.get("/auth/verify-email")
def verify_email(
    token: Optional[str] = Query(None),
    session: Session = Depends(get_session),
    now: datetime = Depends(get_now),
):
    user = account_service.verify_email(session, token, now)
    return {"success": True, "message": "Email verified successfully", "email": user.email}


@router.post("/auth/login")
def login(
    body: LoginRequest,
    response: Response,
    session: Session = Depends(get_session),
):
    user = account_service.authenticate(session, body.email, body.password)
    token = create_access_token(user)
    response.set_cookie(
        SESSION_COOKIE,
        token,
        httponly=True,
        samesite="lax",
        max_age=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    logger.info(f"User {user.id} logged in")
    return {
        "ok": True,
        "token": token,
        "user": {"id": user.id, "email": user.email, "name": user.name},
    }


@router.post("/auth/logout")
def logout(response: Response):
    response.delete_cookie(SESSION_COOKIE)
    return {"ok": True}


@router.post("/auth/forgot-password")
def forgot_password(
    body: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
    now: datetime = Depends(get_now),
):
    message, event = account_service.forgot_password(session, body.email, body.method, now)
    if event is not None:
        background_tasks.add_task(notifier.dispatch, event)
    return {"success": True, "message": message}


@router.post("/auth/reset-password")
def reset_password(
    body: ResetPasswordRequest,
    session: Session = Depends(get_session),
    now: datetime = Depends(get_now),
):
    account_service.reset_password(session, body.email, body.otp_code, body.new_password, now)
    return {"success": True, "message": "Password reset successfully. You can now log in."}
