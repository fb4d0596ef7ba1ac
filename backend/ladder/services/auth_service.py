"""Password hashing, session tokens and the request Principal."""

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Request
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlmodel import Session, select

from ladder.errors import NotFoundError, UnauthorizedError
from ladder.models.user import User

logger = logging.getLogger(__name__)

SECRET_KEY = os.getenv("SECRET_KEY", "dev_secret_key_change_me")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7)))
SESSION_COOKIE = "ladder_session"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


@dataclass(frozen=True)
class Principal:
    """The authenticated caller, passed explicitly to every handler."""

    user_id: str
    email: str


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {"sub": user.email, "uid": user.id, "exp": expire}
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Principal:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise UnauthorizedError("unauthorized")
    email = payload.get("sub")
    user_id = payload.get("uid")
    if not email or not user_id:
        raise UnauthorizedError("unauthorized")
    return Principal(user_id=user_id, email=email)


def _token_from_request(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return request.cookies.get(SESSION_COOKIE)


def get_principal(request: Request) -> Principal:
    """FastAPI dependency: resolve the session cookie or Bearer token."""
    token = _token_from_request(request)
    if not token:
        raise UnauthorizedError("unauthorized")
    return decode_access_token(token)


def current_user(session: Session, principal: Principal) -> User:
    """Load the caller's User row by session email."""
    user = session.exec(select(User).where(User.email == principal.email)).first()
    if user is None:
        raise NotFoundError("user not found")
    return user
