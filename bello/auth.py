from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import Cookie, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from .config import COOKIE_SECURE, SESSION_COOKIE, SESSION_TTL_DAYS
from .db import User, UserSession, as_utc, get_db
from .security import new_session_token, session_expiry


def resolve_session(db: Session, token: Optional[str]) -> Optional[User]:
    """Map a session token to its user, or ``None`` for anonymous callers.

    Expired sessions are left in place; banned users resolve as anonymous
    even while their session is still valid.
    """
    if not token:
        return None
    session = db.get(UserSession, token)
    if session is None:
        return None
    if as_utc(session.expires_at) <= datetime.now(timezone.utc):
        return None
    user = db.get(User, session.user_id)
    if user is None or user.is_banned:
        return None
    return user


def get_optional_user(
    session_id: Optional[str] = Cookie(default=None, alias=SESSION_COOKIE),
    db: Session = Depends(get_db),
) -> Optional[User]:
    return resolve_session(db, session_id)


def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def start_session(db: Session, user: User) -> UserSession:
    session = UserSession(id=new_session_token(), user_id=user.id, expires_at=session_expiry())
    db.add(session)
    db.commit()
    return session


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=SESSION_TTL_DAYS * 24 * 60 * 60,
        path="/",
        httponly=True,
        samesite="lax",
        secure=COOKIE_SECURE,
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE, path="/", httponly=True, samesite="lax")
