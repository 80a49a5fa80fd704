import logging
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, HTTPException, Response
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth import clear_session_cookie, get_optional_user, set_session_cookie, start_session
from ..config import SESSION_COOKIE
from ..db import User, UserSession, get_db
from ..schemas import LoginIn, SignupIn, Success, UserEnvelope
from ..security import hash_password, new_id, verify_password
from ..serializers import user_public

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def email_taken(db: Session, email: str) -> bool:
    return db.scalar(select(User.id).where(User.email == email)) is not None


@router.post("/signup", response_model=UserEnvelope)
def signup(body: SignupIn, response: Response, db: Session = Depends(get_db)):
    email = body.email.lower().strip()
    if email_taken(db, email):
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        id=new_id(),
        email=email,
        password_hash=hash_password(body.password),
        name=body.name.strip(),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # lost a race with a concurrent signup for the same address
        db.rollback()
        raise HTTPException(status_code=400, detail="Email already registered")

    session = start_session(db, user)
    set_session_cookie(response, session.id)
    logger.info("New account %s", user.id)
    return UserEnvelope(user=user_public(user))


@router.post("/login", response_model=UserEnvelope)
def login(body: LoginIn, response: Response, db: Session = Depends(get_db)):
    email = body.email.lower().strip()
    user = db.scalar(select(User).where(User.email == email))
    if user is None or not verify_password(body.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if user.is_banned:
        logger.info("Rejected login for banned user %s", user.id)
        raise HTTPException(status_code=403, detail="Account is banned")

    session = start_session(db, user)
    set_session_cookie(response, session.id)
    return UserEnvelope(user=user_public(user))


@router.post("/logout", response_model=Success)
def logout(
    response: Response,
    session_id: Optional[str] = Cookie(default=None, alias=SESSION_COOKIE),
    db: Session = Depends(get_db),
):
    if session_id:
        session = db.get(UserSession, session_id)
        if session is not None:
            db.delete(session)
            db.commit()
    clear_session_cookie(response)
    return Success()


@router.get("/me", response_model=UserEnvelope)
def me(user: Optional[User] = Depends(get_optional_user)):
    return UserEnvelope(user=user_public(user) if user else None)
