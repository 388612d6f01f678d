"""
Request dependencies: DB session, authenticated caller, DNS checker.

The caller identity comes from the auth provider's JWT (``sub`` = user id,
``email``); the user row is created the first time we see it.
"""
import logging
import uuid
from functools import lru_cache
from typing import Generator, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.db.session import SessionLocal
from app.logging_config import user_id_ctx
from app.models.user import User
from app.services.dns_checker import DNSChallengeChecker
from app.services.hostname import ReservedNames, default_reserved_names

logger = logging.getLogger("hubisck.auth")

bearer_scheme = HTTPBearer(auto_error=False)


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _decode_token(token: str) -> dict:
    options = {"verify_aud": bool(settings.JWT_AUDIENCE)}
    return jwt.decode(
        token,
        settings.SECRET_KEY,
        algorithms=[settings.ALGORITHM],
        audience=settings.JWT_AUDIENCE or None,
        options=options,
    )


def get_current_user(
    db: Session = Depends(get_db),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception
    try:
        payload = _decode_token(credentials.credentials)
        user_id = uuid.UUID(str(payload.get("sub")))
    except (JWTError, ValueError):
        raise credentials_exception

    email = payload.get("email")
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        user = User(id=user_id, email=email)
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            # first two requests of a new user raced each other
            db.rollback()
            user = db.query(User).filter(User.id == user_id).first()
            if user is None:
                raise
        else:
            db.refresh(user)
    elif email and user.email != email:
        user.email = email
        db.commit()

    user_id_ctx.set(str(user.id))
    return user


@lru_cache
def _default_checker() -> DNSChallengeChecker:
    return DNSChallengeChecker()


def get_dns_checker() -> DNSChallengeChecker:
    return _default_checker()


@lru_cache
def _reserved_names() -> ReservedNames:
    return default_reserved_names()


def get_reserved_names() -> ReservedNames:
    return _reserved_names()
