"""Password hashing and server-side login sessions."""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from sqlalchemy.orm import Session

from sgcheckout.config import get_settings
from sgcheckout.models import AuthSession, User

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    """Hash a password with bcrypt."""
    salt = bcrypt.gensalt(rounds=get_settings().bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is not a bcrypt hash")
        return False


def authenticate(db: Session, username: str, password: str) -> Optional[User]:
    """Return the user if the credentials match, else None."""
    user = db.query(User).filter(User.username == username).first()
    if not user or not verify_password(password, user.password_hash):
        return None
    return user


def create_session(db: Session, user: User) -> AuthSession:
    settings = get_settings()
    session = AuthSession(
        token=secrets.token_urlsafe(32),
        user_id=user.id,
        expires_at=datetime.now(timezone.utc) + timedelta(hours=settings.session_ttl_hours),
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    logger.info("Session created for user %s", user.id)
    return session


def resolve_session(db: Session, token: Optional[str]) -> Optional[User]:
    """Look up the user behind a session token. Expired sessions are deleted."""
    if not token:
        return None

    session = db.query(AuthSession).filter(AuthSession.token == token).first()
    if not session:
        return None

    expires_at = session.expires_at
    # SQLite drops tzinfo on the way back out
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    if expires_at <= datetime.now(timezone.utc):
        db.delete(session)
        db.commit()
        return None

    return session.user


def revoke_session(db: Session, token: str) -> bool:
    deleted = db.query(AuthSession).filter(AuthSession.token == token).delete()
    db.commit()
    return bool(deleted)
