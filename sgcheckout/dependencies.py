"""Request-scoped dependencies shared by the routers."""

from typing import Optional

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from sgcheckout.config import get_settings
from sgcheckout.database import get_db
from sgcheckout.models import User
from sgcheckout.services.auth import resolve_session


def get_session_token(request: Request) -> Optional[str]:
    """Bearer token from the Authorization header, falling back to the session cookie."""
    auth_header = request.headers.get("authorization", "")
    if auth_header.lower().startswith("bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.cookies.get(get_settings().session_cookie_name)


def get_current_user(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    return resolve_session(db, get_session_token(request))


def require_user(user: Optional[User] = Depends(get_current_user)) -> User:
    if user is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user
