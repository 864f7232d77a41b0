from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from sgcheckout.config import get_settings
from sgcheckout.database import get_db
from sgcheckout.dependencies import get_session_token, require_user
from sgcheckout.models import User
from sgcheckout.rate_limit import limiter
from sgcheckout.schemas import LoginRequest, LoginResponse, UserResponse
from sgcheckout.services.auth import authenticate, create_session, revoke_session

router = APIRouter(tags=["auth"])


@router.get("/me", response_model=UserResponse)
def get_me(user: User = Depends(require_user)):
    """Return the user behind the current session, or 401."""
    return user


@router.post("/auth/login", response_model=LoginResponse)
@limiter.limit("10/minute")
def login(
    request: Request,
    response: Response,
    credentials: LoginRequest,
    db: Session = Depends(get_db),
):
    """Exchange username/password for a session token (also set as a cookie)."""
    user = authenticate(db, credentials.username, credentials.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")

    session = create_session(db, user)
    settings = get_settings()
    response.set_cookie(
        settings.session_cookie_name,
        session.token,
        httponly=True,
        samesite="lax",
        max_age=settings.session_ttl_hours * 3600,
    )
    return LoginResponse(
        token=session.token,
        expires_at=session.expires_at,
        user=UserResponse.model_validate(user),
    )


@router.post("/auth/logout", status_code=204)
def logout(request: Request, db: Session = Depends(get_db)):
    """Revoke the current session. Idempotent."""
    token = get_session_token(request)
    if token:
        revoke_session(db, token)
    response = Response(status_code=204)
    response.delete_cookie(get_settings().session_cookie_name)
    return response
