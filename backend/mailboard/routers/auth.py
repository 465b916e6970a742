"""Login, logout and the session dependency guarding the board API."""

import logging
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, HTTPException, Response
from pydantic import BaseModel

from ..config import get_config
from ..services.auth import Session, get_auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

SESSION_COOKIE = "session_id"


class LoginRequest(BaseModel):
    username: str
    password: str


class OwnerResponse(BaseModel):
    username: str
    email: str
    # Identity every board and email is scoped by
    owner_id: str
    message: Optional[str] = None


def session_to_response(session: Session, message: Optional[str] = None) -> OwnerResponse:
    return OwnerResponse(
        username=session.username,
        email=session.email,
        owner_id=session.owner_id,
        message=message,
    )


async def get_current_session(
    session_id: Optional[str] = Cookie(None, alias=SESSION_COOKIE)
) -> Session:
    """Resolve the board owner from the session cookie, or fail with 401."""
    if not session_id:
        raise HTTPException(status_code=401, detail="Not authenticated")

    session = get_auth_service().get_session(session_id)
    if session is None:
        raise HTTPException(status_code=401, detail="Session expired or invalid")

    return session


@router.post("/login", response_model=OwnerResponse)
async def login(request: LoginRequest, response: Response):
    """Check credentials against the configured users and open a session."""
    session = get_auth_service().authenticate(request.username, request.password)
    if session is None:
        logger.warning(f"Failed login for '{request.username}'")
        raise HTTPException(status_code=401, detail="Invalid username or password")

    # Browser-session cookie; server-side inactivity timeout still applies
    response.set_cookie(
        key=SESSION_COOKIE,
        value=session.session_id,
        httponly=True,
        secure=get_config().session.secure_cookie,
        samesite="lax",
    )
    logger.info(f"Opened board session for {session.owner_id}")
    return session_to_response(session, "Login successful")


@router.post("/logout")
async def logout(
    response: Response,
    session_id: Optional[str] = Cookie(None, alias=SESSION_COOKIE),
):
    if session_id:
        get_auth_service().invalidate_session(session_id)

    response.delete_cookie(key=SESSION_COOKIE)
    return {"success": True, "message": "Logged out successfully"}


@router.get("/me", response_model=OwnerResponse)
async def get_current_owner(session: Session = Depends(get_current_session)):
    """Get the owner behind the current session."""
    return session_to_response(session)
