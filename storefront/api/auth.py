"""Admin dashboard authentication.

The back-office order form and invoice endpoint sit behind a single shared
dashboard password. A successful login opens a cookie session held in process
memory; customers never use these routes.
"""
import logging
import secrets
from datetime import datetime, timedelta
from typing import Dict, Optional

from fastapi import APIRouter, HTTPException, Request, Response
from pydantic import BaseModel

from storefront.core.config import settings

router = APIRouter()
logger = logging.getLogger(__name__)

SESSION_COOKIE = "admin_session"


class AdminSession(BaseModel):
    """Open dashboard session."""
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.utcnow()) > self.expires_at


# Sessions are lost on restart
_sessions: Dict[str, AdminSession] = {}


class LoginRequest(BaseModel):
    """Login request model."""
    password: str


class SessionInfo(BaseModel):
    """Session information response."""
    authenticated: bool
    expires_at: Optional[str] = None


def open_session(response: Response) -> AdminSession:
    """Register a new session and hand its token to the browser."""
    token = secrets.token_urlsafe(32)
    now = datetime.utcnow()
    session = AdminSession(
        created_at=now,
        expires_at=now + timedelta(hours=settings.session_ttl_hours),
    )
    _sessions[token] = session

    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        httponly=True,
        max_age=settings.session_ttl_hours * 3600,
        samesite="lax",
    )
    return session


def current_session(request: Request) -> Optional[AdminSession]:
    """Session for the request cookie, dropping it once expired."""
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        return None

    session = _sessions.get(token)
    if session is None:
        return None
    if session.is_expired():
        del _sessions[token]
        logger.info("[AUTH] Admin session expired")
        return None
    return session


async def require_admin(request: Request) -> AdminSession:
    """Dependency guarding back-office routes."""
    session = current_session(request)
    if session is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return session


@router.post("/api/auth/login")
async def login(login_req: LoginRequest, request: Request, response: Response):
    """Open an admin session with the dashboard password."""
    client = request.client.host if request.client else "unknown"
    if not secrets.compare_digest(login_req.password, settings.dashboard_password):
        logger.warning(f"[AUTH] Failed admin login - Client: {client}")
        raise HTTPException(status_code=401, detail="Invalid password")

    session = open_session(response)
    logger.info(f"[AUTH] Admin logged in - Client: {client}")
    return {
        "success": True,
        "message": "Login successful",
        "expires_at": session.expires_at.isoformat(),
    }


@router.post("/api/auth/logout")
async def logout(request: Request, response: Response):
    """Close the current session."""
    token = request.cookies.get(SESSION_COOKIE)
    if token:
        _sessions.pop(token, None)
    response.delete_cookie(SESSION_COOKIE)
    return {"success": True, "message": "Logged out"}


@router.get("/api/auth/session", response_model=SessionInfo)
async def get_session_info(request: Request):
    """Report whether the browser holds a live admin session."""
    session = current_session(request)
    if session is None:
        return SessionInfo(authenticated=False)
    return SessionInfo(authenticated=True, expires_at=session.expires_at.isoformat())
