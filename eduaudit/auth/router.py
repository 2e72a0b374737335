"""
Auth API routes — signup, login, logout, me.

Sessions are signed tokens in an httpOnly cookie. Login is protected by
per-IP / per-email throttling.
"""

import asyncio

import structlog
from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from eduaudit.api.deps import get_db, get_identity, get_identity_gate, get_login_throttle
from eduaudit.auth.gate import Identity, IdentityGate
from eduaudit.auth.schemas import AuthResponse, LoginRequest, MeResponse, SignupRequest
from eduaudit.config import settings
from eduaudit.db.models import User
from eduaudit.errors import AuthFailure, Unauthenticated
from eduaudit.middleware.brute_force import LoginThrottle

logger = structlog.get_logger(__name__)
router = APIRouter(prefix=settings.api_prefix, tags=["auth"])


def _get_client_ip(request: Request) -> str:
    """Extract client IP from request, respecting X-Forwarded-For."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


@router.post("/signup", response_model=AuthResponse)
async def signup(
    body: SignupRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    gate: IdentityGate = Depends(get_identity_gate),
):
    """Create an account and start a session."""
    identity = await gate.register(db, body.email, body.password)
    gate.issue_session(response, identity)
    return AuthResponse(user_id=identity.user_id)


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    gate: IdentityGate = Depends(get_identity_gate),
    throttle: LoginThrottle = Depends(get_login_throttle),
):
    """Check credentials and start a session."""
    ip = _get_client_ip(request)
    throttle.check(ip, body.email)

    delay = throttle.progressive_delay(ip)
    if delay > 0:
        await asyncio.sleep(delay)

    try:
        identity = await gate.authenticate(db, body.email, body.password)
    except AuthFailure:
        throttle.record_failure(ip, body.email)
        raise

    throttle.record_success(ip, body.email)
    gate.issue_session(response, identity)
    return AuthResponse(user_id=identity.user_id)


@router.post("/logout")
async def logout(response: Response, gate: IdentityGate = Depends(get_identity_gate)):
    """Clear the session cookie. Always succeeds."""
    gate.clear_session(response)
    return {"success": True}


@router.get("/me", response_model=MeResponse)
async def me(
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    """Public profile of the signed-in user."""
    user = await db.get(User, identity.user_id)
    if user is None:
        raise Unauthenticated("User not found")
    return MeResponse.model_validate(user)
