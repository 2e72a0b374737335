"""
Session/Identity Gate.

Turns credentials into an Identity and requests back into the Identity
that issued their session. Identity is the only thing the audit core
receives about a caller.
"""

from dataclasses import dataclass

import bcrypt
import structlog
from fastapi import Request, Response
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from eduaudit.auth.jwt import TokenError, create_session_token, decode_session_token
from eduaudit.config import settings
from eduaudit.db.models import User
from eduaudit.errors import AuthFailure, DuplicateIdentity, Unauthenticated, ValidationError

logger = structlog.get_logger(__name__)

# bcrypt only looks at the first 72 bytes and newer releases refuse longer input
MAX_PASSWORD_BYTES = 72


@dataclass(frozen=True)
class Identity:
    """Opaque, stable reference to an authenticated user."""

    user_id: int


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Stored hash is not a bcrypt hash
        return False


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _require_credentials(email: str | None, password: str | None) -> tuple[str, str]:
    if not email or not email.strip() or not password:
        raise ValidationError("Email and password required")
    return normalize_email(email), password


class IdentityGate:
    """Registration, credential checks and session transport."""

    def __init__(
        self,
        cookie_name: str | None = None,
        max_age_seconds: int | None = None,
        secure_cookie: bool | None = None,
        password_min_length: int | None = None,
    ):
        self.cookie_name = cookie_name or settings.session_cookie_name
        self.max_age_seconds = max_age_seconds or settings.session_max_age_seconds
        self.secure_cookie = settings.session_cookie_secure if secure_cookie is None else secure_cookie
        self.password_min_length = password_min_length or settings.password_min_length

    async def register(
        self, session: AsyncSession, email: str | None, password: str | None
    ) -> Identity:
        """Create a user. Raises ValidationError or DuplicateIdentity."""
        email, password = _require_credentials(email, password)
        if len(password) < self.password_min_length:
            raise ValidationError(
                f"Password must be at least {self.password_min_length} characters"
            )

        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")

        user = User(email=email, password_hash=hash_password(password))
        session.add(user)
        try:
            await session.flush()
            user_id = user.id
            await session.commit()
        except IntegrityError:
            await session.rollback()
            raise DuplicateIdentity("Email already exists")

        logger.info("user_registered", user_id=user_id)
        return Identity(user_id)

    async def authenticate(
        self, session: AsyncSession, email: str | None, password: str | None
    ) -> Identity:
        """Check credentials. Raises ValidationError or AuthFailure."""
        email, password = _require_credentials(email, password)
        result = await session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

        if user is None or not verify_password(password, user.password_hash):
            raise AuthFailure("Invalid credentials")

        logger.info("user_logged_in", user_id=user.id)
        return Identity(user.id)

    def current_identity(self, request: Request) -> Identity:
        """
        Identity behind the request's session. Raises Unauthenticated.

        A stale cookie does not shadow a valid Bearer token: each candidate
        is tried in turn.
        """
        tokens = session_tokens(request, self.cookie_name)
        if not tokens:
            raise Unauthenticated("Unauthorized")
        user_id, reason = resolve_session(tokens)
        if user_id is None:
            logger.info("session_rejected", reason=reason, path=request.url.path)
            raise Unauthenticated("Unauthorized")
        return Identity(user_id)

    def issue_session(self, response: Response, identity: Identity) -> str:
        token = create_session_token(identity.user_id)
        response.set_cookie(
            key=self.cookie_name,
            value=token,
            max_age=self.max_age_seconds,
            httponly=True,
            secure=self.secure_cookie,
            samesite="lax",
        )
        return token

    def clear_session(self, response: Response) -> None:
        response.delete_cookie(
            key=self.cookie_name,
            httponly=True,
            secure=self.secure_cookie,
            samesite="lax",
        )


def session_tokens(request: Request, cookie_name: str) -> list[str]:
    """Candidate session tokens: cookie first, then Authorization: Bearer."""
    tokens = []
    cookie = request.cookies.get(cookie_name)
    if cookie:
        tokens.append(cookie)
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer ") and auth[7:]:
        tokens.append(auth[7:])
    return tokens


def resolve_session(tokens: list[str]) -> tuple[int | None, str | None]:
    """First token that decodes wins. Returns (user_id, None) or (None, last error)."""
    reason = None
    for token in tokens:
        try:
            return decode_session_token(token), None
        except TokenError as e:
            reason = str(e)
    return None, reason
