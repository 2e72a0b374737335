"""
Session Token Management.

HS256-signed session tokens, carried in an httpOnly cookie (browsers) or
an Authorization header (API clients).
"""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from eduaudit.config import settings


class TokenError(Exception):
    """Raised when token creation or validation fails."""

    pass


def create_session_token(
    user_id: int,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed session token for a user."""
    if expires_delta is None:
        expires_delta = timedelta(seconds=settings.session_max_age_seconds)

    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(payload, settings.session_secret, algorithm=settings.session_algorithm)


def decode_session_token(token: str) -> int:
    """
    Decode and validate a session token.

    Returns the user id. Raises TokenError on any failure, including
    expiry and a malformed subject.
    """
    try:
        payload = jwt.decode(
            token,
            settings.session_secret,
            algorithms=[settings.session_algorithm],
        )
    except JWTError as e:
        raise TokenError(f"Invalid token: {e}") from e

    sub = payload.get("sub")
    if sub is None:
        raise TokenError("Token missing subject")
    try:
        return int(sub)
    except (TypeError, ValueError) as e:
        raise TokenError("Token subject is not a user id") from e
