"""
Application error taxonomy.

Every error carries an HTTP status and a client-safe ``public_message``.
The constructor message is the internal detail: it is logged, never
returned to the client, except for errors marked ``expose_detail`` where
the message itself is precise and safe (validation, auth).
"""

import structlog
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)


class AppError(Exception):
    """Base exception for EduAudit."""

    status_code: int = 500
    public_message: str = "Server error"
    expose_detail: bool = False

    def __init__(self, message: str | None = None):
        self.message = message or self.public_message
        super().__init__(self.message)

    @property
    def client_message(self) -> str:
        return self.message if self.expose_detail else self.public_message


# ── Client-facing (precise messages) ─────────────────────────────────────


class ValidationError(AppError):
    """Missing or malformed request fields."""

    status_code = 400
    public_message = "Invalid request"
    expose_detail = True


class DuplicateIdentity(AppError):
    status_code = 400
    public_message = "Email already exists"
    expose_detail = True


class AuthFailure(AppError):
    """Credentials did not match a known identity."""

    status_code = 401
    public_message = "Invalid credentials"
    expose_detail = True


class Unauthenticated(AppError):
    """No session, or the session token is invalid or expired."""

    status_code = 401
    public_message = "Unauthorized"
    expose_detail = True


class NotFound(AppError):
    status_code = 404
    public_message = "Not found"
    expose_detail = True


class RateLimited(AppError):
    status_code = 429
    public_message = "Too many requests. Please retry after a moment."
    expose_detail = True

    def __init__(self, message: str | None = None, retry_after: int = 10):
        super().__init__(message)
        self.retry_after = retry_after


# ── Server-side (generic to the client, detailed in logs) ─────────────────


class GenerationError(AppError):
    """Base for failures while obtaining an audit from the model."""

    status_code = 500
    public_message = "Failed to generate audit"


class ProviderUnavailable(GenerationError):
    """Model call failed: timeout, non-2xx, rate limit, connection error."""


class MalformedModelOutput(GenerationError):
    """Model replied, but the payload failed schema validation."""

    def __init__(self, message: str | None = None, raw: str | None = None):
        super().__init__(message)
        self.raw = raw


class StorageUnavailable(AppError):
    """Persistence failure; the subclass names what the client was doing."""

    status_code = 500
    public_message = "Server error"


class AuditWriteFailed(StorageUnavailable):
    public_message = "Failed to generate audit"


class AuditReadFailed(StorageUnavailable):
    public_message = "Failed to fetch audits"


class ExportFailed(AppError):
    status_code = 502
    public_message = "Failed to publish audit"


class ExportDisabled(AppError):
    status_code = 503
    public_message = "Publishing is not configured"
    expose_detail = True


# ── Handlers ──────────────────────────────────────────────────────────────


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render an AppError as ``{"error": ...}``."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "request_failed",
        error_type=type(exc).__name__,
        status=exc.status_code,
        detail=exc.message,
        path=request.url.path,
    )
    headers = None
    if isinstance(exc, RateLimited):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.client_message},
        headers=headers,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Body/query validation errors are 400s with the first offending field named."""
    errors = exc.errors()
    message = "Invalid request body"
    if errors:
        loc = [str(part) for part in errors[0].get("loc", ()) if part != "body"]
        if loc:
            message = f"Invalid value for {'.'.join(loc)}"
    logger.info("request_validation_failed", path=request.url.path, errors=len(errors))
    return JSONResponse(status_code=400, content={"error": message})
