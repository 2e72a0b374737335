"""
Global Error Handler Middleware.

Last line of defence for exceptions nothing else handled (typed AppErrors
are rendered by the exception handler in eduaudit.errors). Never leaks
stack traces, DB errors or credentials; every error gets an error_id for
correlation with server logs.
"""

import traceback
import uuid

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from eduaudit.config import settings

logger = structlog.get_logger(__name__)

GENERIC_ERROR = "Server error"


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Outermost application middleware (only CORS wraps it). Catches everything.

    Response body: {"error": "Server error", "error_id": "<uuid>"}
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            return await call_next(request)

        except Exception as exc:
            error_id = str(uuid.uuid4())

            logger.error(
                "unhandled_exception",
                error_id=error_id,
                path=request.url.path,
                method=request.method,
                error=str(exc),
                traceback=traceback.format_exc(),
            )

            body: dict = {"error": GENERIC_ERROR, "error_id": error_id}

            # Type name only, never the message
            if settings.debug:
                body["debug_hint"] = type(exc).__name__

            return JSONResponse(status_code=500, content=body)
