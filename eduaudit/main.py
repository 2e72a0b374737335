"""
EduAudit — FastAPI Application.

Run: uvicorn eduaudit.main:app --host 0.0.0.0 --port 3000 --reload

Routes:
  - POST /api/signup, /api/login, /api/logout, GET /api/me
  - POST /api/audit, GET /api/audits, POST /api/publish-audit
  - GET  /health, /ready
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from eduaudit.api.routers.audits import router as audits_router
from eduaudit.auth.router import router as auth_router
from eduaudit.config import Settings, settings
from eduaudit.db.engine import close_db, init_db
from eduaudit.errors import AppError, app_error_handler, request_validation_handler
from eduaudit.middleware.error_handler import ErrorHandlerMiddleware
from eduaudit.middleware.rate_limit import AuditRateLimitMiddleware
from eduaudit.middleware.request_context import RequestContextMiddleware
from eduaudit.services.registry import ServiceRegistry, build_services

logger = structlog.get_logger(__name__)


def configure_logging(config: Settings) -> None:
    """structlog on top of stdlib logging; JSON in production, console otherwise."""
    logging.basicConfig(format="%(message)s", level=config.log_level.upper())
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if config.log_format == "json"
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan — startup and shutdown."""
    logger.info("eduaudit_starting", version=settings.app_version, environment=settings.environment)
    if not settings.openai_api_key:
        logger.warning("openai_api_key_missing", msg="Audit generation will fail until OPENAI_API_KEY is set")
    if settings.is_production and settings.session_secret.startswith("dev-"):
        logger.warning("session_secret_not_set", msg="Set SESSION_SECRET in production")
    await init_db()
    yield
    await app.state.services.aclose()
    await close_db()
    logger.info("eduaudit_shutdown")


def create_app(services: ServiceRegistry | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        description="AI automation audits for education businesses.",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )
    app.state.services = services or build_services(settings)

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # ── Middleware (last added = outermost) ─────────────────────────────
    app.add_middleware(AuditRateLimitMiddleware)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Routes ────────────────────────────────────────────────────────
    app.include_router(auth_router)
    app.include_router(audits_router)

    @app.get("/health", tags=["health"])
    async def health():
        """Liveness check. Does not check dependencies."""
        return {"status": "ok", "version": settings.app_version, "service": "eduaudit"}

    @app.get("/ready", tags=["health"])
    async def readiness():
        """Readiness check: 200 when the database answers, 503 otherwise."""
        from sqlalchemy import text as sa_text

        from eduaudit.db.engine import get_engine

        checks = {"api": "ok"}
        try:
            async with get_engine().connect() as conn:
                await asyncio.wait_for(
                    conn.execute(sa_text("SELECT 1")),
                    timeout=settings.health_check_timeout_seconds,
                )
            checks["database"] = "ok"
        except Exception as e:
            logger.warning("readiness_database_failed", error=str(e))
            checks["database"] = "unavailable"

        ready = checks["database"] == "ok"
        return JSONResponse(
            status_code=200 if ready else 503,
            content={
                "status": "ok" if ready else "unavailable",
                "checks": checks,
                "audit_mode": settings.audit_mode,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )

    return app


# Application instance
app = create_app()
