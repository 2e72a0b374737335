"""
EduAudit Configuration.

Pydantic Settings v2 — loads from environment variables, and from .env
outside production (hosted deployments inject variables directly).
"""

import os
from typing import List

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("ENVIRONMENT", "development").lower() == "production":
        return None
    return ".env"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=_env_file(),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # ── Application ──────────────────────────────────────────────────────
    app_name: str = "EduAudit"
    app_version: str = "1.0.0"
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")

    # ── API ───────────────────────────────────────────────────────────────
    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=3000, alias="PORT")
    api_prefix: str = "/api"
    allowed_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        alias="CORS_ORIGINS",
    )

    # ── Database ─────────────────────────────────────────────────────────
    database_url: str = Field(
        default="sqlite+aiosqlite:///./eduaudit.db",
        validation_alias=AliasChoices("DATABASE_URL", "POSTGRES_URL_POOLING"),
    )
    db_pool_size: int = Field(default=5, alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=10, alias="DB_MAX_OVERFLOW")
    db_pool_recycle: int = Field(default=1800, alias="DB_POOL_RECYCLE")

    # ── Session ───────────────────────────────────────────────────────────
    session_secret: str = Field(
        default="dev-session-secret-change-in-production",
        alias="SESSION_SECRET",
    )
    session_algorithm: str = "HS256"
    session_max_age_seconds: int = Field(default=24 * 60 * 60, alias="SESSION_MAX_AGE_SECONDS")
    session_cookie_name: str = Field(default="eduaudit_session", alias="SESSION_COOKIE_NAME")
    password_min_length: int = Field(default=8, alias="PASSWORD_MIN_LENGTH")

    # ── Language model provider ───────────────────────────────────────────
    openai_api_key: str = Field(default="", alias="OPENAI_API_KEY")
    openai_base_url: str = Field(default="https://api.openai.com/v1", alias="OPENAI_BASE_URL")
    audit_model: str = Field(default="gpt-4o-mini", alias="AUDIT_MODEL")
    audit_temperature: float = Field(default=0.7, alias="AUDIT_TEMPERATURE")
    audit_max_tokens_structured: int = Field(default=1500, alias="AUDIT_MAX_TOKENS_STRUCTURED")
    audit_max_tokens_simple: int = Field(default=500, alias="AUDIT_MAX_TOKENS_SIMPLE")
    llm_timeout_seconds: float = Field(default=30.0, alias="LLM_TIMEOUT_SECONDS")

    # ── Audit behaviour ───────────────────────────────────────────────────
    audit_mode: str = Field(
        default="structured",
        alias="AUDIT_MODE",
        pattern=r"^(structured|simple)$",
    )
    audit_reprompt_on_malformed: bool = Field(default=True, alias="AUDIT_REPROMPT_ON_MALFORMED")
    audit_store_backend: str = Field(
        default="sql",
        alias="AUDIT_STORE_BACKEND",
        pattern=r"^(sql|memory)$",
    )

    # ── Rate limiting / login throttling ──────────────────────────────────
    audit_rate_limit_per_minute: int = Field(default=10, alias="AUDIT_RATE_LIMIT_PER_MINUTE")
    audit_rate_limit_burst: int = Field(default=5, alias="AUDIT_RATE_LIMIT_BURST")
    login_ip_max_attempts: int = Field(default=5, alias="LOGIN_IP_MAX_ATTEMPTS")
    login_email_max_attempts: int = Field(default=10, alias="LOGIN_EMAIL_MAX_ATTEMPTS")
    login_lockout_seconds: float = Field(default=900.0, alias="LOGIN_LOCKOUT_SECONDS")

    # ── Publishing ────────────────────────────────────────────────────────
    export_backend: str = Field(
        default="none",
        alias="EXPORT_BACKEND",
        pattern=r"^(none|filesystem|git)$",
    )
    export_dir: str = Field(default="published_audits", alias="EXPORT_DIR")
    export_git_push: bool = Field(default=False, alias="EXPORT_GIT_PUSH")
    export_timeout_seconds: float = Field(default=30.0, alias="EXPORT_TIMEOUT_SECONDS")

    # ── Operational ────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="console", alias="LOG_FORMAT")
    health_check_timeout_seconds: int = Field(default=5, alias="HEALTH_CHECK_TIMEOUT_SECONDS")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def session_cookie_secure(self) -> bool:
        """Session cookies are only marked Secure in production."""
        return self.is_production

    @property
    def async_database_url(self) -> str:
        """Ensure the database URL uses an async driver."""
        url = self.database_url
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql+asyncpg://", 1)
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        if url.startswith("sqlite://"):
            url = url.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return url


settings = Settings()
