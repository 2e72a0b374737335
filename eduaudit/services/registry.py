"""
Service Registry — the composition root.

Every collaborator is built once per application by ``build_services`` and
hung on ``app.state.services``; routes reach it through the dependencies in
eduaudit.api.deps. Nothing here is module-global, so tests can build a
registry around fakes.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from eduaudit.audit.exporter import AuditExporter, FileSystemExporter, GitExporter
from eduaudit.audit.generator import AuditGenerator
from eduaudit.audit.schemas import AuditMode
from eduaudit.audit.service import AuditService
from eduaudit.audit.store import AuditStore, InMemoryAuditStore, SqlAuditStore
from eduaudit.auth.gate import IdentityGate
from eduaudit.config import Settings
from eduaudit.middleware.brute_force import LoginThrottle
from eduaudit.services.llm_gateway import LLMGateway

logger = structlog.get_logger(__name__)


@dataclass
class ServiceRegistry:
    identity_gate: IdentityGate
    login_throttle: LoginThrottle
    audit_service: AuditService
    llm: Optional[LLMGateway] = None

    async def aclose(self) -> None:
        if self.llm is not None:
            await self.llm.aclose()


def build_store(config: Settings) -> AuditStore:
    if config.audit_store_backend == "memory":
        return InMemoryAuditStore()
    return SqlAuditStore()


def build_exporter(config: Settings) -> Optional[AuditExporter]:
    if config.export_backend == "filesystem":
        return FileSystemExporter(config.export_dir)
    if config.export_backend == "git":
        return GitExporter(
            config.export_dir,
            push=config.export_git_push,
            timeout=config.export_timeout_seconds,
        )
    return None


def build_services(config: Settings) -> ServiceRegistry:
    llm = LLMGateway(
        api_key=config.openai_api_key,
        base_url=config.openai_base_url,
        timeout=config.llm_timeout_seconds,
    )
    generator = AuditGenerator(
        llm,
        mode=AuditMode(config.audit_mode),
        model=config.audit_model,
        temperature=config.audit_temperature,
        max_tokens_structured=config.audit_max_tokens_structured,
        max_tokens_simple=config.audit_max_tokens_simple,
    )
    audit_service = AuditService(
        generator,
        build_store(config),
        exporter=build_exporter(config),
        reprompt_on_malformed=config.audit_reprompt_on_malformed,
    )
    logger.info(
        "services_built",
        audit_mode=config.audit_mode,
        store=config.audit_store_backend,
        export=config.export_backend,
    )
    return ServiceRegistry(
        identity_gate=IdentityGate(
            cookie_name=config.session_cookie_name,
            max_age_seconds=config.session_max_age_seconds,
            secure_cookie=config.session_cookie_secure,
            password_min_length=config.password_min_length,
        ),
        login_throttle=LoginThrottle(
            ip_max_attempts=config.login_ip_max_attempts,
            email_max_attempts=config.login_email_max_attempts,
            lockout_seconds=config.login_lockout_seconds,
        ),
        audit_service=audit_service,
        llm=llm,
    )
