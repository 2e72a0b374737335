"""
Audit Service — intake → generator → formatter → store.

Owns the single re-prompt: a MalformedModelOutput on the first attempt
gets exactly one more call with the strict reminder, then surfaces.
Nothing is persisted unless generation succeeded.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from eduaudit.audit.exporter import ArtifactLocation, AuditExporter
from eduaudit.audit.formatter import format_audit
from eduaudit.audit.generator import AuditGenerator, GeneratedAudit
from eduaudit.audit.schemas import AuditMode, BusinessIntake
from eduaudit.audit.store import AuditRecord, AuditStore
from eduaudit.auth.gate import Identity
from eduaudit.errors import (
    ExportDisabled,
    MalformedModelOutput,
    NotFound,
    ProviderUnavailable,
    ValidationError,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AuditOutcome:
    audit_id: int
    text: str
    result: Optional[dict]
    mode: AuditMode


class AuditService:
    def __init__(
        self,
        generator: AuditGenerator,
        store: AuditStore,
        exporter: Optional[AuditExporter] = None,
        reprompt_on_malformed: bool = True,
    ):
        self.generator = generator
        self.store = store
        self.exporter = exporter
        self.reprompt_on_malformed = reprompt_on_malformed

    async def run(self, identity: Identity, intake: BusinessIntake) -> AuditOutcome:
        description = (intake.business_description or "").strip()
        if not description:
            raise ValidationError("Business description required")

        log = logger.bind(user_id=identity.user_id, mode=self.generator.mode.value)
        generated = await self._generate(intake, log)

        if generated.result is not None:
            text = format_audit(generated.result)
            payload = generated.result.to_payload()
        else:
            text = generated.prose or ""
            payload = None

        revenue = (intake.current_revenue or "").strip() or None
        audit_id = await self.store.create(
            identity,
            description,
            revenue,
            text,
            result=payload,
            mode=generated.mode,
        )
        log.info("audit_generated", audit_id=audit_id)
        return AuditOutcome(audit_id=audit_id, text=text, result=payload, mode=generated.mode)

    async def _generate(self, intake: BusinessIntake, log) -> GeneratedAudit:
        try:
            return await self.generator.generate(intake)
        except ProviderUnavailable as e:
            log.error("audit_provider_unavailable", error=e.message)
            raise
        except MalformedModelOutput as e:
            log.warning("audit_malformed_output", attempt=1, error=e.message)
            if not self.reprompt_on_malformed:
                raise

        try:
            return await self.generator.generate(intake, strict=True)
        except ProviderUnavailable as e:
            log.error("audit_provider_unavailable", error=e.message, attempt=2)
            raise
        except MalformedModelOutput as e:
            log.error("audit_malformed_output", attempt=2, error=e.message)
            raise

    async def history(self, identity: Identity) -> list[AuditRecord]:
        return await self.store.list_by_identity(identity)

    async def get(self, identity: Identity, audit_id: int) -> AuditRecord:
        """One of the caller's audits. Raises NotFound for anyone else's."""
        record = await self.store.get(identity, audit_id)
        if record is None:
            raise NotFound("Audit not found")
        return record

    async def publish(
        self, identity: Identity, audit_id: Optional[int], content: Optional[str] = None
    ) -> ArtifactLocation:
        """Export one of the caller's audits. The stored record is never modified."""
        if audit_id is None:
            raise ValidationError("auditId required")
        if self.exporter is None:
            raise ExportDisabled("Publishing is not configured")

        record = await self.get(identity, audit_id)
        body = content if content and content.strip() else record.ai_response
        return await self.exporter.export(record.id, body)
