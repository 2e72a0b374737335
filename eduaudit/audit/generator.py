"""
Audit Generator — one model call, schema-enforced.

Two profiles:
- structured (default): JSON mode, parsed into StructuredAuditResult
- simple: opaque prose, only checked for being non-empty

Returns a GeneratedAudit or raises MalformedModelOutput /
ProviderUnavailable. Never persists anything.
"""

import json
from dataclasses import dataclass
from typing import Optional, Protocol

import structlog
from pydantic import ValidationError as SchemaError

from eduaudit.audit.prompts import (
    AuditPrompt,
    build_audit_prompt,
    build_simple_prompt,
    with_strict_reminder,
)
from eduaudit.audit.schemas import AuditMode, BusinessIntake, StructuredAuditResult
from eduaudit.errors import MalformedModelOutput

logger = structlog.get_logger(__name__)


class CompletionClient(Protocol):
    """What the generator needs from a model provider."""

    async def complete(
        self,
        system: str,
        user: str,
        *,
        model: str,
        temperature: float,
        max_tokens: int,
        json_mode: bool = False,
    ) -> str:
        ...


@dataclass(frozen=True)
class GeneratedAudit:
    mode: AuditMode
    result: Optional[StructuredAuditResult] = None
    prose: Optional[str] = None


def _strip_code_fence(raw: str) -> str:
    text = raw.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def parse_structured(raw: str) -> StructuredAuditResult:
    """Parse a model payload, raising MalformedModelOutput on any mismatch."""
    text = _strip_code_fence(raw)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedModelOutput(f"Model output is not valid JSON: {e.msg}", raw=raw) from e
    if not isinstance(data, dict):
        raise MalformedModelOutput("Model output is not a JSON object", raw=raw)
    try:
        return StructuredAuditResult.model_validate_json(text)
    except SchemaError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        raise MalformedModelOutput(
            f"Model output failed schema validation: {', '.join(fields)}",
            raw=raw,
        ) from e


class AuditGenerator:
    """Obtain an audit from the model in the configured profile."""

    def __init__(
        self,
        llm: CompletionClient,
        mode: AuditMode = AuditMode.STRUCTURED,
        model: str = "gpt-4o-mini",
        temperature: float = 0.7,
        max_tokens_structured: int = 1500,
        max_tokens_simple: int = 500,
    ):
        self.llm = llm
        self.mode = AuditMode(mode)
        self.model = model
        self.temperature = temperature
        self.max_tokens_structured = max_tokens_structured
        self.max_tokens_simple = max_tokens_simple

    def build_prompt(self, intake: BusinessIntake, strict: bool = False) -> AuditPrompt:
        if self.mode is AuditMode.SIMPLE:
            return build_simple_prompt(intake)
        prompt = build_audit_prompt(intake)
        return with_strict_reminder(prompt) if strict else prompt

    async def generate(self, intake: BusinessIntake, strict: bool = False) -> GeneratedAudit:
        """
        Call the model once.

        ``strict`` appends the JSON-only reminder; the caller decides
        whether a malformed reply deserves that second attempt.
        """
        prompt = self.build_prompt(intake, strict=strict)

        if self.mode is AuditMode.SIMPLE:
            text = await self.llm.complete(
                prompt.system,
                prompt.user,
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens_simple,
            )
            if not text or not text.strip():
                raise MalformedModelOutput("Model returned an empty audit", raw=text)
            return GeneratedAudit(mode=self.mode, prose=text.strip())

        raw = await self.llm.complete(
            prompt.system,
            prompt.user,
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens_structured,
            json_mode=True,
        )
        result = parse_structured(raw)
        logger.debug(
            "structured_audit_parsed",
            readiness_score=result.readiness_score,
            opportunities=len(result.opportunities),
            strict=strict,
        )
        return GeneratedAudit(mode=self.mode, result=result)
