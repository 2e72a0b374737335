"""
Audit API.

POST /api/audit          — generate and store an audit for the caller
GET  /api/audits         — caller's audit history, newest first
POST /api/publish-audit  — export one of the caller's audits (optional)
"""

from fastapi import APIRouter, Body, Depends

from eduaudit.api.deps import get_audit_service, get_identity
from eduaudit.audit.schemas import AuditResponse, BusinessIntake, PublishRequest
from eduaudit.audit.service import AuditService
from eduaudit.auth.gate import Identity
from eduaudit.config import settings

router = APIRouter(prefix=settings.api_prefix, tags=["audits"])


@router.post("/audit")
async def create_audit(
    identity: Identity = Depends(get_identity),
    service: AuditService = Depends(get_audit_service),
    body: BusinessIntake = Body(...),
):
    """Generate an automation audit from the submitted business context."""
    outcome = await service.run(identity, body)
    return {
        "success": True,
        "audit": outcome.text,
        "auditId": outcome.audit_id,
        "mode": outcome.mode.value,
        "result": outcome.result,
    }


@router.get("/audits", response_model=list[AuditResponse])
async def list_audits(
    identity: Identity = Depends(get_identity),
    service: AuditService = Depends(get_audit_service),
):
    """Audits owned by the caller, most recent first."""
    records = await service.history(identity)
    return [AuditResponse.model_validate(r) for r in records]


@router.post("/publish-audit")
async def publish_audit(
    identity: Identity = Depends(get_identity),
    service: AuditService = Depends(get_audit_service),
    body: PublishRequest = Body(...),
):
    """Publish an audit as an external artifact. Never alters the stored audit."""
    location = await service.publish(identity, body.audit_id, body.audit_content)
    return {
        "success": True,
        "auditId": body.audit_id,
        "location": {"path": location.path, "revision": location.revision},
    }
