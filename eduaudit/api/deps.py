"""
FastAPI dependencies for the HTTP layer.

Identity is resolved here and passed explicitly into the core; routes that
need a caller declare ``get_identity`` before any body parameter so an
unauthenticated request is rejected before the body is even parsed.
"""

from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from eduaudit.audit.service import AuditService
from eduaudit.auth.gate import Identity, IdentityGate
from eduaudit.db.engine import get_session_factory
from eduaudit.middleware.brute_force import LoginThrottle
from eduaudit.services.registry import ServiceRegistry


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Provide an async DB session, committed on success."""
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_services(request: Request) -> ServiceRegistry:
    return request.app.state.services


def get_identity_gate(services: ServiceRegistry = Depends(get_services)) -> IdentityGate:
    return services.identity_gate


def get_login_throttle(services: ServiceRegistry = Depends(get_services)) -> LoginThrottle:
    return services.login_throttle


def get_audit_service(services: ServiceRegistry = Depends(get_services)) -> AuditService:
    return services.audit_service


def get_identity(
    request: Request,
    gate: IdentityGate = Depends(get_identity_gate),
) -> Identity:
    """The caller's Identity. Raises Unauthenticated (401)."""
    return gate.current_identity(request)
