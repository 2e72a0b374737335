"""
Audit Store — durable audits keyed by owner.

Every read is filtered by the caller's Identity inside the query itself;
there is no unscoped read path. Backends:
- SqlAuditStore: async SQLAlchemy (SQLite dev / PostgreSQL prod)
- InMemoryAuditStore: single-process deployments and tests
"""

import asyncio
import copy
import itertools
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from eduaudit.audit.schemas import AuditMode
from eduaudit.auth.gate import Identity
from eduaudit.db.engine import get_session_factory
from eduaudit.db.models import Audit
from eduaudit.errors import AuditReadFailed, AuditWriteFailed

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AuditRecord:
    id: int
    owner: Identity
    business_description: str
    current_revenue: Optional[str]
    ai_response: str
    result: Optional[dict]
    mode: AuditMode
    created_at: datetime


class AuditStore(Protocol):
    async def create(
        self,
        identity: Identity,
        description: str,
        revenue: Optional[str],
        response: str,
        result: Optional[dict] = None,
        mode: AuditMode = AuditMode.STRUCTURED,
    ) -> int:
        """Persist one audit atomically and return its identifier."""
        ...

    async def list_by_identity(self, identity: Identity) -> list[AuditRecord]:
        """All audits owned by ``identity``, most recent first."""
        ...

    async def get(self, identity: Identity, audit_id: int) -> Optional[AuditRecord]:
        """One audit, only if ``identity`` owns it."""
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ── SQL ───────────────────────────────────────────────────────────────────


class SqlAuditStore:
    """Audit store on the application database."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    ):
        # Resolved per call so the engine is only built when first used
        self._session_factory = session_factory

    def _factory(self) -> async_sessionmaker[AsyncSession]:
        return self._session_factory or get_session_factory()

    @staticmethod
    def _to_record(row: Audit) -> AuditRecord:
        return AuditRecord(
            id=row.id,
            owner=Identity(row.user_id),
            business_description=row.business_description,
            current_revenue=row.current_revenue,
            ai_response=row.ai_response,
            result=row.result,
            mode=AuditMode(row.mode),
            created_at=row.created_at,
        )

    async def create(
        self,
        identity: Identity,
        description: str,
        revenue: Optional[str],
        response: str,
        result: Optional[dict] = None,
        mode: AuditMode = AuditMode.STRUCTURED,
    ) -> int:
        try:
            async with self._factory()() as session:
                async with session.begin():
                    audit = Audit(
                        user_id=identity.user_id,
                        business_description=description,
                        current_revenue=revenue or None,
                        ai_response=response,
                        result=result,
                        mode=AuditMode(mode).value,
                        created_at=_utcnow(),
                    )
                    session.add(audit)
                    await session.flush()
                    audit_id = audit.id
        except (SQLAlchemyError, OSError) as e:
            logger.error("audit_store_write_failed", user_id=identity.user_id, error=str(e))
            raise AuditWriteFailed(f"Audit insert failed: {e}") from e

        logger.info("audit_stored", audit_id=audit_id, user_id=identity.user_id)
        return audit_id

    async def list_by_identity(self, identity: Identity) -> list[AuditRecord]:
        stmt = (
            select(Audit)
            .where(Audit.user_id == identity.user_id)
            .order_by(Audit.created_at.desc(), Audit.id.desc())
        )
        try:
            async with self._factory()() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except (SQLAlchemyError, OSError) as e:
            logger.error("audit_store_read_failed", user_id=identity.user_id, error=str(e))
            raise AuditReadFailed(f"Audit history query failed: {e}") from e
        return [self._to_record(row) for row in rows]

    async def get(self, identity: Identity, audit_id: int) -> Optional[AuditRecord]:
        stmt = select(Audit).where(
            Audit.id == audit_id,
            Audit.user_id == identity.user_id,
        )
        try:
            async with self._factory()() as session:
                row = (await session.execute(stmt)).scalar_one_or_none()
        except (SQLAlchemyError, OSError) as e:
            logger.error("audit_store_read_failed", audit_id=audit_id, error=str(e))
            raise AuditReadFailed(f"Audit lookup failed: {e}") from e
        return self._to_record(row) if row is not None else None


# ── In-memory ─────────────────────────────────────────────────────────────


class InMemoryAuditStore:
    """Process-local store. Records are copied in and out, never shared."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._clock = clock
        self._records: list[AuditRecord] = []
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()

    async def create(
        self,
        identity: Identity,
        description: str,
        revenue: Optional[str],
        response: str,
        result: Optional[dict] = None,
        mode: AuditMode = AuditMode.STRUCTURED,
    ) -> int:
        async with self._lock:
            record = AuditRecord(
                id=next(self._ids),
                owner=identity,
                business_description=description,
                current_revenue=revenue or None,
                ai_response=response,
                result=copy.deepcopy(result),
                mode=AuditMode(mode),
                created_at=self._clock(),
            )
            self._records.append(record)
        return record.id

    async def list_by_identity(self, identity: Identity) -> list[AuditRecord]:
        async with self._lock:
            owned = [r for r in self._records if r.owner == identity]
        owned.sort(key=lambda r: (r.created_at, r.id), reverse=True)
        return [_copy_record(r) for r in owned]

    async def get(self, identity: Identity, audit_id: int) -> Optional[AuditRecord]:
        async with self._lock:
            for r in self._records:
                if r.id == audit_id and r.owner == identity:
                    return _copy_record(r)
        return None


def _copy_record(record: AuditRecord) -> AuditRecord:
    if record.result is None:
        return record
    return AuditRecord(
        id=record.id,
        owner=record.owner,
        business_description=record.business_description,
        current_revenue=record.current_revenue,
        ai_response=record.ai_response,
        result=copy.deepcopy(record.result),
        mode=record.mode,
        created_at=record.created_at,
    )
