"""
EduAudit SQLAlchemy Models.

Two tables: identity records and audit records. Compatible with SQLite
(dev) and PostgreSQL (prod). Integer primary keys are assigned by the
database, so ids are monotonic per table.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from eduaudit.db.compat import JSONType
from eduaudit.db.engine import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)


class Audit(Base):
    """
    One generated automation audit.

    Written once, never updated. ``user_id`` is a back-reference only:
    User does not enumerate audits, the store looks them up by owner.
    """

    __tablename__ = "ai_audits"
    __table_args__ = (
        Index("ix_ai_audits_user_created", "user_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    business_description: Mapped[str] = mapped_column(Text, nullable=False)
    current_revenue: Mapped[Optional[str]] = mapped_column(Text)
    ai_response: Mapped[str] = mapped_column(Text, nullable=False)
    result: Mapped[Optional[dict]] = mapped_column(JSONType())
    mode: Mapped[str] = mapped_column(String(20), nullable=False, default="structured")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)
