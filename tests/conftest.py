"""
Test fixtures for EduAudit.

Provides:
- Async DB session fixture (SQLite in-memory, one database per test)
- User fixtures and session tokens
- A scripted fake language model that counts its calls
- An HTTP client wired to a fresh app around those fakes
"""

import json
import os
from typing import AsyncGenerator

# Set before any eduaudit import so Settings picks them up
os.environ["ENVIRONMENT"] = "testing"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from eduaudit.api.deps import get_db, get_services
from eduaudit.audit.generator import AuditGenerator
from eduaudit.audit.schemas import AuditMode
from eduaudit.audit.service import AuditService
from eduaudit.audit.store import SqlAuditStore
from eduaudit.auth.gate import IdentityGate, hash_password
from eduaudit.auth.jwt import create_session_token
from eduaudit.db.engine import Base
from eduaudit.db.models import Audit, User  # noqa: F401  (registers the tables)
from eduaudit.middleware.brute_force import LoginThrottle
from eduaudit.services.registry import ServiceRegistry

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"
TEST_PASSWORD = "correct-horse-battery"


# ── Sample model output ──────────────────────────────────────────────────


def sample_payload(**overrides) -> dict:
    """A structured audit the way the model returns it."""
    payload = {
        "readinessScore": 68,
        "summary": "A small tutoring studio run on spreadsheets. Scheduling and follow-up eat most admin time.",
        "opportunities": [
            {
                "title": "Automated scheduling",
                "description": "Let families book sessions from a shared calendar.",
                "timeSavings": "5-8 hours/week",
                "priority": "High",
                "difficulty": "Low",
                "estimatedROI": "3-5x in 6 months",
            },
            {
                "title": "Lead follow-up sequences",
                "description": "Email every new enquiry within the hour.",
                "timeSavings": "2-3 hours/week",
                "priority": "Medium",
                "difficulty": "Medium",
                "estimatedROI": "2x in 3 months",
            },
        ],
        "nextSteps": ["Pick a booking tool", "Import the student list", "Write the first email"],
        "bottlenecks": ["Manual scheduling", "Slow lead response"],
    }
    payload.update(overrides)
    return payload


def sample_json(**overrides) -> str:
    return json.dumps(sample_payload(**overrides))


class FakeLLM:
    """
    Scripted stand-in for LLMGateway.

    Each call pops the next reply; an exception instance is raised instead
    of returned. ``calls`` records every request.
    """

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls: list[dict] = []

    async def complete(self, system, user, *, model, temperature, max_tokens, json_mode=False):
        self.calls.append({
            "system": system,
            "user": user,
            "model": model,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "json_mode": json_mode,
        })
        if not self.replies:
            raise AssertionError("FakeLLM called more times than scripted")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def aclose(self):
        pass


# ── Database ─────────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def engine():
    """A fresh in-memory database with all tables. One shared connection: sequential use only."""
    eng = create_async_engine(
        TEST_DB_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    """Create a session factory bound to the test engine."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Provide a DB session per test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


# ── Users ────────────────────────────────────────────────────────────────


async def create_user(session_factory, email: str, password: str = TEST_PASSWORD) -> User:
    """Helper: insert a user with a real bcrypt hash."""
    async with session_factory() as session:
        user = User(email=email, password_hash=hash_password(password))
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


@pytest_asyncio.fixture
async def alice(session_factory) -> User:
    return await create_user(session_factory, "alice@tutoring.example.com")


@pytest_asyncio.fixture
async def bob(session_factory) -> User:
    return await create_user(session_factory, "bob@academy.example.com")


@pytest.fixture
def alice_token(alice) -> str:
    return create_session_token(alice.id)


@pytest.fixture
def bob_token(bob) -> str:
    return create_session_token(bob.id)


# ── Services and client ──────────────────────────────────────────────────


@pytest.fixture
def fake_llm() -> FakeLLM:
    """Override in a test module, or push replies onto ``fake_llm.replies``."""
    return FakeLLM()


@pytest.fixture
def services(session_factory, fake_llm) -> ServiceRegistry:
    generator = AuditGenerator(fake_llm, mode=AuditMode.STRUCTURED)
    return ServiceRegistry(
        identity_gate=IdentityGate(secure_cookie=False),
        login_throttle=LoginThrottle(ip_max_attempts=5, email_max_attempts=10, lockout_seconds=900),
        audit_service=AuditService(generator, SqlAuditStore(session_factory)),
    )


@pytest_asyncio.fixture
async def client(session_factory, services) -> AsyncGenerator[AsyncClient, None]:
    """
    Anonymous async test client against a fresh app.

    get_db and get_services are overridden so the API sees the same
    in-memory database and fakes as the test itself.
    """
    from eduaudit.main import create_app

    app = create_app(services=services)

    async def _override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_services] = lambda: services
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
