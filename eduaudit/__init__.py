"""
EduAudit — AI automation audits for education businesses.

Architecture:
    eduaudit/
    ├── api/             # FastAPI routers (HTTP layer)
    ├── auth/            # Session tokens, identity gate, signup/login routes
    ├── audit/           # Prompt builder, generator, formatter, store, exporter
    ├── db/              # SQLAlchemy models and engine
    ├── middleware/      # Error handling, request context, rate limiting
    └── services/        # Language-model gateway and the service registry

Data Flow:
    Intake → Prompt Builder → Generator (model call) → Formatter
    → Audit Store (owned by the caller's identity) → History

Version: 1.0.0
"""

__version__ = "1.0.0"
