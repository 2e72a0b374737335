"""
EduAudit Audit Pipeline.

Components:
- schemas: Intake, structured model output and HTTP models
- prompts: Deterministic prompt builder
- generator: One model call with schema enforcement
- formatter: Structured audit → Markdown display text
- store: Owner-scoped persistence (SQL and in-memory)
- service: Orchestration with the single strict re-prompt
- exporter: Optional publishing to a directory or git repository
"""
