"""
Audit Formatter — StructuredAuditResult → Markdown display text.

Order is the model's order: opportunities, bottlenecks and next steps are
never re-sorted. The disclaimer is always the last line.
"""

from eduaudit.audit.schemas import Opportunity, StructuredAuditResult

PLACEHOLDER = "Not specified"
EMPTY_SECTION = "None identified"
DISCLAIMER = (
    "*This is an AI-generated estimate based on the information provided, "
    "not a guarantee. Actual results may vary.*"
)


def _field(value: str | None) -> str:
    if value is None or not value.strip():
        return PLACEHOLDER
    return value


def _format_opportunity(index: int, opp: Opportunity) -> str:
    return "\n".join([
        f"### {index}. {opp.title} [{opp.priority} Priority]",
        "",
        opp.description,
        "",
        f"- **Time Savings:** {_field(opp.time_savings)}",
        f"- **Difficulty:** {_field(opp.difficulty)}",
        f"- **Estimated ROI:** {_field(opp.estimated_roi)}",
    ])


def format_audit(result: StructuredAuditResult) -> str:
    """Render a validated audit for display or export."""
    opportunities = [
        _format_opportunity(i, opp) for i, opp in enumerate(result.opportunities, start=1)
    ]
    bottlenecks = [f"- {b}" for b in result.bottlenecks]
    next_steps = [f"{i}. {step}" for i, step in enumerate(result.next_steps, start=1)]

    sections = [
        "# Automation Readiness Assessment",
        f"## Overall Score: {result.readiness_score}/100",
        result.summary,
        "## Key Automation Opportunities",
        "\n\n".join(opportunities) or EMPTY_SECTION,
        "## Current Bottlenecks",
        "\n".join(bottlenecks) or EMPTY_SECTION,
        "## Recommended Next Steps",
        "\n".join(next_steps) or EMPTY_SECTION,
        "---",
        DISCLAIMER,
    ]
    return "\n\n".join(sections)
