"""
Prompt Builder — BusinessIntake → (system, user) prompt pair.

Pure functions. Absent fields render as explicit placeholders so the model
always sees the same input shape, and identical intake yields
byte-identical prompts.
"""

from dataclasses import dataclass

from eduaudit.audit.schemas import BusinessIntake

NOT_SPECIFIED = "Not specified"
NOT_PROVIDED = "Not provided"


AUDIT_SYSTEM_PROMPT = """You are an AI business automation consultant specializing in education businesses.

Your task is to analyze the business and provide a structured audit with:
1. Automation readiness score (integer 0-100)
2. Top 3-5 specific automation opportunities, in order of recommendation
3. Estimated time savings per week for each opportunity
4. Priority ranking: "High" (large time savings, low effort, do first), "Medium", or "Low"
5. Estimated ROI: a short range with a time frame, e.g. "3-5x in 6 months"
6. The main operational bottlenecks
7. Clear next steps

Be honest and specific. Focus on realistic, implementable automations.
Acknowledge that this is an AI-generated estimate, not a guarantee.

Return ONLY valid JSON with exactly this structure:
{
  "readinessScore": 75,
  "summary": "Brief 2-sentence summary",
  "opportunities": [
    {
      "title": "Automation name",
      "description": "What it does",
      "timeSavings": "5-8 hours/week",
      "priority": "High",
      "difficulty": "Medium",
      "estimatedROI": "3-5x in 6 months"
    }
  ],
  "nextSteps": ["Step 1", "Step 2", "Step 3"],
  "bottlenecks": ["Main bottleneck 1", "Main bottleneck 2"]
}"""

SIMPLE_SYSTEM_PROMPT = (
    "You are an AI business consultant for education businesses. "
    "Provide a concise 3-paragraph audit identifying automation opportunities, "
    "time savings, and ROI projections. "
    "State that this is an AI-generated estimate, not a guarantee."
)

STRICT_REMINDER = (
    "Your previous reply could not be parsed. Respond with a single JSON object "
    "only, no prose and no code fences. Use exactly the keys shown above. "
    "readinessScore must be an integer between 0 and 100 and every priority "
    'must be one of "High", "Medium" or "Low".'
)


@dataclass(frozen=True)
class AuditPrompt:
    system: str
    user: str


def _value(value: str | None, placeholder: str = NOT_SPECIFIED) -> str:
    if value is None:
        return placeholder
    value = value.strip()
    return value or placeholder


def build_audit_prompt(intake: BusinessIntake) -> AuditPrompt:
    """Structured-mode prompt: every intake field, placeholder when absent."""
    user = "\n".join([
        f"Business Type: {_value(intake.business_type)}",
        f"Current Tools: {_value(intake.current_tools)}",
        f"Team Size: {_value(intake.team_size)}",
        f"Primary Bottleneck: {_value(intake.primary_bottleneck)}",
        f"Monthly Leads/Students: {_value(intake.monthly_leads)}",
        f"Current Automation Level: {_value(intake.automation_level)}",
        f"Business Description: {_value(intake.business_description, NOT_PROVIDED)}",
        f"Current Revenue: {_value(intake.current_revenue)}",
        "",
        "Analyze this education business and provide a detailed automation audit.",
    ])
    return AuditPrompt(system=AUDIT_SYSTEM_PROMPT, user=user)


def build_simple_prompt(intake: BusinessIntake) -> AuditPrompt:
    """Simple-mode prompt: description and revenue only, prose answer."""
    user = (
        f"Business: {_value(intake.business_description, NOT_PROVIDED)}\n"
        f"Current Revenue: {_value(intake.current_revenue)}\n"
        "\n"
        "Provide a business automation audit."
    )
    return AuditPrompt(system=SIMPLE_SYSTEM_PROMPT, user=user)


def with_strict_reminder(prompt: AuditPrompt) -> AuditPrompt:
    """Same prompt with the JSON-only reminder appended, for the single re-prompt."""
    return AuditPrompt(system=f"{prompt.system}\n\n{STRICT_REMINDER}", user=prompt.user)
