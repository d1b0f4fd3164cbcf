"""
Trend Advisor Backend — LLM Prompt Templates

All prompts are defined here. Persona system prompt is injected in llm.py.
Each template ends with the exact JSON shape the decoders expect.
"""

from advisor.models import (
    NEED_CATEGORIES,
    NEED_PRIORITIES,
    SOLUTION_CATEGORIES,
    CompanyContext,
    GenerateSolutionsRequest,
    Trend,
)


def _bullets(items: list[str]) -> str:
    return "\n".join(f"- {item}" for item in items)


# -----------------------------------------------------------------------------
# 1. build_needs_prompt
# -----------------------------------------------------------------------------

NEEDS_PROMPT = """
# Role
You are the "Needs Analyst" module for Trend Advisor. Given a market or technology trend and a company profile, you propose specific, actionable business needs the company should address because of the trend.

You output a single JSON object. Nothing else — no markdown, no explanation, no text before or after the JSON.

# Task

Generate {max_needs} business needs that:
1. Follow directly from the trend
2. Fit the company's industry, size, and technology maturity
3. Address its current challenges and primary goals
4. Are actionable and measurable

# Fields

- title: clear, specific need statement
- description: 2-3 sentences
- category: one of [{categories}]
- priority: one of [{priorities}]
- impactScore: 1-10 (business impact)
- effortScore: 1-10 (implementation effort)
- urgencyScore: 1-10 (time sensitivity)
- stakeholders: affected teams or roles
- businessValue: expected business value, one sentence
- risks: 2-3 risks of not addressing the need
- successMetrics: 2-3 measurable outcomes

# Output Format

Return ONLY a single JSON object with a "needs" array. No markdown code fences. No trailing commas.

{{
  "needs": [
    {{
      "title": "string",
      "description": "string",
      "category": "operational_efficiency",
      "priority": "high",
      "impactScore": 7,
      "effortScore": 4,
      "urgencyScore": 6,
      "stakeholders": ["Operations", "IT"],
      "businessValue": "string",
      "risks": ["risk 1", "risk 2"],
      "successMetrics": ["metric 1", "metric 2"]
    }}
  ]
}}
"""


def build_needs_prompt(trend: Trend, company: CompanyContext, max_needs: int) -> list[dict]:
    """
    Build prompt to derive company-specific needs from a trend.

    Expected output: {"needs": [...]} (decoded by NEEDS_SCHEMA)

    Returns:
        [{"role": "user", "content": "..."}]
    """
    parts = [
        NEEDS_PROMPT.format(
            max_needs=max_needs,
            categories=", ".join(NEED_CATEGORIES),
            priorities=", ".join(NEED_PRIORITIES),
        )
    ]
    impact = f"{trend.impact_score}/10" if trend.impact_score is not None else "unknown"
    parts.append(
        f"\n# Trend\nTitle: {trend.title}\nCategory: {trend.category}\n"
        f"Summary: {trend.summary}\nImpact Score: {impact}"
    )
    parts.append(
        f"\n\n# Company\nName: {company.name}\nIndustry: {company.industry}\n"
        f"Size: {company.size}\nTech Maturity: {company.tech_maturity}"
    )
    if company.current_challenges:
        parts.append(f"\n\n# Current Challenges\n{_bullets(company.current_challenges)}")
    if company.primary_goals:
        parts.append(f"\n\n# Primary Goals\n{_bullets(company.primary_goals)}")
    return [{"role": "user", "content": "".join(parts)}]


# -----------------------------------------------------------------------------
# 2. build_solutions_prompt
# -----------------------------------------------------------------------------

SOLUTIONS_PROMPT = """
# Role
You are the "Solution Architect" module for Trend Advisor. Given a business need and a company profile, you propose concrete solutions with realistic costs, timelines, and ROI. You may use web search to check current vendors and pricing.

Your final answer is a single JSON object. Nothing else — no markdown, no explanation around the JSON.

# Task

Generate exactly {count} solutions covering these approaches:
1. build — custom development with internal or contract teams
2. buy — an existing software product or platform
3. partner — a consulting firm or technology partner

For each solution:
- Costs realistic for a {size} company in {industry}: initial investment, monthly running cost, annual total cost of ownership
- Implementation time in months (min/max) suited to {maturity} tech maturity
- ROI: break-even months, 3-year return, confidence 0.0-1.0
- For buy/partner: a real vendor or firm name. For build: the technologies to use
- Risks, benefits, requirements, and real alternatives
- matchScore 0.0-1.0 for fit with this company

# Output Format

{{
  "solutions": [
    {{
      "approach": "build|buy|partner",
      "title": "Specific descriptive title",
      "description": "2-3 sentences with specifics",
      "category": "{categories}",
      "vendor": "Vendor name (omit for build)",
      "estimatedCost": {{"initial": 50000, "monthly": 2000, "annual": 74000}},
      "implementationTime": {{"min": 2, "max": 4, "unit": "months"}},
      "roi": {{"breakEvenMonths": 14, "threeYearReturn": 180000, "confidenceScore": 0.75}},
      "risks": ["risk 1", "risk 2"],
      "benefits": ["benefit 1", "benefit 2"],
      "requirements": ["requirement 1", "requirement 2"],
      "alternatives": ["alternative 1", "alternative 2"],
      "matchScore": 0.8
    }}
  ]
}}
"""


def build_solutions_prompt(request: GenerateSolutionsRequest, count: int) -> list[dict]:
    """
    Build prompt to propose build/buy/partner solutions for one need.

    Expected output: {"solutions": [...]} (decoded by SOLUTIONS_SCHEMA)
    """
    company = request.company
    parts = [
        SOLUTIONS_PROMPT.format(
            count=count,
            size=company.size,
            industry=company.industry,
            maturity=company.tech_maturity,
            categories="|".join(SOLUTION_CATEGORIES),
        )
    ]
    profile = (
        f"\n# Company\nName: {company.name}\nIndustry: {company.industry}\n"
        f"Size: {company.size}\nTech Maturity: {company.tech_maturity}"
    )
    if company.budget:
        profile += f"\nBudget Range: {company.budget}"
    parts.append(profile)
    if company.current_challenges:
        parts.append(f"\n\n# Current Challenges\n{_bullets(company.current_challenges)}")
    if company.primary_goals:
        parts.append(f"\n\n# Primary Goals\n{_bullets(company.primary_goals)}")
    parts.append(f"\n\n# Business Need\nNeed: {request.need_title}\nDetails: {request.need_description}")
    if request.trend_context:
        parts.append(f"\n\n# Related Trend\n{request.trend_context}")
    return [{"role": "user", "content": "".join(parts)}]
