"""
Trend Advisor Backend — Generation Pipelines

needs:     trend + company → prompt → LLM → recovery/decoding → list[Need]
solutions: need + company  → prompt → LLM (web search) → recovery/decoding → list[Solution]

Both pipelines share parse_completion; they differ only in their ItemSchema.
The LLM is called exactly once per run. Structural failures propagate as
GenerationError subclasses and are never retried here — the caller decides
whether to re-run the whole request.
"""

from datetime import datetime, timezone

from advisor import db, llm, prompts
from advisor.config import generate_error_code, log, settings
from advisor.decoding import (
    GenerationError,
    ItemSchema,
    amount_field,
    enum_field,
    list_field,
    object_field,
    optional_text_field,
    parse_completion,
    ratio_field,
    score_field,
    text_field,
)
from advisor.models import (
    DEFAULT_NEED_CATEGORY,
    DEFAULT_NEED_PRIORITY,
    DEFAULT_SCORE,
    DEFAULT_SOLUTION_APPROACH,
    DEFAULT_SOLUTION_CATEGORY,
    NEED_CATEGORIES,
    NEED_PRIORITIES,
    SOLUTION_APPROACHES,
    SOLUTION_CATEGORIES,
    CompanyContext,
    GenerateSolutionsRequest,
    Need,
    Solution,
)
from advisor.recovery import log_sink


class TrendNotFoundError(Exception):
    """The referenced trend does not exist. Raised before any LLM call."""

    def __init__(self, trend_id: str):
        self.trend_id = trend_id
        super().__init__(f"Trend not found: {trend_id}")


# ─────────────────────────────────────────────────────────────────────────────
# Item Schemas
# ─────────────────────────────────────────────────────────────────────────────

NEEDS_SCHEMA = ItemSchema(
    key="needs",
    id_prefix="need",
    model=Need,
    fields={
        "title": text_field("title", "Generated Need {n}"),
        "description": text_field("description", "AI-generated business need"),
        "category": enum_field("category", NEED_CATEGORIES, DEFAULT_NEED_CATEGORY),
        "priority": enum_field("priority", NEED_PRIORITIES, DEFAULT_NEED_PRIORITY),
        "impact_score": score_field("impactScore", DEFAULT_SCORE),
        "effort_score": score_field("effortScore", DEFAULT_SCORE),
        "urgency_score": score_field("urgencyScore", DEFAULT_SCORE),
        "stakeholders": list_field("stakeholders", ["Management"]),
        "business_value": text_field("businessValue", "Expected to improve business operations"),
        "risks": list_field("risks", ["Implementation challenges"]),
        "success_metrics": list_field("successMetrics", ["Success measurement needed"]),
    },
)

SOLUTIONS_SCHEMA = ItemSchema(
    key="solutions",
    id_prefix="solution",
    model=Solution,
    fields={
        "approach": enum_field("approach", SOLUTION_APPROACHES, DEFAULT_SOLUTION_APPROACH),
        "title": text_field("title", "Proposed Solution {n}"),
        "description": text_field("description", "AI-generated solution"),
        "category": enum_field("category", SOLUTION_CATEGORIES, DEFAULT_SOLUTION_CATEGORY),
        "vendor": optional_text_field("vendor"),
        "estimated_cost": object_field("estimatedCost", {
            "initial": amount_field("initial"),
            "monthly": amount_field("monthly"),
            "annual": amount_field("annual"),
        }),
        "implementation_time": object_field("implementationTime", {
            "min": amount_field("min", 1),
            "max": amount_field("max", 6),
            "unit": text_field("unit", "months"),
        }),
        "roi": object_field("roi", {
            "break_even_months": amount_field("breakEvenMonths", 12),
            "three_year_return": amount_field("threeYearReturn", 0),
            "confidence_score": ratio_field("confidenceScore", 0.7),
        }),
        "risks": list_field("risks", ["Implementation challenges"]),
        "benefits": list_field("benefits", ["Business value to be confirmed"]),
        "requirements": list_field("requirements", ["Requirements assessment needed"]),
        "alternatives": list_field("alternatives", ["Alternatives to be evaluated"]),
        "match_score": ratio_field("matchScore", 0.75),
    },
)


# ─────────────────────────────────────────────────────────────────────────────
# Pipelines
# ─────────────────────────────────────────────────────────────────────────────


async def generate_needs_from_trend(
    trend_id: str,
    company: CompanyContext,
    max_needs: int | None = None,
    request_id: str | None = None,
) -> list[Need]:
    """
    Generate company-specific needs for a trend.

    Raises:
        TrendNotFoundError: Unknown trend_id (no LLM call is made).
        LLMError: Every provider failed.
        GenerationError: The response held no usable list of needs.
    """
    trend = await db.get_trend(trend_id)
    if trend is None:
        log("WARN", "trend not found", request_id=request_id, trend_id=trend_id)
        raise TrendNotFoundError(trend_id)

    count = max_needs or settings.max_needs
    log("INFO", "needs generation started", request_id=request_id, trend_id=trend_id,
        company_id=company.id, max_needs=count)

    messages = prompts.build_needs_prompt(trend, company, count)
    completion = await llm.call_llm(messages, request_id=request_id)

    now = datetime.now(timezone.utc)
    try:
        needs = parse_completion(
            completion,
            NEEDS_SCHEMA,
            source_id=trend_id,
            extra={"trend_id": trend_id, "company_id": company.id, "created_at": now, "updated_at": now},
            created_at=now,
            sink=log_sink(request_id=request_id, kind="needs"),
        )
    except GenerationError as e:
        _log_generation_failure(e, "needs", request_id)
        raise

    log("INFO", "needs generation completed", request_id=request_id, trend_id=trend_id, count=len(needs))
    return needs


async def generate_solutions(
    request: GenerateSolutionsRequest,
    request_id: str | None = None,
) -> list[Solution]:
    """
    Generate build/buy/partner solutions for one need.

    The completion may come back in several text blocks when the model used
    web search; parse_completion picks the block holding the payload.

    Raises:
        LLMError: Every provider failed.
        GenerationError: The response held no usable list of solutions.
    """
    log("INFO", "solutions generation started", request_id=request_id, need_id=request.need_id,
        company_id=request.company.id)

    messages = prompts.build_solutions_prompt(request, settings.solution_count)
    completion = await llm.call_llm(messages, request_id=request_id, web_search=True)

    now = datetime.now(timezone.utc)
    try:
        solutions = parse_completion(
            completion,
            SOLUTIONS_SCHEMA,
            source_id=request.need_id,
            extra={"need_id": request.need_id, "created_at": now},
            created_at=now,
            sink=log_sink(request_id=request_id, kind="solutions"),
        )
    except GenerationError as e:
        _log_generation_failure(e, "solutions", request_id)
        raise

    log("INFO", "solutions generation completed", request_id=request_id, need_id=request.need_id,
        count=len(solutions))
    return solutions


def _log_generation_failure(error: GenerationError, kind: str, request_id: str | None) -> None:
    code = generate_error_code()
    error.error_code = code
    log(
        "ERROR",
        "generation produced no usable output",
        request_id=request_id,
        kind=kind,
        failure=type(error).__name__,
        error=error.detail,
        raw_output=(error.raw_output or "")[:500],
        error_code=code,
    )
