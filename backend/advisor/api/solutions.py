"""
Trend Advisor Backend — Solutions API

POST /api/solutions/generate: need + company → build/buy/partner solutions.
POST /api/solutions/roi: ROI projection from caller-supplied figures.
POST /api/solutions/compare: normalized comparison weights.
"""

from fastapi import APIRouter, HTTPException, Request

from advisor import db, generators, roi
from advisor.config import generate_error_code, log
from advisor.decoding import GenerationError
from advisor.llm import LLMError
from advisor.rate_limit import GENERATE_RATE_LIMIT, limiter
from advisor.models import (
    CompareSolutionsRequest,
    GenerateSolutionsRequest,
    GenerateSolutionsResponse,
    ROIRequest,
    ROIResult,
    SolutionComparison,
)

router = APIRouter(prefix="/api/solutions", tags=["solutions"])


@router.post("/generate", response_model=GenerateSolutionsResponse)
@limiter.limit(GENERATE_RATE_LIMIT)
async def generate_solutions(request: Request, body: GenerateSolutionsRequest) -> GenerateSolutionsResponse:
    """
    POST /api/solutions/generate

    502 when the model output held no usable solutions, 503 when every LLM
    provider failed.
    """
    request_id = request.headers.get("X-Request-Id")
    try:
        solutions = await generators.generate_solutions(body, request_id=request_id)
    except GenerationError as e:
        raise HTTPException(
            status_code=502,
            detail={"message": str(e), "error_code": e.error_code or generate_error_code()},
        )
    except LLMError as e:
        code = generate_error_code()
        log("ERROR", "solutions generation failed", request_id=request_id, error=str(e), error_code=code)
        raise HTTPException(
            status_code=503,
            detail={"message": "AI service is unavailable. Please try again.", "error_code": code},
        )

    await db.store_solutions(solutions)
    return GenerateSolutionsResponse(solutions=solutions)


@router.post("/roi", response_model=ROIResult)
async def solution_roi(body: ROIRequest) -> ROIResult:
    """POST /api/solutions/roi"""
    try:
        return roi.calculate_roi(
            body.initial_investment,
            body.monthly_cost,
            expected_revenue=body.expected_revenue,
            cost_savings=body.cost_savings,
            productivity_gains=body.productivity_gains,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.post("/compare", response_model=SolutionComparison)
async def compare(body: CompareSolutionsRequest) -> SolutionComparison:
    """POST /api/solutions/compare"""
    return roi.compare_solutions(body.solution_ids, list(body.criteria))
