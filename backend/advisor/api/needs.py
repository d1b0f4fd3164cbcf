"""
Trend Advisor Backend — Needs API (POST /api/needs/generate)
"""

from fastapi import APIRouter, HTTPException, Request

from advisor import db, generators
from advisor.config import generate_error_code, log
from advisor.decoding import GenerationError
from advisor.generators import TrendNotFoundError
from advisor.llm import LLMError
from advisor.rate_limit import GENERATE_RATE_LIMIT, limiter
from advisor.models import GenerateNeedsRequest, GenerateNeedsResponse

router = APIRouter(prefix="/api/needs", tags=["needs"])


@router.post("/generate", response_model=GenerateNeedsResponse)
@limiter.limit(GENERATE_RATE_LIMIT)
async def generate_needs(request: Request, body: GenerateNeedsRequest) -> GenerateNeedsResponse:
    """
    POST /api/needs/generate

    Generate needs for one trend and company. 404 for an unknown trend,
    502 when the model output held no usable needs, 503 when every LLM
    provider failed. The client retries by calling this endpoint again.
    """
    request_id = request.headers.get("X-Request-Id")
    try:
        needs = await generators.generate_needs_from_trend(
            body.trend_id,
            body.company,
            max_needs=body.max_needs,
            request_id=request_id,
        )
    except TrendNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except GenerationError as e:
        raise HTTPException(
            status_code=502,
            detail={"message": str(e), "error_code": e.error_code or generate_error_code()},
        )
    except LLMError as e:
        code = generate_error_code()
        log("ERROR", "needs generation failed", request_id=request_id, error=str(e), error_code=code)
        raise HTTPException(
            status_code=503,
            detail={"message": "AI service is unavailable. Please try again.", "error_code": code},
        )

    await db.store_needs(needs)
    return GenerateNeedsResponse(needs=needs)
