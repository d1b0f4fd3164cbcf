"""
Trend Advisor Backend — Shared Test Fixtures

Provides mocked versions of external services (LLM, DB) and sample inputs
for deterministic, fast unit tests.
"""

import json
import os
import sys
from dataclasses import dataclass, field
from typing import Any, Optional
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient, ASGITransport

# Ensure advisor package is importable without an install
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))


# -----------------------------------------------------------------------------
# Environment Setup (before importing advisor modules)
# -----------------------------------------------------------------------------

os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key")
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")
os.environ.setdefault("GEMINI_API_KEY", "test-gemini-key")
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-supabase-key")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("CORS_ORIGINS", "http://localhost:3000")


# -----------------------------------------------------------------------------
# Mock Response Classes
# -----------------------------------------------------------------------------


@dataclass
class MockLLMMessage:
    """Mock message from LLM response. content may be a string or a list of blocks."""
    content: Any
    reasoning_content: Optional[str] = None


@dataclass
class MockLLMChoice:
    """Mock choice from LLM response."""
    message: MockLLMMessage


@dataclass
class MockLLMUsage:
    """Mock usage stats from LLM response."""
    total_tokens: int = 100
    prompt_tokens: int = 50
    completion_tokens: int = 50


@dataclass
class MockLLMResponse:
    """Mock LLM completion response."""
    choices: list[MockLLMChoice]
    usage: MockLLMUsage = None
    _hidden_params: dict = field(default_factory=dict)

    def __post_init__(self):
        if self.usage is None:
            self.usage = MockLLMUsage()


def create_mock_llm_response(content: Any) -> MockLLMResponse:
    """Create a mock LLM response with given content (string or list of blocks)."""
    return MockLLMResponse(
        choices=[MockLLMChoice(message=MockLLMMessage(content=content))]
    )


def create_mock_web_search_response(blocks: list[dict]) -> MockLLMResponse:
    """
    Mock a multi-block Anthropic response the way litellm returns it:
    text blocks glued into one content string, raw body kept in _hidden_params.
    """
    joined = "".join(block["text"] for block in blocks if block.get("type") == "text")
    raw = {"id": "msg_1", "type": "message", "role": "assistant", "content": blocks}
    return MockLLMResponse(
        choices=[MockLLMChoice(message=MockLLMMessage(content=joined))],
        _hidden_params={"original_response": json.dumps(raw)},
    )


# -----------------------------------------------------------------------------
# Sample Data Fixtures
# -----------------------------------------------------------------------------

SAMPLE_TREND = {
    "id": "trend-1",
    "title": "Agentic AI in back-office operations",
    "category": "automation",
    "summary": "LLM agents are taking over repetitive finance and HR workflows.",
    "impact_score": 8,
}


def sample_company_payload() -> dict:
    return {
        "id": "company-1",
        "name": "Acme Logistics",
        "industry": "Logistics",
        "size": "smb",
        "tech_maturity": "medium",
        "current_challenges": ["Manual invoice processing", "High churn in dispatch staff"],
        "primary_goals": ["Cut operating costs 15%"],
        "budget": "$100k-$250k",
    }


@pytest.fixture
def company():
    from advisor.models import CompanyContext
    return CompanyContext(**sample_company_payload())


@pytest.fixture
def mock_needs_response() -> dict:
    """Sample needs payload as the model is asked to return it."""
    return {
        "needs": [
            {
                "title": "Automate invoice intake",
                "description": "Use document AI to capture and validate supplier invoices.",
                "category": "automation",
                "priority": "high",
                "impactScore": 8,
                "effortScore": 4,
                "urgencyScore": 7,
                "stakeholders": ["Finance", "IT"],
                "businessValue": "Cuts invoice handling cost by half.",
                "risks": ["Vendor lock-in", "Data quality"],
                "successMetrics": ["Invoice cycle time", "Error rate"],
            },
            {
                "title": "Dispatcher copilot",
                "description": "Assist dispatchers with route and load suggestions.",
                "category": "operational_efficiency",
                "priority": "medium",
                "impactScore": 6,
                "effortScore": 6,
                "urgencyScore": 5,
                "stakeholders": ["Operations"],
                "businessValue": "Reduces onboarding time for new dispatchers.",
                "risks": ["Adoption"],
                "successMetrics": ["Time to productivity"],
            },
        ]
    }


@pytest.fixture
def mock_solutions_response() -> dict:
    """Sample solutions payload with all three approaches."""
    return {
        "solutions": [
            {
                "approach": "buy",
                "title": "Rossum invoice automation",
                "description": "SaaS document AI for invoice capture.",
                "category": "automation",
                "vendor": "Rossum",
                "estimatedCost": {"initial": 15000, "monthly": 2500, "annual": 45000},
                "implementationTime": {"min": 1, "max": 3, "unit": "months"},
                "roi": {"breakEvenMonths": 9, "threeYearReturn": 210000, "confidenceScore": 0.8},
                "risks": ["Vendor lock-in"],
                "benefits": ["Fast rollout"],
                "requirements": ["ERP integration"],
                "alternatives": ["ABBYY", "Hypatos"],
                "matchScore": 0.85,
            },
            {
                "approach": "build",
                "title": "In-house extraction service",
                "description": "Custom pipeline on a hosted LLM.",
                "category": "data_management",
                "estimatedCost": {"initial": 120000, "monthly": 4000, "annual": 168000},
                "implementationTime": {"min": 4, "max": 8, "unit": "months"},
                "roi": {"breakEvenMonths": 20, "threeYearReturn": 150000, "confidenceScore": 0.6},
                "risks": ["Hiring"],
                "benefits": ["Full control"],
                "requirements": ["ML engineers"],
                "alternatives": ["Buy"],
                "matchScore": 0.7,
            },
            {
                "approach": "partner",
                "title": "Accenture finance transformation",
                "description": "Partner-led automation program.",
                "category": "process_optimization",
                "vendor": "Accenture",
                "estimatedCost": {"initial": 200000, "monthly": 10000, "annual": 320000},
                "implementationTime": {"min": 6, "max": 12, "unit": "months"},
                "roi": {"breakEvenMonths": 30, "threeYearReturn": 90000, "confidenceScore": 0.65},
                "risks": ["Cost overrun"],
                "benefits": ["Change management included"],
                "requirements": ["Executive sponsor"],
                "alternatives": ["Deloitte"],
                "matchScore": 0.72,
            },
        ]
    }


# -----------------------------------------------------------------------------
# LLM Mocking Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def mock_llm(monkeypatch):
    """
    Mock litellm.acompletion to return predictable responses.

    Returns the mock so tests can customize responses via return_value.
    """
    async def mock_acompletion(*args, **kwargs) -> MockLLMResponse:
        return create_mock_llm_response('{"needs": [{"title": "Default need"}]}')

    mock = AsyncMock(side_effect=mock_acompletion)
    monkeypatch.setattr("litellm.acompletion", mock)
    return mock


@pytest.fixture
def mock_llm_with_response(monkeypatch):
    """
    Factory fixture to mock the LLM with a specific response.

    Usage:
        def test_example(mock_llm_with_response):
            mock = mock_llm_with_response({"needs": [...]})
    Strings are passed through unchanged; a list of content blocks is
    returned as a multi-block web-search response.
    """
    def _create_mock(response_data: Any):
        if isinstance(response_data, list):
            response = create_mock_web_search_response(response_data)
        else:
            content = json.dumps(response_data) if isinstance(response_data, dict) else response_data
            response = create_mock_llm_response(content)

        async def mock_acompletion(*args, **kwargs) -> MockLLMResponse:
            return response

        mock = AsyncMock(side_effect=mock_acompletion)
        monkeypatch.setattr("litellm.acompletion", mock)
        return mock

    return _create_mock


@pytest.fixture
def mock_llm_failure(monkeypatch):
    """Mock LLM to simulate all providers failing."""
    async def mock_acompletion(*args, **kwargs):
        raise Exception("Rate limit exceeded")

    mock = AsyncMock(side_effect=mock_acompletion)
    monkeypatch.setattr("litellm.acompletion", mock)
    return mock


# -----------------------------------------------------------------------------
# Database Mocking Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def mock_db(monkeypatch):
    """
    Mock all database operations with in-memory storage.

    Returns the storage dict for inspection.
    """
    from advisor.models import Trend

    storage = {
        "trends": {SAMPLE_TREND["id"]: dict(SAMPLE_TREND)},
        "needs": [],
        "solutions": [],
    }

    async def mock_get_trend(trend_id: str) -> Optional[Trend]:
        row = storage["trends"].get(trend_id)
        return Trend.model_validate(row) if row else None

    async def mock_store_needs(needs) -> None:
        storage["needs"].extend(needs)

    async def mock_store_solutions(solutions) -> None:
        storage["solutions"].extend(solutions)

    monkeypatch.setattr("advisor.db.get_trend", AsyncMock(side_effect=mock_get_trend))
    monkeypatch.setattr("advisor.db.store_needs", AsyncMock(side_effect=mock_store_needs))
    monkeypatch.setattr("advisor.db.store_solutions", AsyncMock(side_effect=mock_store_solutions))

    return storage


# -----------------------------------------------------------------------------
# HTTP Client Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
async def client():
    """Async HTTP client for testing FastAPI endpoints."""
    from advisor.main import app
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# -----------------------------------------------------------------------------
# Module State Reset Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_llm_state():
    """Reset provider cooldowns and rate limits before each test."""
    import advisor.llm as llm_module
    from advisor.rate_limit import limiter
    llm_module._rate_limited_until.clear()
    limiter.reset()
    yield
    llm_module._rate_limited_until.clear()
    limiter.reset()


# -----------------------------------------------------------------------------
# Recording Sink
# -----------------------------------------------------------------------------


class RecordingSink:
    """Diagnostic sink that keeps every (stage, context) event."""

    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    def __call__(self, stage: str, **context) -> None:
        self.events.append((stage, context))

    def stages(self) -> list[str]:
        return [stage for stage, _ in self.events]


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
