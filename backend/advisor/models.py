"""
Single source of truth for all Pydantic models (requests, responses, domain items).
Field vocabularies and placeholder defaults for generated items live here too.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional, get_args

from pydantic import BaseModel, ConfigDict, Field, model_validator


# -----------------------------------------------------------------------------
# Vocabularies
# -----------------------------------------------------------------------------

NeedCategory = Literal[
    "automation",
    "data_insights",
    "customer_experience",
    "operational_efficiency",
    "competitive_advantage",
    "risk_management",
    "cost_reduction",
    "innovation",
]
NeedPriority = Literal["low", "medium", "high", "critical"]
SolutionApproach = Literal["build", "buy", "partner"]
SolutionCategory = Literal[
    "automation",
    "analytics",
    "customer_experience",
    "infrastructure",
    "security",
    "data_management",
    "collaboration",
    "process_optimization",
]
ComparisonCriterion = Literal["cost", "time", "roi", "risk", "complexity", "scalability", "maintenance"]

NEED_CATEGORIES: tuple[str, ...] = get_args(NeedCategory)
NEED_PRIORITIES: tuple[str, ...] = get_args(NeedPriority)
SOLUTION_APPROACHES: tuple[str, ...] = get_args(SolutionApproach)
SOLUTION_CATEGORIES: tuple[str, ...] = get_args(SolutionCategory)
COMPARISON_CRITERIA: tuple[str, ...] = get_args(ComparisonCriterion)

DEFAULT_NEED_CATEGORY = "operational_efficiency"
DEFAULT_NEED_PRIORITY = "medium"
DEFAULT_SOLUTION_APPROACH = "build"
DEFAULT_SOLUTION_CATEGORY = "process_optimization"
DEFAULT_SCORE = 5


# -----------------------------------------------------------------------------
# Input Context
# -----------------------------------------------------------------------------


class CompanyContext(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    industry: str
    size: str = Field(..., description="e.g. 'startup', 'smb', 'enterprise'")
    tech_maturity: str = Field("medium", description="'low' | 'medium' | 'high'")
    current_challenges: list[str] = []
    primary_goals: list[str] = []
    budget: Optional[str] = None


class Trend(BaseModel):
    id: str
    title: str
    category: str = ""
    summary: str = ""
    impact_score: Optional[int] = None


# -----------------------------------------------------------------------------
# Domain Items (output of the generation pipelines)
# -----------------------------------------------------------------------------


class Need(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    trend_id: str
    company_id: str
    title: str
    description: str
    category: NeedCategory
    priority: NeedPriority
    impact_score: int = Field(..., ge=1, le=10)
    effort_score: int = Field(..., ge=1, le=10)
    urgency_score: int = Field(..., ge=1, le=10)
    stakeholders: list[str]
    business_value: str
    risks: list[str]
    success_metrics: list[str]
    created_at: datetime
    updated_at: datetime


class EstimatedCost(BaseModel):
    model_config = ConfigDict(frozen=True)

    initial: float = 0
    monthly: float = 0
    annual: float = 0


class ImplementationTime(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: float = 1
    max: float = 6
    unit: str = "months"

    @model_validator(mode="before")
    @classmethod
    def order_bounds(cls, data: object) -> object:
        """Swap min/max when the model reports them reversed."""
        if isinstance(data, dict):
            low, high = data.get("min"), data.get("max")
            if isinstance(low, (int, float)) and isinstance(high, (int, float)) and low > high:
                data = {**data, "min": high, "max": low}
        return data


class SolutionROI(BaseModel):
    model_config = ConfigDict(frozen=True)

    break_even_months: float = 12
    three_year_return: float = 0
    confidence_score: float = Field(0.7, ge=0, le=1)


class Solution(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    need_id: str
    approach: SolutionApproach
    title: str
    description: str
    category: SolutionCategory
    vendor: Optional[str] = None
    estimated_cost: EstimatedCost
    implementation_time: ImplementationTime
    roi: SolutionROI
    risks: list[str]
    benefits: list[str]
    requirements: list[str]
    alternatives: list[str]
    match_score: float = Field(..., ge=0, le=1)
    created_at: datetime


# -----------------------------------------------------------------------------
# Request / Response Models
# -----------------------------------------------------------------------------


class GenerateNeedsRequest(BaseModel):
    trend_id: str = Field(..., min_length=1)
    company: CompanyContext
    max_needs: Optional[int] = Field(None, ge=1, le=10)


class GenerateNeedsResponse(BaseModel):
    needs: list[Need]


class GenerateSolutionsRequest(BaseModel):
    need_id: str = Field(..., min_length=1)
    need_title: str = Field(..., min_length=1, max_length=300)
    need_description: str = ""
    company: CompanyContext
    trend_context: Optional[str] = None


class GenerateSolutionsResponse(BaseModel):
    solutions: list[Solution]


class ROIRequest(BaseModel):
    initial_investment: float = Field(..., description="One-off setup cost; must be non-zero")
    monthly_cost: float = Field(..., description="Ongoing monthly cost; must be non-zero")
    expected_revenue: float = 0
    cost_savings: float = 0
    productivity_gains: float = 0


class ROIResult(BaseModel):
    monthly_roi: float
    annual_roi: float
    payback_period: int  # months; -1 when the solution never pays back
    net_present_value: int
    internal_rate_of_return: float


class CompareSolutionsRequest(BaseModel):
    solution_ids: list[str] = Field(..., min_length=1)
    criteria: list[ComparisonCriterion] = Field(..., min_length=1)


class SolutionComparison(BaseModel):
    criteria: ComparisonCriterion
    weights: dict[str, float]
    solutions: list[str]
    winner: str
