"""
Trend Advisor Backend — ROI & Comparison Arithmetic

Plain formulas over caller-supplied numbers. No LLM involvement.
"""

import math

from advisor.models import COMPARISON_CRITERIA, ROIResult, SolutionComparison

DISCOUNT_RATE = 0.10
NPV_YEARS = 3

BASE_WEIGHTS = {
    "cost": 0.25,
    "time": 0.20,
    "roi": 0.25,
    "risk": 0.15,
    "complexity": 0.05,
    "scalability": 0.05,
    "maintenance": 0.05,
}
EMPHASIS_FACTOR = 1.5


def calculate_roi(
    initial_investment: float,
    monthly_cost: float,
    expected_revenue: float = 0,
    cost_savings: float = 0,
    productivity_gains: float = 0,
) -> ROIResult:
    """
    Project ROI for a solution from annual benefit estimates.

    Benefits (revenue, savings, productivity) are annual figures. Payback is
    in whole months, -1 when the monthly net is not positive. NPV uses a
    3-year horizon at a 10% discount rate.

    Raises:
        ValueError: initial_investment or monthly_cost missing (zero).
    """
    if not initial_investment or not monthly_cost:
        raise ValueError("ROI calculation requires initial investment and monthly cost inputs")

    monthly_benefit = (expected_revenue + cost_savings + productivity_gains) / 12
    monthly_roi = monthly_benefit - monthly_cost
    annual_roi = monthly_roi * 12

    payback_period = math.ceil(initial_investment / monthly_roi) if monthly_roi > 0 else -1

    npv = -initial_investment
    for year in range(1, NPV_YEARS + 1):
        npv += annual_roi / (1 + DISCOUNT_RATE) ** year

    irr = (annual_roi - initial_investment) / initial_investment if annual_roi > 0 else 0.0

    return ROIResult(
        monthly_roi=monthly_roi,
        annual_roi=annual_roi,
        payback_period=payback_period,
        net_present_value=round(npv),
        internal_rate_of_return=irr,
    )


def compare_solutions(solution_ids: list[str], criteria: list[str]) -> SolutionComparison:
    """
    Weight comparison criteria for a set of solutions.

    Each emphasized criterion's base weight is multiplied by 1.5, then all
    weights are normalized to sum to 1. The first solution is the winner
    until per-solution scoring exists.
    """
    if not solution_ids or not criteria:
        raise ValueError("Comparison requires at least one solution and one criterion")
    unknown = [c for c in criteria if c not in COMPARISON_CRITERIA]
    if unknown:
        raise ValueError(f"Unknown comparison criteria: {', '.join(unknown)}")

    weights = dict(BASE_WEIGHTS)
    for criterion in criteria:
        weights[criterion] *= EMPHASIS_FACTOR

    total = sum(weights.values())
    weights = {name: weight / total for name, weight in weights.items()}

    return SolutionComparison(
        criteria=criteria[0],
        weights=weights,
        solutions=list(solution_ids),
        winner=solution_ids[0],
    )
