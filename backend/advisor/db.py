"""
Trend Advisor Backend — Database Operations

Supabase/PostgreSQL operations: trend lookup and storage of generated
needs and solutions.
"""

from typing import Optional

from supabase import Client, create_client

from advisor.config import generate_error_code, log, settings
from advisor.models import Need, Solution, Trend

# ─────────────────────────────────────────────────────────────────────────────
# Supabase Client (singleton)
# ─────────────────────────────────────────────────────────────────────────────

_supabase: Client | None = None


def get_supabase() -> Client:
    """Return the Supabase client singleton. Creates it on first call."""
    global _supabase
    if _supabase is None:
        _supabase = create_client(settings.supabase_url, settings.supabase_service_key)
    return _supabase


# ─────────────────────────────────────────────────────────────────────────────
# Trends
# ─────────────────────────────────────────────────────────────────────────────


async def get_trend(trend_id: str) -> Optional[Trend]:
    """
    Look up a trend by id.
    Returns None if not found or on a read error (the error is logged).
    """
    try:
        sb = get_supabase()
        response = (
            sb.table("trends")
            .select("id, title, category, summary, impact_score")
            .eq("id", trend_id)
            .maybe_single()
            .execute()
        )
        # maybe_single().execute() returns None when no rows match in supabase-py v2
        if response is not None and response.data:
            return Trend.model_validate(response.data)
        return None
    except Exception as e:
        code = generate_error_code()
        log("ERROR", "db read failed", operation="get_trend", trend_id=trend_id, error=str(e), error_code=code)
        return None


# ─────────────────────────────────────────────────────────────────────────────
# Generated Items (fire-and-forget)
# ─────────────────────────────────────────────────────────────────────────────


async def store_needs(needs: list[Need]) -> None:
    """Insert generated needs. Fire-and-forget — log errors, don't raise."""
    if not needs:
        return
    try:
        sb = get_supabase()
        rows = [need.model_dump(mode="json") for need in needs]
        sb.table("needs").insert(rows).execute()
    except Exception as e:
        code = generate_error_code()
        log("ERROR", "db write failed", operation="store_needs", count=len(needs), error=str(e), error_code=code)


async def store_solutions(solutions: list[Solution]) -> None:
    """Insert generated solutions. Fire-and-forget — log errors, don't raise."""
    if not solutions:
        return
    try:
        sb = get_supabase()
        rows = [solution.model_dump(mode="json") for solution in solutions]
        sb.table("solutions").insert(rows).execute()
    except Exception as e:
        code = generate_error_code()
        log("ERROR", "db write failed", operation="store_solutions", count=len(solutions), error=str(e), error_code=code)
