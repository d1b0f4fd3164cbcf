"""
Trend Advisor Backend — Central Configuration

All environment variables and LLM settings live here.
Import `settings`, `LLM_CONFIG`, `log`, and `generate_error_code` from this module.
Do not read `os.environ` anywhere else.
"""

import uuid
from datetime import datetime, timezone

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All environment variables. Loaded from .env or the process environment."""

    # LLM Providers
    anthropic_api_key: str
    openai_api_key: str = ""          # Optional fallback
    gemini_api_key: str = ""          # Optional fallback

    # Database
    supabase_url: str
    supabase_service_key: str

    # Generation
    max_needs: int = 5
    solution_count: int = 3

    # App
    environment: str = "development"  # "development" | "production" | "test"
    cors_origins: str = "http://localhost:3000"  # Comma-separated for multiple origins

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton — import this everywhere
settings = Settings()


# ──────────────────────────────────────────────────────
# Logging Utilities
# ──────────────────────────────────────────────────────

def generate_error_code() -> str:
    """Generate a short, user-friendly error reference code.

    Format: 'TA-' followed by 6 uppercase hex characters.
    Example: 'TA-3F8A2C'

    The same code is logged on the backend AND returned in the error response,
    so a user can quote it and the team can grep logs for it.
    """
    return f"TA-{uuid.uuid4().hex[:6].upper()}"


def log(level: str, message: str, **context) -> None:
    """Structured print-based logger.

    Every log line follows the format:
        [ISO_TIMESTAMP] [LEVEL] message | key1=value1 key2=value2

    Args:
        level: One of "INFO", "WARN", "ERROR".
        message: Human-readable description of what happened.
        **context: Arbitrary key-value pairs. Include request_id when available.

    Usage:
        log("INFO", "needs generation started", request_id="abc-123", trend_id="t-1")
        log("ERROR", "llm call failed", provider="anthropic/claude-sonnet-4-5",
            error_code="TA-3F8A2C", error=str(e))
    """
    ts = datetime.now(timezone.utc).isoformat()
    ctx = " ".join(f"{k}={v}" for k, v in context.items())
    print(f"[{ts}] [{level}] {message} | {ctx}", flush=True)


# ──────────────────────────────────────────────────────
# LLM Configuration
# ──────────────────────────────────────────────────────

LLM_CONFIG = {
    "persona": {
        "name": "Trend Advisor",
        "system_prompt": (
            "You are Trend Advisor, an AI business consultant and enterprise solution architect. "
            "You help companies turn market and technology trends into concrete business needs, "
            "and turn those needs into build, buy, or partner solutions.\n\n"
            "Guidelines:\n"
            "- Be specific to the company's industry, size, and technology maturity.\n"
            "- Use real vendor and product names; base costs on current market rates.\n"
            "- Output strictly valid JSON when instructed. No markdown code fences, no explanation text outside the JSON.\n"
            "- Keep financial projections realistic and justified. Never fabricate certainty."
        ),
    },
    "temperature": 0.3,
    "max_tokens": 3000,
    "fallback_chain": [
        "anthropic/claude-sonnet-4-5",   # Primary — supports web search
        "anthropic/claude-3-5-haiku-latest",  # Fallback 1 — fast + cheap
        "openai/gpt-4o-mini",            # Fallback 2 — non-Anthropic fallback
        "gemini/gemini-2.5-flash",       # Fallback 3 — last resort
    ],
}
