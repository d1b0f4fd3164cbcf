"""
Trend Advisor Backend — Rate Limiting

Per-IP limiter shared by the app factory and the routers that decorate
their LLM-backed endpoints.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)

GENERATE_RATE_LIMIT = "10/minute"
