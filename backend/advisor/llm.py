"""
Trend Advisor Backend — LLM Interactions

All LLM calls via litellm: completion with per-request provider fallback,
rate-limit cooldown caching, and flattening of the response into text segments.
Parsing of the returned text lives in recovery.py / decoding.py.
"""

import json
import time

import litellm

from advisor.config import LLM_CONFIG, generate_error_code, log
from advisor.recovery import normalize_segments

litellm.suppress_debug_info = True
litellm.drop_params = True  # Providers without web search silently drop web_search_options

# ── Rate-limit cooldown cache ────────────────────────────────────────────────
# Maps provider name → time.monotonic() deadline until which it is skipped.
_rate_limited_until: dict[str, float] = {}
RATE_LIMIT_COOLDOWN_SECONDS = 600
LLM_CALL_TIMEOUT_SECONDS = 120    # Web-search completions are slow


def _is_rate_limit_error(error: Exception) -> bool:
    """Check if an error is a rate-limit / quota error (transient)."""
    error_str = str(error).lower()
    return any(kw in error_str for kw in (
        "rate_limit", "ratelimit", "rate limit", "429", "quota", "overloaded",
        "timeout", "timed out",
    ))


def _mark_rate_limited(provider: str) -> None:
    """Record that a provider just hit a rate limit."""
    _rate_limited_until[provider] = time.monotonic() + RATE_LIMIT_COOLDOWN_SECONDS
    log("WARN", "provider rate-limited, will skip for cooldown",
        provider=provider, cooldown_seconds=RATE_LIMIT_COOLDOWN_SECONDS)


def _is_in_cooldown(provider: str) -> bool:
    """Return True if the provider is still in rate-limit cooldown."""
    deadline = _rate_limited_until.get(provider)
    if deadline is None:
        return False
    if time.monotonic() >= deadline:
        del _rate_limited_until[provider]
        return False
    return True


# ─────────────────────────────────────────────────────────────────────────────
# Custom Exceptions
# ─────────────────────────────────────────────────────────────────────────────


class LLMError(Exception):
    """All providers in the fallback chain failed."""

    pass


# ─────────────────────────────────────────────────────────────────────────────
# Core Functions
# ─────────────────────────────────────────────────────────────────────────────


async def call_llm(
    messages: list[dict],
    request_id: str | None = None,
    web_search: bool = False,
) -> list[str]:
    """
    Call the LLM with automatic per-request fallback through the provider chain.

    Rate-limit errors put the provider in cooldown for subsequent requests.
    The response is returned as-is, split into its text segments; this
    function never inspects or retries on the content's structure.

    Args:
        messages: List of message dicts (without system prompt — injected here).
        request_id: Optional request ID for logging correlation.
        web_search: Ask providers that support it to ground the answer in web search.

    Returns:
        Ordered, non-empty list of text segments.

    Raises:
        LLMError: If all providers in the fallback chain fail.
    """
    full_messages = _inject_system_prompt(messages)
    chain = LLM_CONFIG["fallback_chain"]
    last_error: Exception | None = None
    tried_any = False

    for idx, provider in enumerate(chain):
        if _is_in_cooldown(provider):
            log("INFO", "skipping rate-limited provider", request_id=request_id, provider=provider)
            continue

        tried_any = True
        log(
            "INFO",
            "llm call started",
            request_id=request_id,
            provider=provider,
            web_search=web_search,
        )
        start = time.perf_counter()

        try:
            completion_kwargs = {
                "model": provider,
                "messages": full_messages,
                "temperature": LLM_CONFIG["temperature"],
                "max_tokens": LLM_CONFIG["max_tokens"],
                "timeout": LLM_CALL_TIMEOUT_SECONDS,
            }
            if web_search:
                completion_kwargs["web_search_options"] = {"search_context_size": "medium"}

            response = await litellm.acompletion(**completion_kwargs)
            duration_ms = int((time.perf_counter() - start) * 1000)
            segments = _response_segments(response)

            tokens_used = None
            if hasattr(response, "usage") and response.usage:
                tokens_used = getattr(response.usage, "total_tokens", None)

            if not segments:
                log(
                    "WARN",
                    "llm returned empty content, will try next provider",
                    request_id=request_id,
                    provider=provider,
                    duration_ms=duration_ms,
                    tokens_used=tokens_used,
                )
                raise ValueError(f"Provider {provider} returned empty content")

            log(
                "INFO",
                "llm call succeeded",
                request_id=request_id,
                provider=provider,
                duration_ms=duration_ms,
                tokens_used=tokens_used,
                segments=len(segments),
            )
            return segments

        except Exception as e:
            code = generate_error_code()
            log(
                "ERROR",
                "llm call failed",
                request_id=request_id,
                provider=provider,
                error=str(e),
                error_code=code,
            )
            last_error = e

            if _is_rate_limit_error(e):
                _mark_rate_limited(provider)

            next_provider = None
            for nxt in chain[idx + 1:]:
                if not _is_in_cooldown(nxt):
                    next_provider = nxt
                    break
            if next_provider:
                log(
                    "WARN",
                    "llm provider fallback",
                    request_id=request_id,
                    from_provider=provider,
                    to_provider=next_provider,
                    reason=str(e),
                )
            continue

    # Every provider was in cooldown: clear and make one last pass.
    if not tried_any:
        log("WARN", "all providers in cooldown, clearing cooldowns for retry", request_id=request_id)
        _rate_limited_until.clear()
        return await call_llm(messages, request_id=request_id, web_search=web_search)

    raise LLMError(f"All LLM providers failed. Last error: {last_error}") from last_error


# ─────────────────────────────────────────────────────────────────────────────
# Helper Functions
# ─────────────────────────────────────────────────────────────────────────────


def _original_blocks(response) -> list | None:
    """
    Content blocks of the provider's raw response, if litellm kept them.

    litellm concatenates Anthropic text blocks into one message.content
    string with no separator; the untouched body is stored under
    _hidden_params["original_response"] (a dict or its JSON text).
    """
    hidden = getattr(response, "_hidden_params", None)
    if not isinstance(hidden, dict):
        return None
    original = hidden.get("original_response")
    if isinstance(original, str):
        try:
            original = json.loads(original)
        except ValueError:
            return None
    if isinstance(original, dict) and isinstance(original.get("content"), list):
        return original["content"]
    return None


def _response_segments(response) -> list[str]:
    """
    Split a completion response into text segments.

    Providers that used tools (e.g. web search) answer in several content
    blocks; each text block becomes a segment, rebuilt from the raw provider
    response when available, else from a list-valued message content.
    Otherwise the content string is the only segment. Reasoning-only
    responses fall back to the reasoning text.
    """
    blocks = _original_blocks(response)
    if blocks:
        segments = [text for text in normalize_segments(blocks) if text.strip()]
        if segments:
            return segments

    if not response.choices:
        return []
    msg = response.choices[0].message
    content = msg.content
    if isinstance(content, list):
        return [text for text in normalize_segments(content) if text.strip()]
    if content:
        return [content]
    reasoning = getattr(msg, "reasoning_content", None)
    if reasoning:
        return [reasoning]
    return []


def _inject_system_prompt(messages: list[dict]) -> list[dict]:
    """
    Prepend the persona system prompt to the message list.
    Returns a new list (does not mutate the input).
    """
    system_msg = {
        "role": "system",
        "content": LLM_CONFIG["persona"]["system_prompt"],
    }
    return [system_msg] + list(messages)
