"""
Trend Advisor Backend — LLM Output Recovery

Locates the JSON payload inside raw completion text:
segment selection for multi-block responses, markdown fence stripping,
string-aware brace/bracket balancing, and key-guided multi-strategy search.

Pure synchronous text processing with no module state. Silent unless a
DiagnosticSink is passed in.
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, Optional

from advisor.config import log

# Called as sink(stage, **context) at each recovery stage.
DiagnosticSink = Callable[..., None]

STRATEGY_KEY_MATCH = "key-match"
STRATEGY_GENERIC_OBJECT = "generic-object"
STRATEGY_GENERIC_ARRAY = "generic-array"

_ANY_OBJECT_PATTERN = re.compile(r'\{\s*"[^"]+"\s*:')
_ARRAY_PATTERN = re.compile(r"\[\s*\{")
_FENCED_PATTERN = re.compile(r"^```(?:json)?\s*\n?(.*?)\n?```\s*$", re.DOTALL | re.IGNORECASE)
_OPENING_FENCE = re.compile(r"^```(?:json)?\n?", re.IGNORECASE)
_CLOSING_FENCE = re.compile(r"\n?```$")


@dataclass(frozen=True)
class ExtractionResult:
    """A candidate JSON substring and how it was found.

    `strategy` is None when nothing JSON-like was located; `text` is then the
    unmodified input. `complete` is False when the scan hit end-of-input
    before the opening delimiter was closed.
    """

    text: str
    strategy: Optional[str]
    segment_index: int = 0
    start: int = -1
    complete: bool = False

    @property
    def found(self) -> bool:
        return self.strategy is not None


def emit(sink: DiagnosticSink | None, stage: str, **context) -> None:
    if sink is not None:
        sink(stage, **context)


def log_sink(**bound) -> DiagnosticSink:
    """Build a sink that forwards recovery events to the structured logger.

    `bound` is attached to every line (e.g. request_id, item kind).
    """

    def sink(stage: str, **context) -> None:
        log("INFO", f"json recovery {stage}", **bound, **context)

    return sink


# ─────────────────────────────────────────────────────────────────────────────
# Response Normalizer
# ─────────────────────────────────────────────────────────────────────────────


def strip_code_fences(text: str) -> str:
    """
    Remove a markdown code fence wrapping the whole response.
    Handles: ```json\\n...\\n```, ```\\n...\\n```, and an opening fence whose
    closing fence is missing. Text that does not start with a fence is
    returned unchanged.
    """
    if not text or not isinstance(text, str):
        return text
    stripped = text.strip()
    if not stripped.startswith("```"):
        return text
    match = _FENCED_PATTERN.match(stripped)
    if match:
        return match.group(1).strip()
    stripped = _OPENING_FENCE.sub("", stripped, count=1)
    return _CLOSING_FENCE.sub("", stripped).strip()


def normalize_segments(completion: Any) -> list[str]:
    """
    Flatten a completion into its ordered text segments.

    Accepts a single string, a single content block, a list of strings, or a
    list of content blocks (mappings or objects exposing `type` and `text`).
    Non-text blocks such as
    tool calls are dropped; production order is kept.
    """
    if completion is None:
        return []
    if isinstance(completion, str):
        return [completion]
    if isinstance(completion, dict) or hasattr(completion, "type"):
        completion = [completion]

    segments: list[str] = []
    for block in completion:
        if isinstance(block, str):
            segments.append(block)
            continue
        if isinstance(block, dict):
            block_type = block.get("type", "text")
            text = block.get("text")
        else:
            block_type = getattr(block, "type", "text")
            text = getattr(block, "text", None)
        if block_type == "text" and isinstance(text, str):
            segments.append(text)
    return segments


def _has_pair(text: str, open_char: str, close_char: str) -> bool:
    start = text.find(open_char)
    return start != -1 and text.rfind(close_char) > start


def select_segment(segments: list[str], key: str) -> int:
    """
    Pick the segment most likely to hold the JSON payload.

    The first segment carrying `"key":` as a property together with an
    opening/closing `{}` or `[]` pair wins. A bare mention of the word in
    prose does not count. If no segment qualifies, the last one is used.
    """
    property_pattern = re.compile(r'"' + re.escape(key) + r'"\s*:')
    for index, segment in enumerate(segments):
        if not property_pattern.search(segment):
            continue
        if _has_pair(segment, "{", "}") or _has_pair(segment, "[", "]"):
            return index
    return len(segments) - 1


# ─────────────────────────────────────────────────────────────────────────────
# Balanced-Brace Extractor
# ─────────────────────────────────────────────────────────────────────────────


def _find_balanced_end(text: str, open_char: str, close_char: str) -> int:
    """Return the index closing the first top-level `open_char`, or -1."""
    depth = 0
    in_string = False
    escape_next = False

    for i, char in enumerate(text):
        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == open_char:
            depth += 1
        elif char == close_char and depth > 0:
            depth -= 1
            if depth == 0:
                return i
    return -1


def extract_balanced(text: str, open_char: str = "{", close_char: str = "}") -> str:
    """
    Return the prefix of `text` ending at the delimiter that closes its first
    top-level object. Braces inside string literals and escaped characters
    are ignored. If the object never closes, `text` is returned unchanged.
    """
    end = _find_balanced_end(text, open_char, close_char)
    if end == -1:
        return text
    return text[: end + 1]


def extract_balanced_array(text: str) -> str:
    """Bracket-counting variant of extract_balanced for top-level arrays."""
    return extract_balanced(text, "[", "]")


# ─────────────────────────────────────────────────────────────────────────────
# Key-Guided Locator
# ─────────────────────────────────────────────────────────────────────────────


def _extract_at(
    text: str,
    start: int,
    strategy: str,
    segment_index: int,
    sink: DiagnosticSink | None,
) -> ExtractionResult:
    open_char, close_char = ("[", "]") if strategy == STRATEGY_GENERIC_ARRAY else ("{", "}")
    tail = text[start:]
    end = _find_balanced_end(tail, open_char, close_char)
    candidate = tail if end == -1 else tail[: end + 1]
    emit(
        sink,
        "locate",
        strategy=strategy,
        segment=segment_index,
        start=start,
        length=len(candidate),
        complete=end != -1,
    )
    return ExtractionResult(
        text=candidate,
        strategy=strategy,
        segment_index=segment_index,
        start=start,
        complete=end != -1,
    )


def locate_json(
    text: str,
    key: str,
    allow_array: bool = True,
    segment_index: int = 0,
    sink: DiagnosticSink | None = None,
) -> ExtractionResult:
    """
    Find the JSON payload in free-form model output.

    Strategies, first success wins:
        1. key-match: an opening `{` followed (anywhere later) by `"key":`,
           case-insensitive. Extraction starts at that brace.
        2. generic-object: any `{ "name":` opening.
        3. generic-array: a `[ {` opening, bracket-balanced. Only when
           `allow_array`. A generic object that sits after an earlier
           `[ {` opening is an element of that array, so the array wins.

    Args:
        text: Fence-stripped segment text.
        key: Expected top-level property, e.g. "needs".
        allow_array: Whether a bare top-level array is an acceptable payload.
        segment_index: Index of the segment `text` came from (diagnostics only).
        sink: Optional diagnostic sink.

    Returns:
        ExtractionResult. When nothing matched, `strategy` is None and
        `text` is the unmodified input.
    """
    key_pattern = re.compile(r"\{[\s\S]*?\"" + re.escape(key) + r"\"[\s\S]*?:", re.IGNORECASE)
    key_match = key_pattern.search(text)
    if key_match:
        start = text.find("{", key_match.start())
        return _extract_at(text, start, STRATEGY_KEY_MATCH, segment_index, sink)

    emit(sink, "locate_fallback", key=key, segment=segment_index)

    object_match = _ANY_OBJECT_PATTERN.search(text)
    array_match = _ARRAY_PATTERN.search(text) if allow_array else None

    if object_match and not (array_match and array_match.start() < object_match.start()):
        return _extract_at(text, object_match.start(), STRATEGY_GENERIC_OBJECT, segment_index, sink)
    if array_match:
        return _extract_at(text, array_match.start(), STRATEGY_GENERIC_ARRAY, segment_index, sink)

    emit(sink, "locate_failed", key=key, segment=segment_index, length=len(text))
    return ExtractionResult(text=text, strategy=None, segment_index=segment_index)
