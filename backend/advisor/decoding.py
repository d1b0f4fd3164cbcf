"""
Trend Advisor Backend — Decode & Validate

Turns a located JSON candidate into validated domain items.

One shared, parameterized pipeline serves every item kind: an ItemSchema
names the top-level key, the output model, and a rule per field. Rules never
raise; bad or missing values fall back to defaults so a partly malformed
batch still yields usable items. Only structural failures raise, as
GenerationError subclasses.
"""

import json
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from pydantic import BaseModel

from advisor.recovery import (
    DiagnosticSink,
    ExtractionResult,
    emit,
    locate_json,
    normalize_segments,
    select_segment,
    strip_code_fences,
)

RAW_OUTPUT_LIMIT = 1000
SNIPPET_RADIUS = 40


# ─────────────────────────────────────────────────────────────────────────────
# Custom Exceptions
# ─────────────────────────────────────────────────────────────────────────────


class GenerationError(Exception):
    """Generation ran but did not produce a usable list of items."""

    def __init__(self, detail: str, raw_output: str | None = None):
        self.detail = detail
        self.raw_output = raw_output
        self.error_code: str | None = None  # set by the pipeline when the failure is logged
        super().__init__(f"Generation failed to produce usable output: {detail}")


class ExtractionError(GenerationError):
    """No candidate JSON could be located in the completion."""


class ParseError(GenerationError):
    """A candidate was located but is not valid JSON."""

    def __init__(self, detail: str, offset: int, raw_output: str | None = None):
        self.offset = offset
        super().__init__(detail, raw_output=raw_output)


class ShapeError(GenerationError):
    """Parsed JSON is neither a list nor an object exposing the expected list."""


class EmptyBatchError(GenerationError):
    """The expected list was present but yielded zero items."""


def _truncate(text: str, limit: int = RAW_OUTPUT_LIMIT) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


# ─────────────────────────────────────────────────────────────────────────────
# Field Rules
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class FieldRule:
    """Reads `source` from a raw item and coerces it. coerce(value, index)."""

    source: str
    coerce: Callable[[Any, int], Any]

    def apply(self, raw: dict, index: int) -> Any:
        return self.coerce(raw.get(self.source), index)


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    # ints are always finite; math.isfinite would overflow on huge ones
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value)


def text_field(source: str, default: str) -> FieldRule:
    """Non-empty string, else `default`. `{n}` in the default becomes the 1-based position."""

    def coerce(value: Any, index: int) -> str:
        if isinstance(value, str) and value.strip():
            return value.strip()
        return default.format(n=index + 1)

    return FieldRule(source, coerce)


def optional_text_field(source: str) -> FieldRule:
    def coerce(value: Any, index: int) -> Optional[str]:
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    return FieldRule(source, coerce)


def enum_field(source: str, choices: tuple[str, ...], default: str) -> FieldRule:
    """Closed vocabulary. Case and surrounding whitespace are ignored; anything else → default."""

    def coerce(value: Any, index: int) -> str:
        if isinstance(value, str):
            candidate = value.strip().lower()
            if candidate in choices:
                return candidate
        return default

    return FieldRule(source, coerce)


def score_field(source: str, default: int = 5, low: int = 1, high: int = 10) -> FieldRule:
    """Integer score clamped to [low, high]. Non-numbers (booleans included) → default."""

    def coerce(value: Any, index: int) -> int:
        if not _is_number(value):
            return default
        return int(round(min(max(value, low), high)))

    return FieldRule(source, coerce)


def ratio_field(source: str, default: float) -> FieldRule:
    """Float clamped to [0, 1]."""

    def coerce(value: Any, index: int) -> float:
        if not _is_number(value):
            return default
        return float(min(max(value, 0.0), 1.0))

    return FieldRule(source, coerce)


def amount_field(source: str, default: float = 0) -> FieldRule:
    """Non-negative number (money, months)."""

    def coerce(value: Any, index: int) -> float:
        if not _is_number(value):
            return default
        try:
            return float(max(value, 0))
        except OverflowError:
            return default

    return FieldRule(source, coerce)


def list_field(source: str, placeholder: list[str]) -> FieldRule:
    """List of strings. Absent or not a list → a copy of `placeholder`."""

    def coerce(value: Any, index: int) -> list[str]:
        if not isinstance(value, list):
            return list(placeholder)
        items = []
        for entry in value:
            if isinstance(entry, str):
                if entry.strip():
                    items.append(entry.strip())
            elif _is_number(entry):
                items.append(str(entry))
        return items

    return FieldRule(source, coerce)


def object_field(source: str, fields: dict[str, FieldRule]) -> FieldRule:
    """Nested object validated with its own rule map. Not a dict → all defaults."""

    def coerce(value: Any, index: int) -> dict:
        raw = value if isinstance(value, dict) else {}
        return {name: rule.apply(raw, index) for name, rule in fields.items()}

    return FieldRule(source, coerce)


# ─────────────────────────────────────────────────────────────────────────────
# Item Schema
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ItemSchema:
    """How to decode one item kind.

    key: top-level property holding the list (also the locator's key).
    id_prefix: first part of the synthesized item id.
    model: output Pydantic model; receives `id`, the rule values, and `extra`.
    fields: model attribute → rule.
    """

    key: str
    id_prefix: str
    model: type[BaseModel]
    fields: dict[str, FieldRule] = field(default_factory=dict)
    allow_array: bool = True


def make_item_id(prefix: str, source_id: str, created_at: datetime, index: int) -> str:
    """Deterministic id from source, creation time (ms), and list position."""
    return f"{prefix}_{source_id}_{int(created_at.timestamp() * 1000)}_{index}"


def _unwrap_items(parsed: Any, key: str) -> list:
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict):
        if isinstance(parsed.get(key), list):
            return parsed[key]
        for name, value in parsed.items():
            if name.lower() == key.lower() and isinstance(value, list):
                return value
    raise ShapeError(
        f'invalid structure: expected array or object with "{key}" property',
        raw_output=_truncate(json.dumps(parsed)),
    )


def build_item(raw: Any, index: int, item_id: str, schema: ItemSchema, extra: dict) -> BaseModel:
    """Map one raw element to a domain item. Non-dict elements get all defaults."""
    record = raw if isinstance(raw, dict) else {}
    values = {name: rule.apply(record, index) for name, rule in schema.fields.items()}
    return schema.model(id=item_id, **extra, **values)


def decode_items(
    result: ExtractionResult,
    schema: ItemSchema,
    *,
    source_id: str,
    extra: dict | None = None,
    created_at: datetime | None = None,
    sink: DiagnosticSink | None = None,
) -> list:
    """
    Parse a located candidate and validate every element.

    Args:
        result: Output of locate_json.
        schema: Item kind to decode.
        source_id: Upstream identifier baked into each item id.
        extra: Fixed model fields shared by every item (e.g. trend_id).
        created_at: Creation timestamp; defaults to now (UTC).
        sink: Optional diagnostic sink.

    Returns:
        Validated domain items in list order.

    Raises:
        ExtractionError: Nothing JSON-like was located.
        ParseError: Candidate never closes, or is not valid JSON.
        ShapeError: Wrong top-level shape.
        EmptyBatchError: Zero items.
    """
    if not result.found:
        raise ExtractionError(
            f'could not locate a JSON payload with "{schema.key}" in the response',
            raw_output=_truncate(result.text),
        )
    if not result.complete:
        raise ParseError(
            f"no closing delimiter for the JSON starting at offset {result.start} "
            f"(segment {result.segment_index})",
            offset=result.start,
            raw_output=_truncate(result.text),
        )

    try:
        parsed = json.loads(result.text)
    except (ValueError, RecursionError) as e:
        # JSONDecodeError carries a position; digit-limit and nesting-depth failures do not
        pos = getattr(e, "pos", 0)
        snippet = result.text[max(0, pos - SNIPPET_RADIUS): pos + SNIPPET_RADIUS]
        if isinstance(e, json.JSONDecodeError):
            reason = f"(line {e.lineno}, column {e.colno}): {e.msg}"
        else:
            reason = f"({type(e).__name__}): {e}"
        raise ParseError(
            f"invalid JSON at offset {result.start + pos} {reason}; near {snippet!r}",
            offset=result.start + pos,
            raw_output=_truncate(result.text),
        ) from e

    raw_items = _unwrap_items(parsed, schema.key)
    emit(sink, "decoded", key=schema.key, raw_items=len(raw_items), strategy=result.strategy)

    if not raw_items:
        raise EmptyBatchError(f'response contained zero "{schema.key}"')

    created_at = created_at or datetime.now(timezone.utc)
    shared = dict(extra or {})
    items = [
        build_item(raw, index, make_item_id(schema.id_prefix, source_id, created_at, index), schema, shared)
        for index, raw in enumerate(raw_items)
    ]
    emit(sink, "validated", key=schema.key, items=len(items))
    return items


def parse_completion(
    completion: Any,
    schema: ItemSchema,
    *,
    source_id: str,
    extra: dict | None = None,
    created_at: datetime | None = None,
    sink: DiagnosticSink | None = None,
    selector: Callable[[list[str], str], int] = select_segment,
) -> list:
    """
    Full recovery pipeline for one completion.

    Steps:
        1. Flatten the completion into text segments
        2. If there are several, pick one with `selector`
        3. Strip a wrapping markdown fence
        4. Locate the JSON candidate (key-guided, then generic)
        5. Parse, unwrap, and validate each element

    `completion` is a string or a list of segments / `{type, text}` blocks.
    Raises the GenerationError subclasses documented on decode_items.
    """
    segments = normalize_segments(completion)
    emit(sink, "segments", count=len(segments))
    if not segments:
        raise ExtractionError("completion contained no text segments")

    index = selector(segments, schema.key) if len(segments) > 1 else 0
    selected = segments[index]
    emit(sink, "segment_selected", index=index, length=len(selected))

    text = strip_code_fences(selected)
    if text != selected:
        emit(sink, "fence_stripped", before=len(selected), after=len(text))

    result = locate_json(text, schema.key, allow_array=schema.allow_array, segment_index=index, sink=sink)
    return decode_items(result, schema, source_id=source_id, extra=extra, created_at=created_at, sink=sink)
