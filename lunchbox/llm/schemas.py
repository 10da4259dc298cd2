"""
Structured output schemas.

A schema is a tagged description of what the model must return: an array
whose items are either plain strings or flat objects built from typed fields.
The same description renders to JSON Schema (for the provider's
structured-output directive) and decodes untrusted model output field by
field, so no field is trusted without an explicit check.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..errors import ParseError

ENVELOPE_KEY = "items"


class FieldKind(str, Enum):
    string = "string"
    boolean = "boolean"
    integer = "integer"
    enum = "enum"


class SchemaType(str, Enum):
    recommendations = "recommendations"
    logs = "logs"


@dataclass(frozen=True)
class SchemaField:
    name: str
    kind: FieldKind
    required: bool = True
    choices: tuple[str, ...] = ()

    def to_json_schema(self) -> dict[str, Any]:
        if self.kind is FieldKind.enum:
            return {"type": "string", "enum": list(self.choices)}
        return {"type": self.kind.value}

    def accepts(self, value: Any) -> bool:
        if self.kind is FieldKind.boolean:
            return isinstance(value, bool)
        if self.kind is FieldKind.integer:
            return isinstance(value, int) and not isinstance(value, bool)
        if self.kind is FieldKind.enum:
            return isinstance(value, str) and value in self.choices
        return isinstance(value, str) and bool(value.strip())


@dataclass(frozen=True)
class DecodeError:
    index: int
    reason: str


@dataclass(frozen=True)
class OutputSchema:
    """Array of items; ``fields`` empty means an array of strings."""

    name: str
    fields: tuple[SchemaField, ...] = ()
    description: str = ""

    @property
    def is_string_array(self) -> bool:
        return not self.fields

    @property
    def required_fields(self) -> list[str]:
        return [f.name for f in self.fields if f.required]

    def item_schema(self) -> dict[str, Any]:
        if self.is_string_array:
            return {"type": "string"}
        return {
            "type": "object",
            "properties": {f.name: f.to_json_schema() for f in self.fields},
            "required": self.required_fields,
        }

    def to_json_schema(self) -> dict[str, Any]:
        return {"type": "array", "items": self.item_schema()}

    def envelope(self) -> dict[str, Any]:
        """Object-rooted form for providers that reject a bare array root."""
        return {
            "type": "object",
            "properties": {ENVELOPE_KEY: self.to_json_schema()},
            "required": [ENVELOPE_KEY],
        }

    def decode_item(self, index: int, item: Any) -> dict[str, Any] | str | DecodeError:
        if self.is_string_array:
            if isinstance(item, str):
                return item
            return DecodeError(index, "expected a string")

        if not isinstance(item, dict):
            return DecodeError(index, "expected an object")

        decoded: dict[str, Any] = {}
        for f in self.fields:
            value = item.get(f.name)
            if value is None:
                if f.required:
                    return DecodeError(index, f"missing {f.name}")
                continue
            if not f.accepts(value):
                if f.required:
                    return DecodeError(index, f"invalid {f.name}")
                continue
            decoded[f.name] = value.strip() if isinstance(value, str) else value
        return decoded

    def decode(self, data: Any) -> tuple[list[Any], list[DecodeError]]:
        """Decode a parsed payload into valid items plus per-item errors."""
        items = unwrap_items(data)
        valid: list[Any] = []
        errors: list[DecodeError] = []
        for index, item in enumerate(items):
            result = self.decode_item(index, item)
            if isinstance(result, DecodeError):
                errors.append(result)
            else:
                valid.append(result)
        return valid, errors


RECOMMENDATION_SCHEMA = OutputSchema(
    name="lunch_recommendations",
    fields=(
        SchemaField("place_id", FieldKind.string),
        SchemaField("ai_reason", FieldKind.string),
        SchemaField("recommended_dish", FieldKind.string),
        SchemaField("is_cash_only", FieldKind.boolean),
        SchemaField("is_new_opening", FieldKind.boolean, required=False),
    ),
    description="Ordered lunch recommendations, best first.",
)

LOADING_LOG_SCHEMA = OutputSchema(
    name="loading_logs",
    description="Short technical status lines narrating the search.",
)

SCHEMAS: dict[SchemaType, OutputSchema] = {
    SchemaType.recommendations: RECOMMENDATION_SCHEMA,
    SchemaType.logs: LOADING_LOG_SCHEMA,
}


# ---------------------------------------------------------------------------
# Parsing untrusted model text
# ---------------------------------------------------------------------------

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_NULL_PREFIX_RE = re.compile(r"^(?:null|none|undefined)\s*(?=[\[{])", re.IGNORECASE)
_TRAILING_COMMA_RE = re.compile(r",(\s*[\]}])")
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def clean_json_text(text: str) -> str:
    """Repair the common ways models wrap or break otherwise valid JSON."""
    cleaned = _FENCE_RE.sub("", text.strip()).strip()
    cleaned = _NULL_PREFIX_RE.sub("", cleaned)

    starts = [pos for pos in (cleaned.find("["), cleaned.find("{")) if pos != -1]
    if starts:
        start = min(starts)
        closer = "]" if cleaned[start] == "[" else "}"
        end = cleaned.rfind(closer)
        cleaned = cleaned[start:end + 1] if end > start else cleaned[start:]

    cleaned = _TRAILING_COMMA_RE.sub(r"\1", cleaned)
    return _CONTROL_RE.sub(" ", cleaned)


def parse_json(text: str | None) -> Any:
    if not text or not text.strip():
        raise ParseError(details="Empty model response")
    try:
        return json.loads(clean_json_text(text))
    except json.JSONDecodeError as exc:
        raise ParseError(details=f"Invalid JSON from model: {exc.msg}") from exc


def unwrap_items(data: Any) -> list[Any]:
    """Accept a bare array or an object envelope around it."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in (ENVELOPE_KEY, "recommendations", "logs"):
            if isinstance(data.get(key), list):
                return data[key]
    raise ParseError(details="Model response is not an array")
