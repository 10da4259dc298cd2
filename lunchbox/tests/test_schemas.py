from __future__ import annotations

import pytest

from lunchbox.errors import ParseError
from lunchbox.llm.schemas import (
    LOADING_LOG_SCHEMA,
    RECOMMENDATION_SCHEMA,
    SCHEMAS,
    SchemaType,
    clean_json_text,
    parse_json,
    unwrap_items,
)

VALID_ITEM = {
    "place_id": "p1",
    "ai_reason": "4.6 from 312 reviews, 8 mention the tonkotsu.",
    "recommended_dish": "Tonkotsu Ramen",
    "is_cash_only": False,
}


def test_clean_json_strips_code_fences_and_trailing_commas():
    text = '```json\n[{"a": 1},]\n```'
    assert clean_json_text(text) == '[{"a": 1}]'


def test_clean_json_drops_null_prefix():
    assert parse_json('null["A", "B"]') == ["A", "B"]
    assert parse_json('undefined {"items": []}') == {"items": []}


def test_clean_json_slices_surrounding_prose():
    assert parse_json('Here you go: {"items": ["x"]} enjoy!') == {"items": ["x"]}


def test_parse_json_rejects_empty_and_garbage():
    with pytest.raises(ParseError):
        parse_json("")
    with pytest.raises(ParseError):
        parse_json(None)
    with pytest.raises(ParseError):
        parse_json("not valid json{{{")


def test_unwrap_accepts_array_or_envelope():
    assert unwrap_items([1]) == [1]
    assert unwrap_items({"items": [1]}) == [1]
    assert unwrap_items({"recommendations": [2]}) == [2]
    with pytest.raises(ParseError):
        unwrap_items({"answer": "no"})


def test_recommendation_schema_renders_required_fields():
    schema = RECOMMENDATION_SCHEMA.to_json_schema()

    assert schema["type"] == "array"
    assert schema["items"]["required"] == ["place_id", "ai_reason", "recommended_dish", "is_cash_only"]
    assert schema["items"]["properties"]["is_cash_only"] == {"type": "boolean"}
    assert "is_new_opening" in schema["items"]["properties"]


def test_envelope_wraps_array_in_items_object():
    envelope = LOADING_LOG_SCHEMA.envelope()

    assert envelope["type"] == "object"
    assert envelope["required"] == ["items"]
    assert envelope["properties"]["items"] == {"type": "array", "items": {"type": "string"}}


def test_decode_keeps_valid_items_and_reports_the_rest():
    data = {
        "items": [
            VALID_ITEM,
            {**VALID_ITEM, "ai_reason": "   "},
            {**VALID_ITEM, "is_cash_only": "yes"},
            {k: v for k, v in VALID_ITEM.items() if k != "recommended_dish"},
            "p9",
        ]
    }

    valid, errors = RECOMMENDATION_SCHEMA.decode(data)

    assert valid == [VALID_ITEM]
    assert [e.index for e in errors] == [1, 2, 3, 4]
    assert errors[2].reason == "missing recommended_dish"


def test_decode_drops_invalid_optional_fields_only():
    valid, errors = RECOMMENDATION_SCHEMA.decode([{**VALID_ITEM, "is_new_opening": "maybe"}])

    assert errors == []
    assert "is_new_opening" not in valid[0]


def test_string_array_schema_rejects_non_strings():
    valid, errors = LOADING_LOG_SCHEMA.decode(["SCANNING GRID...", 7])

    assert valid == ["SCANNING GRID..."]
    assert len(errors) == 1


def test_schema_types_map_to_schemas():
    assert SCHEMAS[SchemaType.recommendations] is RECOMMENDATION_SCHEMA
    assert SCHEMAS[SchemaType.logs] is LOADING_LOG_SCHEMA
