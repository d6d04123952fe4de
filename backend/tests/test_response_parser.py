"""LLM response parsing: fences, chatter, field filtering, confidence coercion."""

from app.services.response_parser import parse_extraction_response, populated_fields, section, text_value


def test_parses_fenced_json():
    content = '```json\n{"result": "passed", "confidence_score": 0.9}\n```'
    assert parse_extraction_response(content) == {"result": "passed", "confidence_score": 0.9}


def test_parses_object_surrounded_by_chatter():
    content = 'Sure! Here is the data:\n{"status_change": {"type": "offer"}}\nLet me know.'
    assert parse_extraction_response(content) == {"status_change": {"type": "offer"}}


def test_unusable_content_returns_none():
    assert parse_extraction_response(None) is None
    assert parse_extraction_response("   ") is None
    assert parse_extraction_response("no json here") is None
    assert parse_extraction_response("[1, 2, 3]") is None
    assert parse_extraction_response('{"broken": ') is None


def test_filters_unknown_top_level_fields():
    content = '{"result": "failed", "injected": true, "confidence_score": 0.8}'
    parsed = parse_extraction_response(content, fields=("result", "confidence_score"))
    assert parsed == {"result": "failed", "confidence_score": 0.8}


def test_confidence_is_coerced_to_float_or_none():
    assert parse_extraction_response('{"confidence_score": "0.75"}')["confidence_score"] == 0.75
    assert parse_extraction_response('{"confidence_score": "high"}')["confidence_score"] is None
    assert parse_extraction_response('{"confidence_score": true}')["confidence_score"] is None


def test_confidence_is_clamped_to_unit_range():
    assert parse_extraction_response('{"confidence_score": 1.7}')["confidence_score"] == 1.0
    assert parse_extraction_response('{"confidence_score": -0.2}')["confidence_score"] == 0.0
    assert parse_extraction_response('{"confidence_score": "NaN"}')["confidence_score"] is None


def test_populated_fields_lists_dotted_leaf_paths():
    data = {
        "interview": {"scheduled_at": "2026-01-21T14:00:00Z", "timezone": None},
        "logistics": {"video_link": ""},
        "confidence_score": 0.9,
    }
    assert populated_fields(data) == ["interview.scheduled_at", "confidence_score"]
    assert populated_fields(None) == []


def test_section_and_text_value_helpers():
    assert section({"a": {"b": 1}}, "a") == {"b": 1}
    assert section({"a": "not a dict"}, "a") == {}
    assert section(None, "a") == {}
    assert text_value("  hi ") == "hi"
    assert text_value("   ") is None
    assert text_value(42) == "42"
