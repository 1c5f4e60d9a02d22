import json

import pytest

from materials_lens.errors import MalformedEnvelope, MalformedPayload
from materials_lens.models import Confidence
from materials_lens.parser import (
    excerpt,
    extract_text,
    extract_usage,
    parse_response,
    parse_result,
)

INNER = {"items": [{"name": "Jacket", "material": "Leather", "confidence": "high", "animal_count": 1.5}]}


def gemini_body(text: str, **extra) -> str:
    return json.dumps({"candidates": [{"content": {"parts": [{"text": text}]}}], **extra})


def openai_body(text: str) -> str:
    return json.dumps({
        "output": [
            {"type": "reasoning", "summary": []},
            {"type": "message", "content": [{"type": "output_text", "text": text}]},
        ],
        "usage": {"input_tokens": 10, "output_tokens": 5, "total_tokens": 15},
    })


def claude_body(text: str) -> str:
    return json.dumps({
        "content": [{"type": "text", "text": text}],
        "usage": {"input_tokens": 7, "output_tokens": 3},
    })


# ── Stage A: Gemini envelope ─────────────────────────────────────────────────


def test_gemini_extracts_first_part_text():
    assert extract_text(gemini_body("hello"), "gemini") == "hello"


@pytest.mark.parametrize(
    ("body", "reason"),
    [
        ("not json at all", "not valid JSON"),
        ("{}", "envelope is empty"),
        ("[]", "envelope is empty"),
        ("null", "envelope is empty"),
        (json.dumps({"candidates": []}), "no candidates"),
        (json.dumps({"promptFeedback": {"blockReason": "SAFETY"}}), "no candidates"),
        (json.dumps({"candidates": [{}]}), "no content"),
        (json.dumps({"candidates": [None]}), "no content"),
        (json.dumps({"candidates": [{"content": {"role": "model"}}]}), "no parts"),
        (json.dumps({"candidates": [{"content": {"parts": []}}]}), "no parts"),
        (json.dumps({"candidates": [{"content": {"parts": [{"text": ""}]}}]}), "no text content"),
        (json.dumps({"candidates": [{"content": {"parts": [{"text": 3}]}}]}), "no text content"),
    ],
)
def test_gemini_malformed_envelopes(body, reason):
    with pytest.raises(MalformedEnvelope, match=reason):
        extract_text(body, "gemini")


def test_envelope_error_includes_bounded_body_prefix():
    body = json.dumps({"candidates": [], "padding": "x" * 2000})
    with pytest.raises(MalformedEnvelope) as info:
        extract_text(body, "gemini")
    message = str(info.value)
    assert body[:100] in message
    assert len(message) < 700


# ── Stage A: OpenAI / Claude envelopes ───────────────────────────────────────


def test_openai_skips_outputs_without_content():
    assert extract_text(openai_body("hi"), "openai") == "hi"


def test_openai_no_outputs():
    with pytest.raises(MalformedEnvelope, match="no outputs"):
        extract_text(json.dumps({"output": []}), "openai")


def test_openai_no_output_text():
    body = json.dumps({"output": [{"content": [{"type": "refusal", "refusal": "no"}]}]})
    with pytest.raises(MalformedEnvelope, match="no output_text"):
        extract_text(body, "openai")


def test_claude_extracts_text_block():
    assert extract_text(claude_body("hi"), "claude") == "hi"


def test_claude_no_content():
    with pytest.raises(MalformedEnvelope, match="no content"):
        extract_text(json.dumps({"content": []}), "claude")


# ── Stage B: payload ──────────────────────────────────────────────────────────


def test_parse_result_reads_items():
    result = parse_result(json.dumps(INNER))
    assert len(result.items) == 1
    item = result.items[0]
    assert (item.name, item.material, item.confidence, item.animal_count) == (
        "Jacket", "Leather", Confidence.HIGH, 1.5,
    )
    assert item.production_summary is None


@pytest.mark.parametrize("text", ["{}", '{"items": null}', '{"summary": {"item_count": 0}}'])
def test_absent_items_normalized_to_empty(text):
    result = parse_result(text)
    assert result.items == ()
    assert not result.contains_animal_products


@pytest.mark.parametrize("text", ["{not json", "null", "[1, 2]", '"just a string"', '{"items": "Jacket"}'])
def test_malformed_payload(text):
    with pytest.raises(MalformedPayload):
        parse_result(text)


def test_missing_item_fields_tolerated():
    result = parse_result('{"items": [{"material": "Wool"}, {"name": "Boot", "confidence": "very"}]}')
    assert result.items[0].name == ""
    assert result.items[0].confidence is Confidence.UNKNOWN
    assert result.items[1].confidence is Confidence.UNKNOWN


def test_non_object_items_skipped():
    result = parse_result('{"items": [null, "x", {"name": "Belt", "confidence": "low"}]}')
    assert [i.name for i in result.items] == ["Belt"]


def test_negative_and_string_counts():
    result = parse_result(
        '{"items": [{"name": "a", "confidence": "low", "animal_count": -2},'
        ' {"name": "b", "confidence": "low", "animal_count": "0.25"}]}'
    )
    assert [i.animal_count for i in result.items] == [0.0, 0.25]


def test_code_fenced_json_accepted():
    result = parse_result("```json\n" + json.dumps(INNER) + "\n```")
    assert result.items[0].name == "Jacket"


def test_summary_drives_totals():
    result = parse_result(json.dumps({
        "summary": {"total_estimated_animals": 4.0, "item_count": 3},
        "items": INNER["items"],
    }))
    assert result.total_items == 3
    assert result.total_estimated_animal_count == 4.0


def test_totals_derived_without_summary():
    result = parse_result(json.dumps({
        "items": [
            {"name": "Jacket", "confidence": "high", "animal_count": 1.5},
            {"name": "Boots", "confidence": "medium", "animal_count": 0.5},
        ]
    }))
    assert result.total_items == 2
    assert result.total_estimated_animal_count == 2.0


def test_partial_summary_without_item_count_derives_items():
    result = parse_result(json.dumps({
        "summary": {"total_estimated_animals": 3},
        "items": [
            {"name": "Jacket", "confidence": "high", "animal_count": 1.5},
            {"name": "Boots", "confidence": "medium", "animal_count": 0.5},
        ],
    }))
    assert result.total_items == 2
    assert result.total_estimated_animal_count == 3.0


def test_partial_summary_without_animal_total_derives_count():
    result = parse_result(json.dumps({"summary": {"item_count": 1}, "items": INNER["items"]}))
    assert result.total_items == 1
    assert result.total_estimated_animal_count == 1.5


@pytest.mark.parametrize(
    "text",
    [
        '{"summary": {"item_count": 1e400, "total_estimated_animals": 1e400}, "items": []}',
        '{"summary": {"item_count": Infinity, "total_estimated_animals": NaN}, "items": []}',
    ],
)
def test_non_finite_summary_values_fall_back(text):
    result = parse_result(text)
    assert result.total_items == 0
    assert result.total_estimated_animal_count == 0


def test_non_finite_item_count_clamped():
    result = parse_result('{"items": [{"name": "Coat", "confidence": "low", "animal_count": 1e400}]}')
    assert result.items[0].animal_count == 0.0


# ── end to end + usage ────────────────────────────────────────────────────────


def test_parse_response_gemini():
    result = parse_response(gemini_body(json.dumps(INNER)), "gemini")
    assert result.items[0].material == "Leather"


def test_extract_usage_per_provider():
    gemini = gemini_body("x", usageMetadata={"promptTokenCount": 100, "candidatesTokenCount": 20, "totalTokenCount": 120})
    assert extract_usage(gemini, "gemini").total_tokens == 120
    assert extract_usage(openai_body("x"), "openai").prompt_tokens == 10
    assert extract_usage(claude_body("x"), "claude").total_tokens == 10


def test_extract_usage_absent():
    assert extract_usage(gemini_body("x"), "gemini") is None
    assert extract_usage("garbage", "gemini") is None


def test_excerpt_bounds_length():
    assert excerpt("abc") == "abc"
    assert excerpt("a" * 600) == "a" * 500 + "..."
