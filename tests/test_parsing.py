"""Unit tests for the tolerant JSON parser."""

import pytest

from reel_planner.parsing import safe_parse_json, strip_code_fences

FALLBACK = {"orderedIds": ["a"], "theme": ""}


def test_plain_json():
    assert safe_parse_json('{"theme": "sea"}', FALLBACK) == {"theme": "sea"}


def test_json_fence_with_language_tag():
    text = '```json\n{"orderedIds": ["b", "a"]}\n```'
    assert safe_parse_json(text, FALLBACK) == {"orderedIds": ["b", "a"]}


def test_bare_fence():
    assert safe_parse_json('```\n[1, 2]\n```', FALLBACK) == [1, 2]


def test_fence_with_surrounding_whitespace():
    assert strip_code_fences('  \n```JSON\n{"a": 1}\n```  \n') == '{"a": 1}'


def test_strip_leaves_unfenced_text_alone():
    assert strip_code_fences('{"a": "```"}') == '{"a": "```"}'


@pytest.mark.parametrize(
    "text",
    [
        "",
        "   ",
        "not json at all",
        "{'single': 'quotes'}",
        '{"truncated": [1, 2',
        "```json\n```",
        "[" * 100_000,
    ],
)
def test_garbage_returns_fallback_unmodified(text):
    assert safe_parse_json(text, FALLBACK) is FALLBACK


@pytest.mark.parametrize("text", [None, 42, b'{"a": 1}', ["x"]])
def test_non_string_input_returns_fallback(text):
    assert safe_parse_json(text, FALLBACK) is FALLBACK


def test_parse_error_is_logged(caplog):
    with caplog.at_level("WARNING", logger="reel_planner.parsing"):
        safe_parse_json("nope", None)
    assert "JSON parse error" in caplog.text
