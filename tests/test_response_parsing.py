# tests/test_response_parsing.py
import pytest

from ai_bridge.ai_services.prompts import NO_RESPONSE_MESSAGE
from ai_bridge.ai_services.response_parsing import (
    parse_tool_arguments,
    find_trailing_tool_call,
    text_from_output_item,
    extract_text_with_fallbacks,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ('{"query": "SELECT Id FROM Account"}', {"query": "SELECT Id FROM Account"}),
        ({"limit": 5}, {"limit": 5}),
        ("", {}),
        ("   ", {}),
        ("{not json", {}),
        ("[1, 2]", {}),
        ('"just a string"', {}),
        (None, {}),
        (42, {}),
    ],
)
def test_parse_tool_arguments_never_raises(raw, expected):
    assert parse_tool_arguments(raw) == expected


def test_trailing_tool_call_after_prose():
    text = 'I will look that up.\n{"name": "soql_query", "arguments": {"query": "SELECT Id FROM Case"}}'
    assert find_trailing_tool_call(text) == {
        "name": "soql_query",
        "arguments": {"query": "SELECT Id FROM Case"},
    }


def test_trailing_tool_call_inside_code_fence():
    text = 'Calling the tool:\n```json\n{"name": "list_objects", "arguments": "{}"}\n```'
    assert find_trailing_tool_call(text) == {"name": "list_objects", "arguments": "{}"}


@pytest.mark.parametrize(
    "text",
    [
        None,
        "",
        "Here are your accounts: Acme, Globex.",
        '{"name": "soql_query", "arguments": {}} and then some trailing prose',
        '{"answer": 42}',
        'Result: {"name": "soql_query"}',
        'Broken {"name": "soql_query", "arguments": {',
    ],
)
def test_text_without_trailing_tool_call(text):
    assert find_trailing_tool_call(text) is None


def test_nested_braces_in_arguments_are_kept_whole():
    text = 'ok {"name": "create_record", "arguments": {"fields": {"Name": "Acme {EU}"}}}'
    call = find_trailing_tool_call(text)
    assert call["arguments"] == {"fields": {"Name": "Acme {EU}"}}


@pytest.mark.parametrize(
    "item, expected",
    [
        ("plain", "plain"),
        ({"text": "direct"}, "direct"),
        ({"content": "string content"}, "string content"),
        ({"type": "message", "content": [{"type": "output_text", "text": "nested"}]}, "nested"),
        ({"content": [None, "", "first string part"]}, "first string part"),
        ({"content": [{"content": "inner content"}]}, "inner content"),
        ({"type": "reasoning", "summary": [{"text": "step one"}, {"text": "step two"}]}, "step one\nstep two"),
        ({"type": "function_call", "name": "x", "arguments": "{}"}, None),
        (None, None),
        (7, None),
    ],
)
def test_text_from_output_item_shapes(item, expected):
    assert text_from_output_item(item) == expected


def test_fallback_prefers_direct_text():
    assert extract_text_with_fallbacks({"output_text": "top"}, direct_text="direct", items=["item"]) == "direct"


def test_fallback_scans_items_before_top_level_text():
    response = {"text": "top-level"}
    assert extract_text_with_fallbacks(response, direct_text="  ", items=[{"text": "from item"}]) == "from item"


def test_fallback_to_top_level_text():
    assert extract_text_with_fallbacks({"output_text": "top"}, items=[{"type": "function_call"}]) == "top"


def test_fallback_to_tool_outputs():
    text = extract_text_with_fallbacks({}, tool_outputs=["first", "second"])
    assert text == "Tool results:\nfirst\n---\nsecond"


def test_fallback_serializes_unrecognized_outputs():
    text = extract_text_with_fallbacks({}, items=[{"type": "unknown_kind", "value": 3}])
    assert text == '[{"type": "unknown_kind", "value": 3}]'


def test_fallback_when_nothing_usable():
    assert extract_text_with_fallbacks({}) == NO_RESPONSE_MESSAGE
    assert extract_text_with_fallbacks({"text": {"format": "text"}}, items=[]) == NO_RESPONSE_MESSAGE
