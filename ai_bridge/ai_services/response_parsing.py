# ai_bridge/ai_services/response_parsing.py
"""
Tolerant parsers for loosely-typed backend output.

Every function here enumerates the shapes it knows and falls back to an
empty value instead of raising: a missed tool call costs less than a
crashed conversation.
"""
import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from .prompts import NO_RESPONSE_MESSAGE

logger = logging.getLogger(__name__)

_json_decoder = json.JSONDecoder()


def parse_tool_arguments(raw: Any) -> Dict[str, Any]:
    """
    Normalize tool arguments to a dict.

    JSON strings are decoded, dicts pass through; empty, malformed or
    non-object arguments become ``{}``.
    """
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str):
        if not raw.strip():
            return {}
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Malformed tool arguments, using empty arguments: {raw[:200]}")
            return {}
        if isinstance(parsed, dict):
            return parsed
        logger.warning(f"Tool arguments are not a JSON object, using empty arguments: {raw[:200]}")
    return {}


def _strip_trailing_code_fence(text: str) -> str:
    stripped = text.rstrip()
    if stripped.endswith("```"):
        stripped = stripped[:-3].rstrip()
    return stripped


def find_trailing_tool_call(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Locate a single JSON object at the end of free-form text shaped like
    ``{"name": ..., "arguments": ...}``.

    Returns the parsed object, or None when the text does not end in one.
    """
    if not text or not isinstance(text, str):
        return None
    candidate = _strip_trailing_code_fence(text)
    if not candidate.endswith("}"):
        return None

    start = candidate.find("{")
    while start != -1:
        try:
            obj, end = _json_decoder.raw_decode(candidate, start)
        except ValueError:
            obj, end = None, -1
        if end == len(candidate):
            if isinstance(obj, dict) and isinstance(obj.get("name"), str) and "arguments" in obj:
                return obj
            # The outermost object reaching the end is not a tool call
            return None
        start = candidate.find("{", start + 1)
    return None


def text_from_output_item(item: Any) -> Optional[str]:
    """Pull text out of one output item / content block of unknown shape."""
    if not item:
        return None
    if isinstance(item, str):
        return item
    if not isinstance(item, dict):
        return None

    if isinstance(item.get("text"), str) and item["text"]:
        return item["text"]
    if isinstance(item.get("content"), str) and item["content"]:
        return item["content"]

    content = item.get("content")
    if isinstance(content, list):
        for part in content:
            if not part:
                continue
            if isinstance(part, str):
                return part
            if isinstance(part, dict):
                if isinstance(part.get("text"), str) and part["text"]:
                    return part["text"]
                if isinstance(part.get("content"), str) and part["content"]:
                    return part["content"]

    summary = item.get("summary")
    if isinstance(summary, list):
        texts = []
        for entry in summary:
            if isinstance(entry, str) and entry:
                texts.append(entry)
            elif isinstance(entry, dict) and isinstance(entry.get("text"), str) and entry["text"]:
                texts.append(entry["text"])
        if texts:
            return "\n".join(texts)
    return None


def extract_text_with_fallbacks(
    response: Dict[str, Any],
    direct_text: Optional[str] = None,
    items: Optional[Iterable[Any]] = None,
    tool_outputs: Optional[List[str]] = None
) -> str:
    """
    Final-answer extraction chain shared by every backend:

    1. the backend's direct text field
    2. a scan of the nested content array / output items
    3. a top-level text field on the response
    4. the most recent tool outputs, when the backend said nothing itself
    5. a serialized dump of the output items as a last resort
    """
    if isinstance(direct_text, str) and direct_text.strip():
        return direct_text

    item_list = list(items or [])
    for item in item_list:
        text = text_from_output_item(item)
        if text and text.strip():
            return text

    if isinstance(response, dict):
        for key in ("output_text", "text"):
            value = response.get(key)
            if isinstance(value, str) and value.strip():
                return value

    if tool_outputs:
        logger.info("No direct text in response; returning aggregated tool results")
        return "Tool results:\n" + "\n---\n".join(tool_outputs[-3:])

    if item_list:
        logger.warning("No textual output found in response; returning serialized outputs")
        try:
            return json.dumps(item_list, default=str)
        except (TypeError, ValueError):
            pass
    return NO_RESPONSE_MESSAGE
