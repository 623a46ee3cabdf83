"""
JSON repair for model output.

Vision models wrap JSON in markdown fences, add trailing commas, or get
cut off at the token limit. safe_parse_json recovers what it can and
returns None when the text is beyond repair.
"""

import json
import logging
import re
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)
_TRAILING_COMMA = re.compile(r",\s*([}\]])")


def strip_code_fences(text: str) -> str:
    return _FENCE.sub("", text or "").strip()


def remove_trailing_commas(text: str) -> str:
    return _TRAILING_COMMA.sub(r"\1", text)


def _extract_object(text: str) -> str:
    """Cut to the first '{' and the last '}' (or the end when truncated)."""
    start = text.find("{")
    if start == -1:
        return ""
    end = text.rfind("}")
    if end < start:
        return text[start:]
    return text[start:end + 1]


def close_truncated_json(text: str) -> str:
    """
    Close whatever a truncated JSON document left open.

    Walks the text tracking string state and the bracket stack, then
    appends the missing quote and closers in nesting order. A dangling
    key or comma at the cut point is dropped first.
    """
    stack = []
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "{[":
            stack.append("}" if ch == "{" else "]")
        elif ch in "}]" and stack:
            stack.pop()

    repaired = text
    if in_string:
        repaired += '"'
    repaired = repaired.rstrip()
    # "key": <cut> or trailing comma
    repaired = re.sub(r'([{,])\s*"[^"]*"\s*:\s*$', r"\1", repaired)
    repaired = re.sub(r'[,:]\s*$', "", repaired)
    return repaired + "".join(reversed(stack))


def safe_parse_json(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Parse a JSON object out of model text.

    Args:
        text: Raw model response

    Returns:
        Parsed dict, or None when nothing parseable remains
    """
    if not text:
        return None

    candidate = _extract_object(strip_code_fences(text))
    if not candidate:
        return None

    try:
        parsed = json.loads(remove_trailing_commas(candidate))
        return parsed if isinstance(parsed, dict) else None
    except json.JSONDecodeError:
        pass

    repaired = remove_trailing_commas(close_truncated_json(candidate))
    try:
        parsed = json.loads(repaired)
    except json.JSONDecodeError as e:
        logger.warning(f"Could not repair model JSON ({len(text)} chars): {e}")
        return None

    logger.info("Parsed model JSON after closing truncated structures")
    return parsed if isinstance(parsed, dict) else None


def unwrap_extraction(parsed: Dict[str, Any]) -> Dict[str, Any]:
    """Return the inner 'extraction' object when the model wrapped it."""
    inner = parsed.get("extraction")
    return inner if isinstance(inner, dict) else parsed
