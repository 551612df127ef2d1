"""Pre-parse normalization for JSON returned by LLMs."""
import json
import math
import re
from typing import Any, Optional

_LEADING_FENCE = re.compile(r"^```(?:json)?", re.IGNORECASE)
_TRAILING_FENCE = re.compile(r"```$")


def strip_code_fence(text: str) -> str:
    """Remove a single leading/trailing markdown code fence around a payload.

    Models frequently wrap JSON in ```json ... ``` even when asked not to.
    """
    trimmed = (text or "").strip()
    trimmed = _LEADING_FENCE.sub("", trimmed)
    trimmed = _TRAILING_FENCE.sub("", trimmed)
    return trimmed.strip()


def try_parse_json(text: str) -> Optional[Any]:
    """Parse LLM output as JSON after fence stripping.

    Returns:
        Parsed value, or None when the text is empty or not valid JSON
    """
    unfenced = strip_code_fence(text)
    if not unfenced:
        return None
    try:
        return json.loads(unfenced)
    except json.JSONDecodeError:
        return None


def is_record(value: Any) -> bool:
    return isinstance(value, dict)


def is_finite_number(value: Any) -> bool:
    # bool is an int subclass; a JSON true is not a timestamp
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)
