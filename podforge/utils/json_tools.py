"""
Tolerant JSON extraction and field normalization for model output.

Models wrap JSON in prose or markdown fences and name the same field
differently from one prompt to the next. Everything is decoded here into
canonical pydantic structs; anything that cannot be decoded raises
DecodeError instead of silently defaulting.
"""

import json
import re
from typing import Any, Iterable, Mapping, Optional

from ..errors import DecodeError

# Control characters other than tab, newline and carriage return.
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def extract_json(text: Optional[str]) -> dict:
    """
    Parse the JSON object embedded in a model response.

    Locates the first '{' and the last '}', strips control characters and
    parses what lies between them.
    """
    if not text or not text.strip():
        raise DecodeError("Empty model response", raw_text=text)

    first = text.find("{")
    last = text.rfind("}")
    if first == -1 or last == -1 or last < first:
        raise DecodeError("No JSON object found in model response", raw_text=text)

    candidate = _CONTROL_CHARS.sub("", text[first:last + 1])

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Invalid JSON in model response: {e}", raw_text=text) from e

    if not isinstance(data, dict):
        raise DecodeError("Model response JSON is not an object", raw_text=text)
    return data


def pick(data: Mapping[str, Any], aliases: Iterable[str], default: Any = None) -> Any:
    """Return the first non-empty value among the known aliases of a field."""
    for key in aliases:
        value = data.get(key)
        if value not in (None, "", [], {}):
            return value
    return default


def as_text_list(value: Any) -> list[str]:
    """Coerce a list of strings or of {"text"/"fact"/...} dicts to strings."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if not isinstance(value, list):
        raise DecodeError(f"Expected a list, got {type(value).__name__}")

    items = []
    for item in value:
        if isinstance(item, str):
            if item.strip():
                items.append(item.strip())
        elif isinstance(item, Mapping):
            text = pick(item, ("fact", "text", "claim", "content", "title"))
            if text:
                items.append(str(text).strip())
        elif item is not None:
            items.append(str(item))
    return items


def strip_html(text: str) -> str:
    return re.sub(r"<[^>]+>", " ", text)


def clean_text_for_speech(text: str) -> str:
    """Remove markup that should not be read aloud and collapse whitespace."""
    text = re.sub(r"<[^>]*>", "", text)
    text = re.sub(r"[*#_~`]", "", text)
    text = re.sub(r"\[origin:.*?\]", "", text, flags=re.IGNORECASE)
    text = re.sub(r"\s+", " ", text)
    return text.strip()
