"""JSON extraction for LLM responses that wrap the object in prose or code fences."""

from __future__ import annotations

import json
import re
from typing import Any

_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


def extract_json(raw: str | None) -> dict[str, Any]:
    """
    Parse the JSON object in an LLM response.

    Tries a direct parse, then the slice from the first "{" to the last "}",
    then the same slice with trailing commas removed.

    Raises:
        ValueError: If no JSON object can be recovered
    """
    if not raw or not raw.strip():
        raise ValueError("Empty LLM response")

    text = _CODE_FENCE_RE.sub("", raw.strip())

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        start = text.find("{")
        end = text.rfind("}")
        if start < 0 or end <= start:
            raise ValueError(f"Failed to parse JSON from response: {raw[:200]}") from None

        sliced = text[start : end + 1]
        try:
            parsed = json.loads(sliced)
        except json.JSONDecodeError:
            try:
                parsed = json.loads(_TRAILING_COMMA_RE.sub(r"\1", sliced))
            except json.JSONDecodeError as e:
                raise ValueError(f"Failed to parse JSON from response: {raw[:200]}") from e

    if not isinstance(parsed, dict):
        raise ValueError("LLM response JSON is not an object")
    return parsed
