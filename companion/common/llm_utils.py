"""Shared utilities for parsing LLM responses."""

from __future__ import annotations

import json
from typing import Any, Dict, Optional


def _balanced_object(raw: str) -> Optional[str]:
    """Return the first brace-balanced {...} span in raw, ignoring braces in strings."""
    start = raw.find("{")
    while start >= 0:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(raw)):
            ch = raw[i]
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
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return raw[start:i + 1]
        start = raw.find("{", start + 1)
    return None


def parse_llm_json(raw: str) -> dict:
    """Parse JSON from an LLM response, handling code fences and preamble text.

    Tries in order:
    1. Strip markdown code fences, then json.loads
    2. Extract the first brace-balanced object, then json.loads
    3. Extract substring between first '{' and last '}', then json.loads
    4. Return empty dict
    """
    if not raw:
        return {}

    text = raw.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = [l for l in lines if not l.strip().startswith("```")]
        text = "\n".join(lines)

    try:
        parsed = json.loads(text)
        return parsed if isinstance(parsed, dict) else {}
    except json.JSONDecodeError:
        pass

    candidate = _balanced_object(raw)
    if candidate:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            pass

    start = raw.find("{")
    end = raw.rfind("}") + 1
    if start >= 0 and end > start:
        try:
            return json.loads(raw[start:end])
        except json.JSONDecodeError:
            pass

    return {}


def parse_structured_or_default(raw: str, defaults: Dict[str, Any]) -> Dict[str, Any]:
    """Decode a structured model reply, falling back field by field to defaults.

    The result always has exactly the keys of ``defaults``. A field whose
    decoded value is missing, null, or of a different type than its default
    takes the default (a default of None accepts any value, including null).
    Never raises.
    """
    data = parse_llm_json(raw)
    result: Dict[str, Any] = {}
    for key, default in defaults.items():
        value = data.get(key)
        if value is None:
            result[key] = default
        elif default is None or isinstance(value, type(default)):
            result[key] = value
        elif isinstance(default, float) and isinstance(value, int) and not isinstance(value, bool):
            result[key] = float(value)
        else:
            result[key] = default
    return result
