"""Shared utilities for parsing LLM responses."""

from __future__ import annotations

import json
import re
from typing import Any, List

_FENCE_RE = re.compile(r"```(?:json)?\s*\n(.*?)\n?```", re.DOTALL)


def parse_llm_json(raw: str) -> dict:
    """Parse a JSON object from an LLM response.

    Tries in order:
    1. The body of the first fenced code block (```json or ```)
    2. Direct json.loads on the stripped response
    3. The substring between the first '{' and the last '}'
    4. Return empty dict

    Non-object JSON (a bare list or string) counts as a failure.
    """
    if not raw or not raw.strip():
        return {}

    candidates = []
    fenced = _FENCE_RE.search(raw)
    if fenced:
        candidates.append(fenced.group(1))
    candidates.append(raw.strip())

    start = raw.find("{")
    end = raw.rfind("}") + 1
    if start >= 0 and end > start:
        candidates.append(raw[start:end])

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data

    return {}


def as_string_list(value: Any) -> List[str]:
    """Coerce an LLM-provided field into a list of non-empty strings"""
    if value is None:
        return []
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if v is not None and str(v).strip()]
    return [str(value)]
