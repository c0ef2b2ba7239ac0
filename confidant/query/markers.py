"""
Response Markers

The model reports its confidence (and, when it cannot answer, a skill that
would help) on trailing lines of its answer:

    CONFIDENCE: HIGH|MEDIUM|LOW|UNABLE
    SUGGESTED_SKILL: <name>

Only trailing lines are consumed; the same words inside the answer body are
left alone.
"""

import re
from dataclasses import dataclass
from typing import Optional

from ..common.schemas import ConfidenceLevel

_CONFIDENCE_RE = re.compile(r"^\s*CONFIDENCE:\s*(HIGH|MEDIUM|LOW|UNABLE)\s*$", re.IGNORECASE)
_SKILL_RE = re.compile(r"^\s*SUGGESTED_SKILL:\s*(.+?)\s*$", re.IGNORECASE)


@dataclass
class ParsedAnswer:
    answer: str
    confidence: Optional[ConfidenceLevel] = None
    suggested_skill_name: Optional[str] = None


def parse_response_markers(text: Optional[str]) -> ParsedAnswer:
    """Split trailing marker lines off a model answer"""
    lines = (text or "").rstrip().splitlines()
    confidence = None
    skill = None

    while lines:
        line = lines[-1]
        if not line.strip():
            lines.pop()
            continue
        match = _CONFIDENCE_RE.match(line)
        if match and confidence is None:
            confidence = ConfidenceLevel(match.group(1).lower())
            lines.pop()
            continue
        match = _SKILL_RE.match(line)
        if match and skill is None:
            skill = match.group(1)
            lines.pop()
            continue
        break

    return ParsedAnswer(
        answer="\n".join(lines).strip(),
        confidence=confidence,
        suggested_skill_name=skill,
    )
