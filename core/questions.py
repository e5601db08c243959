"""Heuristic detection of agent comments that ask the human something."""

import re
from typing import Optional

# Favors recall: a spurious "needs attention" costs less than a missed question.
QUESTION_PATTERNS = (
    re.compile(r"\?\s*$", re.MULTILINE),
    re.compile(r"should I", re.IGNORECASE),
    re.compile(r"do you want", re.IGNORECASE),
    re.compile(r"please (clarify|confirm|specify)", re.IGNORECASE),
    re.compile(r"I('m| am) (unsure|not sure)", re.IGNORECASE),
    re.compile(r"which (approach|option|method)", re.IGNORECASE),
    re.compile(r"could you (help|explain|tell)", re.IGNORECASE),
    re.compile(r"what .* prefer", re.IGNORECASE),
    re.compile(r"need .* (input|decision|guidance)", re.IGNORECASE),
)


def looks_like_question(body: Optional[str]) -> bool:
    if not body or not isinstance(body, str):
        return False
    return any(pattern.search(body) for pattern in QUESTION_PATTERNS)
