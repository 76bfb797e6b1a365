from __future__ import annotations

from typing import Optional, Pattern, Tuple

import regex as re

from problem_api.problems.models import MetadataSuggestion

# -----------------
# Rule tables (first match wins within each table)
# -----------------

EXAM_TYPE_PATTERNS: Tuple[Tuple[str, Pattern[str]], ...] = (
    ("AMC10", re.compile(r"\bAMC\s*10", re.I)),
    ("AMC12", re.compile(r"\bAMC\s*12", re.I)),
    ("AIME", re.compile(r"\bAIME\b", re.I)),
    ("MATHCOUNTS", re.compile(r"\bMATHCOUNTS\b", re.I)),
    ("SAT", re.compile(r"\bSAT\b", re.I)),
    ("AP Calculus", re.compile(r"\bAP\s*Calculus\b", re.I)),
    ("AP Statistics", re.compile(r"\bAP\s*Statistics\b", re.I)),
)

SUBJECT_PATTERNS: Tuple[Tuple[str, Pattern[str]], ...] = (
    ("Mathematics", re.compile(r"\b(?:math|algebra|geometry|(?:pre)?calculus|trigonometry|statistics)", re.I)),
    ("Physics", re.compile(r"\b(?:physics|mechanics|thermodynamics|electricity)", re.I)),
    ("Chemistry", re.compile(r"\b(?:chemistry|chemical|molecule|reaction)", re.I)),
    ("Biology", re.compile(r"\b(?:biology|cell|organism|genetics)", re.I)),
)

# Sub-classifications of mathematics.
CATEGORY_PATTERNS: Tuple[Tuple[str, Pattern[str]], ...] = (
    ("Algebra", re.compile(r"\b(?:equation|variable|solve|polynomial)", re.I)),
    ("Geometry", re.compile(r"\b(?:triangle|circle|angle|area|perimeter|volume)", re.I)),
    ("Number Theory", re.compile(r"\b(?:prime|divisible|modular|gcd|lcm)", re.I)),
    ("Combinatorics", re.compile(r"\b(?:permutation|combination|probability|counting)", re.I)),
    ("Calculus", re.compile(r"\b(?:derivative|integral|limit|continuous)", re.I)),
)

MATH_SUBJECT = "Mathematics"


def first_label(text: str, rules: Tuple[Tuple[str, Pattern[str]], ...]) -> Optional[str]:
    for label, rx in rules:
        if rx.search(text):
            return label
    return None


def suggest_metadata(text: str) -> MetadataSuggestion:
    """Guess exam type / subject / category for pre-filling a manual entry form."""
    t = text or ""

    exam_type = first_label(t, EXAM_TYPE_PATTERNS)
    subject = first_label(t, SUBJECT_PATTERNS)

    # Categories only make sense for math (or when nothing else was detected).
    category = None
    if subject is None or subject == MATH_SUBJECT:
        category = first_label(t, CATEGORY_PATTERNS)

    return MetadataSuggestion(exam_type=exam_type, subject=subject, category=category)
