from __future__ import annotations

import logging
from typing import List

from problem_api.problems.classify import suggest_metadata
from problem_api.problems.segment import segment

logger = logging.getLogger("problemcapture")


DEFAULT_SELFTEST_TEXTS: List[str] = [
    "1. What is 2+2? (A) 3 (B) 4 (C) 5 2. What is 3+3? (A) 5 (B) 6 (C) 9",
    "Problem 1: Calculate the area of the triangle. Problem 2: Find the perimeter.",
    "(1) Solve the equation x + 3 = 7 (2) Factor the polynomial x^2 - 9",
    "First paragraph of a worksheet header text\n\nSecond paragraph with a problem statement",
    "AMC 10 2012 #4: How many primes are less than 20?",
    "   ",
    "",
]


def run_rules_selftest(texts: List[str] | None = None) -> None:
    """Smoke-test segmentation and metadata rules at startup.

    This only verifies that the regex tables compile and nothing raises.
    """
    samples = texts or DEFAULT_SELFTEST_TEXTS
    for s in samples:
        # Should never raise
        segment(s)
        suggest_metadata(s)

    logger.info("Rules self-test passed (%d texts).", len(samples))
