import pathlib
import sys
from typing import Dict, List, Optional, Sequence

import pytest

# Ensure the repository root is on the path for direct test runs.
REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.append(str(REPO_ROOT))

from problem_api.ocr.schema import OCRReading
from problem_api.problems.models import CandidateProblem


class FakeCompleter:
    """Returns canned replies in order; an Exception instance is raised instead."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls: List[Dict[str, object]] = []

    async def complete(self, prompt: str, *, system: Optional[str] = None, max_tokens: Optional[int] = None) -> str:
        self.calls.append({"prompt": prompt, "system": system, "max_tokens": max_tokens})
        reply = self.replies.pop(0) if self.replies else "[]"
        if isinstance(reply, BaseException):
            raise reply
        return reply


class FakeRetriever:
    def __init__(self, candidates: Sequence[CandidateProblem] = (), fail_on: Sequence[str] = ()):
        self.candidates = list(candidates)
        self.fail_on = list(fail_on)
        self.calls: List[tuple] = []

    async def search(self, text: str, tenant_id: str, limit: int = 10) -> List[CandidateProblem]:
        self.calls.append((text, tenant_id, limit))
        if any(marker in text for marker in self.fail_on):
            raise ConnectionError("retrieval unavailable")
        return self.candidates[:limit]


class FakeRecognizer:
    def __init__(self, reading: OCRReading):
        self.reading = reading
        self.calls: List[tuple] = []

    async def recognize(self, image: bytes, filename: str = "upload.jpg") -> OCRReading:
        self.calls.append((image, filename))
        return self.reading


@pytest.fixture
def addition_problems() -> List[CandidateProblem]:
    return [
        CandidateProblem(
            id="p-add",
            title="Basic Addition",
            content="What is the sum of two plus two apples?",
            subject="Mathematics",
            category="Arithmetic",
        ),
        CandidateProblem(
            id="p-tri",
            title="Triangle Area",
            content="Find the area of a triangle with base 6 and height 4.",
            subject="Mathematics",
            category="Geometry",
        ),
        CandidateProblem(
            id="p-prime",
            title="Primes",
            content="How many prime numbers are less than twenty?",
            subject="Mathematics",
            category="Number Theory",
        ),
    ]
