from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from problem_api.ocr.schema import ZERO_BBOX, BBox

MATCH_EXACT = "exact"
MATCH_SIMILAR = "similar"
MATCH_PARTIAL = "partial"
MATCH_TYPES = (MATCH_EXACT, MATCH_SIMILAR, MATCH_PARTIAL)


@dataclass(frozen=True)
class ProblemSegment:
    text: str
    bbox: BBox = ZERO_BBOX
    confidence: float = 0.0
    problem_number: Optional[int] = None


@dataclass(frozen=True)
class CandidateProblem:
    id: str
    title: str
    content: str
    subject: str = ""
    category: str = ""

    # Whatever else the retrieval query surfaced (rank, exam_type, ...)
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProblemMatch:
    problem_id: str
    similarity_score: float  # 0..1
    match_type: str  # exact | similar | partial
    problem: CandidateProblem


@dataclass(frozen=True)
class MetadataSuggestion:
    exam_type: Optional[str] = None
    subject: Optional[str] = None
    category: Optional[str] = None
