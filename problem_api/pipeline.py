from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from problem_api.ocr.client import Recognizer
from problem_api.ocr.schema import OCRReading
from problem_api.problems.ai_segment import AiSegmenter, detect_problems_enhanced
from problem_api.problems.classify import suggest_metadata
from problem_api.problems.match import ProblemMatcher
from problem_api.problems.models import MetadataSuggestion, ProblemMatch, ProblemSegment

logger = logging.getLogger("problemcapture.pipeline")


@dataclass(frozen=True)
class SegmentMatches:
    segment: ProblemSegment
    matches: List[ProblemMatch] = field(default_factory=list)


@dataclass(frozen=True)
class PipelineResult:
    reading: OCRReading
    problems: List[SegmentMatches]
    suggestions: MetadataSuggestion
    max_matches: int = 5

    @property
    def ocr_failed(self) -> bool:
        return not self.reading.success

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ocr_result": {
                "success": self.reading.success,
                "text": self.reading.text,
                "confidence": self.reading.confidence,
                "problems_detected": len(self.problems),
            },
            "problems": [_problem_dict(p, self.max_matches) for p in self.problems],
            "suggestions": suggestion_dict(self.suggestions),
            "detected_problems": len(self.problems),
        }


def match_dict(m: ProblemMatch) -> Dict[str, Any]:
    return {
        "problem_id": m.problem_id,
        "similarity_score": m.similarity_score,
        "match_type": m.match_type,
        "problem": {
            "id": m.problem.id,
            "title": m.problem.title,
            "content": m.problem.content,
            "subject": m.problem.subject,
            "category": m.problem.category,
        },
    }


def suggestion_dict(s: MetadataSuggestion) -> Dict[str, Any]:
    return {"exam_type": s.exam_type, "subject": s.subject, "category": s.category}


def _problem_dict(p: SegmentMatches, max_matches: int) -> Dict[str, Any]:
    return {
        "problem_number": p.segment.problem_number,
        "text": p.segment.text,
        "bbox": list(p.segment.bbox),
        "confidence": p.segment.confidence,
        "matches": [match_dict(m) for m in p.matches[:max_matches]],
    }


class ProblemPipeline:
    """
    image -> OCR -> segments -> concurrent per-segment matching -> result.
    Holds collaborators only; every call is independent.
    """

    def __init__(
        self,
        recognizer: Recognizer,
        matcher: ProblemMatcher,
        *,
        ai_segmenter: Optional[AiSegmenter] = None,
        max_matches: int = 5,
    ) -> None:
        self._recognizer = recognizer
        self._matcher = matcher
        self._ai_segmenter = ai_segmenter
        self._max_matches = int(max_matches)

    @property
    def matcher(self) -> ProblemMatcher:
        return self._matcher

    async def process_image(self, image: bytes, filename: str, tenant_id: str) -> PipelineResult:
        reading = await self._recognizer.recognize(image, filename)
        if not reading.success:
            logger.warning("OCR failed for %s; skipping segmentation", filename)
            return PipelineResult(
                reading=reading,
                problems=[],
                suggestions=MetadataSuggestion(),
                max_matches=self._max_matches,
            )
        return await self._run(reading, tenant_id)

    async def identify_text(self, text: str, tenant_id: str) -> PipelineResult:
        reading = OCRReading(success=True, text=text or "", confidence=1.0, bboxes=())
        return await self._run(reading, tenant_id)

    async def _run(self, reading: OCRReading, tenant_id: str) -> PipelineResult:
        segments = await detect_problems_enhanced(reading.text, reading.bboxes, self._ai_segmenter)
        matches = await self.match_segments(segments, tenant_id)
        return PipelineResult(
            reading=reading,
            problems=[SegmentMatches(segment=s, matches=m) for s, m in zip(segments, matches)],
            suggestions=suggest_metadata(reading.text),
            max_matches=self._max_matches,
        )

    async def match_segments(self, segments: Sequence[ProblemSegment], tenant_id: str) -> List[List[ProblemMatch]]:
        """Fan out one lookup per segment and join them all; a failed lookup yields []."""
        if not segments:
            return []

        results = await asyncio.gather(
            *(self._matcher.find_matches(s.text, tenant_id) for s in segments),
            return_exceptions=True,
        )

        out: List[List[ProblemMatch]] = []
        for seg, res in zip(segments, results):
            if isinstance(res, BaseException):
                logger.warning(
                    "Match lookup failed for problem %s: %r",
                    seg.problem_number if seg.problem_number is not None else "?",
                    res,
                )
                out.append([])
            else:
                out.append(res)
        return out
