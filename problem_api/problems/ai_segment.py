from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence

import openai
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from problem_api.llm import AiResponseError, TextCompleter, parse_json_array
from problem_api.ocr.schema import ZERO_BBOX
from problem_api.problems.models import ProblemSegment
from problem_api.problems.segment import MIN_SEGMENT_CHARS, segment

logger = logging.getLogger("problemcapture.ai_segment")

SEGMENT_SYSTEM_PROMPT = (
    "You split OCR text from photographed worksheets into individual problems. "
    "You answer with JSON only."
)


class AiSegmentItem(BaseModel):
    problemNumber: Optional[int] = None
    text: str
    confidence: float = Field(ge=0.0, le=1.0)


_ITEMS = TypeAdapter(List[AiSegmentItem])


def build_segmentation_prompt(text: str) -> str:
    return (
        "The following text was recognized from a photo of a worksheet or exam page. "
        "It may contain one or more separate problems, possibly unnumbered, oddly "
        "formatted, or laid out in columns.\n\n"
        f'OCR text:\n"""\n{text}\n"""\n\n'
        "Split it into individual problems. Keep each problem's full statement, "
        "including its answer choices, and do not rewrite or solve anything.\n"
        "Respond with ONLY a JSON array, no prose and no code fences:\n"
        "[\n"
        '  {"problemNumber": 1, "text": "full problem text", "confidence": 0.95}\n'
        "]\n"
        "problemNumber is the number printed on the page (null if none); "
        "confidence is between 0 and 1."
    )


def parse_segmentation_response(content: str) -> List[ProblemSegment]:
    """Whole-response validation: any bad element rejects everything."""
    raw = parse_json_array(content)
    try:
        items = _ITEMS.validate_python(raw)
    except ValidationError as e:
        raise AiResponseError(f"segmentation schema mismatch: {e.error_count()} error(s)") from e

    out: List[ProblemSegment] = []
    for item in items:
        body = item.text.strip()
        if len(body) <= MIN_SEGMENT_CHARS:
            continue
        out.append(
            ProblemSegment(
                text=body,
                bbox=ZERO_BBOX,
                confidence=float(item.confidence),
                problem_number=item.problemNumber,
            )
        )
    return out


class AiSegmenter:
    def __init__(self, completer: TextCompleter, *, max_tokens: int = 2000) -> None:
        self._completer = completer
        self._max_tokens = int(max_tokens)

    async def segment_with_ai(self, text: str) -> List[ProblemSegment]:
        """AI segmentation; [] on any failure, never raises (except cancellation)."""
        if not text or not text.strip():
            return []

        try:
            content = await self._completer.complete(
                build_segmentation_prompt(text),
                system=SEGMENT_SYSTEM_PROMPT,
                max_tokens=self._max_tokens,
            )
            return parse_segmentation_response(content)
        except AiResponseError as e:
            logger.warning("AI segmentation response rejected: %s", e)
        except asyncio.TimeoutError:
            logger.warning("AI segmentation timed out")
        except openai.OpenAIError as e:
            logger.warning("AI segmentation request failed: %s", e)
        except Exception:
            logger.exception("AI segmentation failed unexpectedly")
        return []


async def detect_problems_enhanced(
    text: str,
    bboxes: Sequence[Sequence[float]] = (),
    ai_segmenter: Optional[AiSegmenter] = None,
) -> List[ProblemSegment]:
    """AI segmentation first; the regex chain runs only if it produced nothing."""
    if ai_segmenter is not None:
        segments = await ai_segmenter.segment_with_ai(text)
        if segments:
            logger.debug("AI segmentation produced %d segments", len(segments))
            return segments
        logger.info("AI segmentation produced nothing; using regex segmentation")
    return segment(text, bboxes)
