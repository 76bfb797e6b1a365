from __future__ import annotations

import logging
import re
from typing import Callable, List, Optional, Pattern, Sequence, Tuple

from problem_api.ocr.schema import ZERO_BBOX, BBox
from problem_api.problems.models import ProblemSegment

logger = logging.getLogger("problemcapture.segment")

# Pieces at or below these trimmed lengths are noise (stray numerals, "Name:", ...).
MIN_SEGMENT_CHARS = 10
MIN_PARAGRAPH_CHARS = 20

NUMBERED_CONFIDENCE = 0.85
PARAGRAPH_CONFIDENCE = 0.7
SINGLE_BLOCK_CONFIDENCE = 0.9


# Problem-index conventions, in priority order. Every pattern captures the
# numeral as `num` and consumes the marker plus trailing separator, so the
# problem text starts right at m.end().
#
# - "N. " must not be a decimal tail ("2.5") or part of a longer number.
# - "N)" must not be the closing half of "(N)".
# - "Problem N" / "Question N" swallow a following ":" or "." ("Problem 1: ...").
NUMBERING_FAMILIES: Tuple[Tuple[str, Pattern[str]], ...] = (
    ("period", re.compile(r"(?<![\d.])(?P<num>\d{1,3})\.\s+")),
    ("problem", re.compile(r"\bProblem\s*#?\s*(?P<num>\d{1,3})\b\s*[:.)\-]?\s*", re.IGNORECASE)),
    ("question", re.compile(r"\bQuestion\s*#?\s*(?P<num>\d{1,3})\b\s*[:.)\-]?\s*", re.IGNORECASE)),
    ("paren", re.compile(r"\(\s*(?P<num>\d{1,3})\s*\)\s*")),
    ("close_paren", re.compile(r"(?<![\d(])(?P<num>\d{1,3})\)\s+")),
    ("bracket", re.compile(r"\[\s*(?P<num>\d{1,3})\s*\]\s*")),
    ("hash", re.compile(r"(?<!\w)#\s?(?P<num>\d{1,3})\b[:.)]?\s*")),
)

# Paragraph boundary: two or more consecutive newlines.
_RX_BLANK_LINES = re.compile(r"\n{2,}")


def _bbox_at(bboxes: Sequence[Sequence[float]], i: int) -> BBox:
    if i < len(bboxes):
        b = bboxes[i]
        try:
            if len(b) == 4:
                return (float(b[0]), float(b[1]), float(b[2]), float(b[3]))
        except (TypeError, ValueError):
            pass
    return ZERO_BBOX


def count_markers(text: str, rx: Pattern[str]) -> int:
    return sum(1 for _ in rx.finditer(text or ""))


def pick_numbering_family(text: str) -> Optional[Tuple[str, Pattern[str]]]:
    """Family with the most markers; an exact tie keeps the earlier-declared family."""
    best: Optional[Tuple[str, Pattern[str]]] = None
    best_count = 0
    for label, rx in NUMBERING_FAMILIES:
        n = count_markers(text, rx)
        if n > best_count:
            best, best_count = (label, rx), n
    return best


def split_by_markers(text: str, rx: Pattern[str]) -> List[Tuple[int, str]]:
    """
    Pair every marker's numeral with the text up to the next marker.
    Text before the first marker has no index and is not returned.
    """
    ms = list(rx.finditer(text))
    out: List[Tuple[int, str]] = []
    for i, m in enumerate(ms):
        end = ms[i + 1].start() if i + 1 < len(ms) else len(text)
        out.append((int(m.group("num")), text[m.end():end]))
    return out


# -----------------
# Strategies: (text, bboxes) -> segments; an empty list means "declined".
# -----------------


def segment_numbered(text: str, bboxes: Sequence[Sequence[float]] = ()) -> List[ProblemSegment]:
    family = pick_numbering_family(text)
    if family is None:
        return []
    label, rx = family

    out: List[ProblemSegment] = []
    for num, piece in split_by_markers(text, rx):
        body = piece.strip()
        if len(body) <= MIN_SEGMENT_CHARS:
            continue
        out.append(
            ProblemSegment(
                text=body,
                bbox=_bbox_at(bboxes, len(out)),
                confidence=NUMBERED_CONFIDENCE,
                problem_number=num,
            )
        )
    logger.debug("numbered segmentation: family=%s kept=%d", label, len(out))
    return out


def segment_paragraphs(text: str, bboxes: Sequence[Sequence[float]] = ()) -> List[ProblemSegment]:
    norm = (text or "").replace("\r\n", "\n").replace("\r", "\n")
    out: List[ProblemSegment] = []
    for part in _RX_BLANK_LINES.split(norm):
        body = part.strip()
        if len(body) <= MIN_PARAGRAPH_CHARS:
            continue
        out.append(
            ProblemSegment(
                text=body,
                bbox=_bbox_at(bboxes, len(out)),
                confidence=PARAGRAPH_CONFIDENCE,
                problem_number=len(out) + 1,
            )
        )
    return out


def segment_single_block(text: str, bboxes: Sequence[Sequence[float]] = ()) -> List[ProblemSegment]:
    body = (text or "").strip()
    if not body:
        return []
    return [
        ProblemSegment(
            text=body,
            bbox=_bbox_at(bboxes, 0),
            confidence=SINGLE_BLOCK_CONFIDENCE,
            problem_number=1,
        )
    ]


Strategy = Callable[[str, Sequence[Sequence[float]]], List[ProblemSegment]]

SEGMENTATION_STRATEGIES: Tuple[Tuple[str, Strategy], ...] = (
    ("numbered", segment_numbered),
    ("paragraphs", segment_paragraphs),
    ("single_block", segment_single_block),
)


def segment(text: str, bboxes: Sequence[Sequence[float]] = ()) -> List[ProblemSegment]:
    """
    Split raw OCR text into problem segments. First strategy that returns
    anything wins. Never raises; whitespace-only text gives [].
    """
    if not text or not text.strip():
        return []

    for name, strategy in SEGMENTATION_STRATEGIES:
        segments = strategy(text, bboxes)
        if segments:
            logger.debug("segmentation strategy=%s segments=%d", name, len(segments))
            return segments
    return []
