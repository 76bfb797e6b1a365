from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

BBox = Tuple[float, float, float, float]  # x, y, w, h

ZERO_BBOX: BBox = (0.0, 0.0, 0.0, 0.0)


@dataclass(frozen=True)
class OCRReading:
    success: bool
    text: str
    confidence: float  # 0..1
    bboxes: Tuple[BBox, ...] = ()

    @staticmethod
    def failed() -> "OCRReading":
        return OCRReading(success=False, text="", confidence=0.0, bboxes=())
