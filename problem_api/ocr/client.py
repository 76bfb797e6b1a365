from __future__ import annotations

import logging
import mimetypes
from typing import Any, List, Optional, Protocol

import httpx

from .schema import BBox, OCRReading

logger = logging.getLogger("problemcapture.ocr")


class Recognizer(Protocol):
    async def recognize(self, image: bytes, filename: str = "upload.jpg") -> OCRReading: ...


def _clamp01(x: float) -> float:
    return max(0.0, min(1.0, x))


def _parse_bbox(raw: Any) -> Optional[BBox]:
    if not isinstance(raw, (list, tuple)) or len(raw) != 4:
        return None
    try:
        x, y, w, h = (float(v) for v in raw)
    except (TypeError, ValueError):
        return None
    return (x, y, w, h)


def parse_ocr_response(data: Any) -> OCRReading:
    """
    Shape the OCR service JSON into an OCRReading:
      { success: bool, text: str, confidence: number, bboxes: [[x,y,w,h], ...] }
    Missing fields take failure-side defaults; malformed boxes are skipped.
    """
    if not isinstance(data, dict):
        return OCRReading.failed()

    text = data.get("text") or ""
    if not isinstance(text, str):
        text = str(text)

    try:
        conf = _clamp01(float(data.get("confidence") or 0.0))
    except (TypeError, ValueError):
        conf = 0.0

    boxes: List[BBox] = []
    for raw in data.get("bboxes") or []:
        b = _parse_bbox(raw)
        if b is not None:
            boxes.append(b)

    return OCRReading(
        success=bool(data.get("success", False)),
        text=text,
        confidence=conf,
        bboxes=tuple(boxes),
    )


class OcrServiceClient:
    """HTTP adapter for the external OCR service (POST /ocr, GET /health)."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 30.0,
        health_timeout_seconds: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = (base_url or "").strip().rstrip("/")
        self._health_timeout = float(health_timeout_seconds)
        timeout = httpx.Timeout(float(timeout_seconds), connect=min(5.0, float(timeout_seconds)))
        limits = httpx.Limits(max_keepalive_connections=10, max_connections=20)
        self._client = httpx.AsyncClient(timeout=timeout, limits=limits, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def recognize(self, image: bytes, filename: str = "upload.jpg") -> OCRReading:
        content_type = mimetypes.guess_type(filename or "")[0] or "application/octet-stream"
        files = {"file": (filename or "upload.jpg", image, content_type)}
        try:
            resp = await self._client.post(f"{self._base_url}/ocr", files=files)
            resp.raise_for_status()
            data = resp.json()
        except httpx.TimeoutException as e:
            logger.warning("OCR request timed out: %s", e)
            return OCRReading.failed()
        except httpx.HTTPError as e:
            logger.warning("OCR processing error: %s", e)
            return OCRReading.failed()
        except ValueError as e:
            logger.warning("OCR service returned non-JSON body: %s", e)
            return OCRReading.failed()

        return parse_ocr_response(data)

    async def health_check(self) -> bool:
        try:
            resp = await self._client.get(f"{self._base_url}/health", timeout=self._health_timeout)
        except httpx.HTTPError as e:
            logger.warning("OCR service health check failed: %s", e)
            return False
        return resp.status_code == 200
