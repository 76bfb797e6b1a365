from .client import OcrServiceClient, Recognizer, parse_ocr_response
from .schema import ZERO_BBOX, BBox, OCRReading

__all__ = [
    "BBox",
    "OCRReading",
    "OcrServiceClient",
    "Recognizer",
    "ZERO_BBOX",
    "parse_ocr_response",
]
