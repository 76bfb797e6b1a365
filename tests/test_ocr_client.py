import asyncio

import httpx
import pytest

from problem_api.ocr import OCRReading, OcrServiceClient, parse_ocr_response


def _run_with(handler, coro_fn):
    async def go():
        client = OcrServiceClient("http://ocr.local/", transport=httpx.MockTransport(handler))
        try:
            return await coro_fn(client)
        finally:
            await client.aclose()

    return asyncio.run(go())


def test_recognize_posts_multipart_file_and_shapes_response():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["method"] = request.method
        seen["body"] = request.read()
        return httpx.Response(
            200,
            json={
                "success": True,
                "text": "1. What is 2+2?",
                "confidence": 0.93,
                "bboxes": [[10, 20, 100, 30]],
            },
        )

    reading = _run_with(handler, lambda c: c.recognize(b"\x89PNGdata", "page.png"))

    assert seen["method"] == "POST"
    assert seen["url"] == "http://ocr.local/ocr"
    assert b'name="file"' in seen["body"]
    assert b'filename="page.png"' in seen["body"]
    assert reading == OCRReading(success=True, text="1. What is 2+2?", confidence=0.93, bboxes=((10.0, 20.0, 100.0, 30.0),))


def test_parse_clamps_confidence_and_skips_bad_boxes():
    reading = parse_ocr_response(
        {"success": True, "text": "x", "confidence": 1.7, "bboxes": [[1, 2, 3], "nope", [1, 2, 3, 4], [1, "a", 3, 4]]}
    )
    assert reading.confidence == 1.0
    assert reading.bboxes == ((1.0, 2.0, 3.0, 4.0),)

    assert parse_ocr_response({"success": True, "confidence": -3}).confidence == 0.0


def test_parse_missing_fields_default_to_failure_side():
    assert parse_ocr_response({}) == OCRReading.failed()
    assert parse_ocr_response(["not", "a", "dict"]) == OCRReading.failed()


@pytest.mark.parametrize(
    "handler",
    [
        lambda request: httpx.Response(500, json={"detail": "engine crashed"}),
        lambda request: httpx.Response(200, content=b"<html>oops</html>"),
    ],
)
def test_recognize_failures_become_failed_reading(handler):
    assert _run_with(handler, lambda c: c.recognize(b"img")) == OCRReading.failed()


def test_recognize_timeout_becomes_failed_reading():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    assert _run_with(handler, lambda c: c.recognize(b"img")) == OCRReading.failed()


def test_recognize_connection_error_becomes_failed_reading():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    assert _run_with(handler, lambda c: c.recognize(b"img")) == OCRReading.failed()


@pytest.mark.parametrize("status,expected", [(200, True), (500, False), (404, False)])
def test_health_check_status(status, expected):
    def handler(request):
        assert request.url.path == "/health"
        return httpx.Response(status, json={"status": "ok"})

    assert _run_with(handler, lambda c: c.health_check()) is expected


def test_health_check_unreachable():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    assert _run_with(handler, lambda c: c.health_check()) is False
