# api_main.py
# FastAPI service for problem capture
# - OCR an uploaded worksheet photo, split it into problems, match each one
# - Text-only identification for manual lookups
# - OCR service health passthrough

from __future__ import annotations

import base64
import binascii
import io
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Body, Depends, FastAPI, File, Header, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from PIL import Image
from pydantic import BaseModel

from problem_api.config import Settings
from problem_api.db import Db
from problem_api.llm import build_completer
from problem_api.ocr.client import OcrServiceClient
from problem_api.pipeline import ProblemPipeline, match_dict, suggestion_dict
from problem_api.problems.ai_segment import AiSegmenter
from problem_api.problems.match import ProblemMatcher
from problem_api.problems.selftest import run_rules_selftest

logger = logging.getLogger("problemcapture")


# ---------- models ----------
class ImageBufferIngest(BaseModel):
    image_data: str
    filename: Optional[str] = "upload.jpg"


class IdentifyRequest(BaseModel):
    text: str


# ---------- lifespan ----------
@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    run_rules_selftest()

    db = Db(settings.database_url)
    await db.start()
    ocr = OcrServiceClient(
        settings.ocr_service_url,
        timeout_seconds=settings.ocr_timeout_seconds,
        health_timeout_seconds=settings.ocr_health_timeout_seconds,
    )
    completer = build_completer(settings)
    ai_segmenter = None
    if completer is not None and settings.ai_segmentation_enabled:
        ai_segmenter = AiSegmenter(completer, max_tokens=settings.ai_segment_max_tokens)

    matcher = ProblemMatcher(
        db,
        completer,
        thresholds=settings.match_thresholds,
        candidate_limit=settings.match_candidate_limit,
        ai_max_tokens=settings.ai_match_max_tokens,
    )

    app.state.settings = settings
    app.state.ocr = ocr
    app.state.pipeline = ProblemPipeline(
        ocr,
        matcher,
        ai_segmenter=ai_segmenter,
        max_matches=settings.max_matches_returned,
    )
    logger.info(
        "problem capture API ready (env=%s, ai=%s, db=%s)",
        settings.environment,
        completer is not None,
        bool(settings.database_url),
    )
    try:
        yield
    finally:
        await ocr.aclose()
        if completer is not None:
            await completer.aclose()
        await db.close()


# ---------- app ----------
app = FastAPI(title="Problem Capture API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------- dependencies ----------
def get_settings(request: Request) -> Settings:
    settings = getattr(request.app.state, "settings", None)
    return settings if settings is not None else Settings.from_env()


def get_pipeline(request: Request) -> ProblemPipeline:
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Service not initialised")
    return pipeline


def get_ocr_client(request: Request) -> OcrServiceClient:
    ocr = getattr(request.app.state, "ocr", None)
    if ocr is None:
        raise HTTPException(status_code=503, detail="Service not initialised")
    return ocr


def get_tenant_id(x_tenant_id: Optional[str] = Header(default=None, alias="X-Tenant-Id")) -> str:
    tenant = (x_tenant_id or "").strip()
    if not tenant:
        raise HTTPException(status_code=401, detail="Missing X-Tenant-Id header")
    return tenant


# ---------- utils ----------
def _check_image_bytes(b: bytes, max_bytes: int) -> None:
    if not b:
        raise HTTPException(status_code=400, detail="No image data provided")
    if len(b) > max_bytes:
        raise HTTPException(status_code=413, detail=f"Image exceeds {max_bytes} bytes")
    try:
        with Image.open(io.BytesIO(b)) as im:
            im.verify()
    except Exception:
        raise HTTPException(status_code=400, detail="Invalid image bytes")


async def _read_image_from_request(
    request: Request, file: UploadFile | None, image: UploadFile | None
) -> tuple[bytes, str]:
    up = image or file
    if up is not None:
        ct = (up.content_type or "").lower()
        if not ct.startswith("image/"):
            raise HTTPException(status_code=400, detail="Uploaded part must be an image (png, jpeg, webp).")
        return await up.read(), (up.filename or "upload.jpg")

    # allow raw image bytes
    ct = (request.headers.get("content-type") or "").lower()
    if not ct.startswith("image/"):
        raise HTTPException(
            status_code=400,
            detail="No image file provided. Send multipart field 'image' or 'file', or raw bytes with Content-Type: image/*.",
        )
    return await request.body(), "upload." + (ct.split("/", 1)[1].split(";", 1)[0] or "jpg")


async def _process(pipeline: ProblemPipeline, data: bytes, filename: str, tenant_id: str) -> dict:
    result = await pipeline.process_image(data, filename, tenant_id)
    if result.ocr_failed:
        raise HTTPException(
            status_code=422,
            detail={"error": "OCR processing failed", "details": "Could not extract text from the image"},
        )
    return result.to_dict()


# ---------- routes ----------
@app.get("/healthz")
async def healthz(settings: Settings = Depends(get_settings)):
    return {"ok": True, "env": settings.environment}


@app.get("/ocr/health")
@app.get("/api/ocr/health")
async def ocr_health(ocr: OcrServiceClient = Depends(get_ocr_client)):
    if await ocr.health_check():
        return {"status": "healthy", "ocr_service": "available"}
    return JSONResponse(status_code=503, content={"status": "unhealthy", "ocr_service": "unavailable"})


@app.post("/ocr/process")
@app.post("/api/ocr/process")
async def ocr_process(
    request: Request,
    file: UploadFile | None = File(None),
    image: UploadFile | None = File(None),
    tenant_id: str = Depends(get_tenant_id),
    pipeline: ProblemPipeline = Depends(get_pipeline),
    settings: Settings = Depends(get_settings),
):
    data, filename = await _read_image_from_request(request, file, image)
    _check_image_bytes(data, settings.max_upload_bytes)
    try:
        return await _process(pipeline, data, filename, tenant_id)
    except HTTPException:
        raise
    except Exception:
        logger.exception("OCR processing error")
        raise HTTPException(status_code=500, detail="Internal server error during OCR processing")


@app.post("/ocr/process-buffer")
@app.post("/api/ocr/process-buffer")
async def ocr_process_buffer(
    payload: ImageBufferIngest = Body(...),
    tenant_id: str = Depends(get_tenant_id),
    pipeline: ProblemPipeline = Depends(get_pipeline),
    settings: Settings = Depends(get_settings),
):
    try:
        data = base64.b64decode(payload.image_data, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail="image_data must be base64")
    _check_image_bytes(data, settings.max_upload_bytes)
    try:
        return await _process(pipeline, data, payload.filename or "upload.jpg", tenant_id)
    except HTTPException:
        raise
    except Exception:
        logger.exception("OCR buffer processing error")
        raise HTTPException(status_code=500, detail="Internal server error during OCR processing")


@app.post("/problems/identify")
@app.post("/api/problems/identify")
async def identify_problem(
    payload: IdentifyRequest = Body(...),
    tenant_id: str = Depends(get_tenant_id),
    pipeline: ProblemPipeline = Depends(get_pipeline),
    settings: Settings = Depends(get_settings),
):
    text = (payload.text or "").strip()
    if not text:
        raise HTTPException(status_code=400, detail="text is required")
    try:
        matches, suggestions = await pipeline.matcher.identify_problem(text, tenant_id)
    except Exception:
        logger.exception("Problem identification error")
        raise HTTPException(status_code=500, detail="Internal server error during problem identification")
    return {
        "matches": [match_dict(m) for m in matches[: settings.max_matches_returned]],
        "suggestions": suggestion_dict(suggestions),
    }


@app.post("/problems/detect")
@app.post("/api/problems/detect")
async def detect_problems(
    payload: IdentifyRequest = Body(...),
    tenant_id: str = Depends(get_tenant_id),
    pipeline: ProblemPipeline = Depends(get_pipeline),
):
    text = (payload.text or "").strip()
    if not text:
        raise HTTPException(status_code=400, detail="text is required")
    try:
        result = await pipeline.identify_text(text, tenant_id)
    except Exception:
        logger.exception("Problem detection error")
        raise HTTPException(status_code=500, detail="Internal server error during problem detection")
    return result.to_dict()


# ---------- uvicorn entry ----------
if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "8080"))
    uvicorn.run("problem_api.api_main:app", host="0.0.0.0", port=port, reload=False)
