from __future__ import annotations

import os
from dataclasses import dataclass


def _get_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class MatchThresholds:
    """Score cut-offs for the token-similarity scorer (strict `>` comparisons)."""

    min_score: float = 0.3
    similar: float = 0.7
    exact: float = 0.9


@dataclass(frozen=True)
class Settings:
    # General
    environment: str
    log_level: str

    # Database (candidate retrieval)
    database_url: str

    # OCR service
    ocr_service_url: str
    ocr_timeout_seconds: float
    ocr_health_timeout_seconds: float

    # Text-completion service
    openai_api_key: str
    openai_model: str
    ai_timeout_seconds: float
    ai_temperature: float
    ai_segment_max_tokens: int
    ai_match_max_tokens: int

    # If false, segmentation always uses the regex chain even with an API key.
    ai_segmentation_enabled: bool

    # Matching
    match_candidate_limit: int
    match_thresholds: MatchThresholds
    max_matches_returned: int

    # Uploads
    max_upload_bytes: int

    @property
    def ai_configured(self) -> bool:
        return bool(self.openai_api_key)

    @staticmethod
    def from_env() -> "Settings":
        return Settings(
            environment=(os.getenv("ENVIRONMENT") or os.getenv("ENV") or "stage").strip() or "stage",
            log_level=(os.getenv("LOG_LEVEL") or "INFO").strip().upper() or "INFO",
            database_url=(os.getenv("DATABASE_URL") or "").strip(),
            ocr_service_url=(os.getenv("OCR_SERVICE_URL") or "http://localhost:8000").strip().rstrip("/"),
            ocr_timeout_seconds=_get_float("OCR_TIMEOUT_SECONDS", 30.0),
            ocr_health_timeout_seconds=_get_float("OCR_HEALTH_TIMEOUT_SECONDS", 5.0),
            openai_api_key=(os.getenv("OPENAI_API_KEY") or "").strip(),
            openai_model=(os.getenv("OPENAI_MODEL") or "gpt-4o-mini").strip(),
            ai_timeout_seconds=_get_float("AI_TIMEOUT_SECONDS", 30.0),
            ai_temperature=_get_float("AI_TEMPERATURE", 0.1),
            ai_segment_max_tokens=_get_int("AI_SEGMENT_MAX_TOKENS", 2000),
            ai_match_max_tokens=_get_int("AI_MATCH_MAX_TOKENS", 1000),
            ai_segmentation_enabled=_get_bool("AI_SEGMENTATION_ENABLED", True),
            match_candidate_limit=_get_int("MATCH_CANDIDATE_LIMIT", 10),
            match_thresholds=MatchThresholds(
                min_score=_get_float("MATCH_MIN_SCORE", 0.3),
                similar=_get_float("MATCH_SIMILAR_SCORE", 0.7),
                exact=_get_float("MATCH_EXACT_SCORE", 0.9),
            ),
            max_matches_returned=_get_int("MAX_MATCHES_RETURNED", 5),
            max_upload_bytes=_get_int("MAX_UPLOAD_BYTES", 10 * 1024 * 1024),
        )
