import pytest

from problem_api.config import MatchThresholds, Settings

ENV_KEYS = [
    "ENVIRONMENT",
    "ENV",
    "LOG_LEVEL",
    "DATABASE_URL",
    "OCR_SERVICE_URL",
    "OCR_TIMEOUT_SECONDS",
    "OPENAI_API_KEY",
    "AI_SEGMENTATION_ENABLED",
    "MATCH_MIN_SCORE",
    "MATCH_CANDIDATE_LIMIT",
    "MAX_MATCHES_RETURNED",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults():
    s = Settings.from_env()

    assert s.environment == "stage"
    assert s.log_level == "INFO"
    assert s.ocr_service_url == "http://localhost:8000"
    assert s.ocr_timeout_seconds == 30.0
    assert s.openai_model == "gpt-4o-mini"
    assert s.ai_segmentation_enabled is True
    assert s.ai_configured is False
    assert s.match_candidate_limit == 10
    assert s.match_thresholds == MatchThresholds(min_score=0.3, similar=0.7, exact=0.9)
    assert s.max_matches_returned == 5
    assert s.max_upload_bytes == 10 * 1024 * 1024


def test_overrides(monkeypatch):
    monkeypatch.setenv("ENV", "prod")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("OCR_SERVICE_URL", "http://ocr:9000/")
    monkeypatch.setenv("OPENAI_API_KEY", " sk-test ")
    monkeypatch.setenv("AI_SEGMENTATION_ENABLED", "off")
    monkeypatch.setenv("MATCH_MIN_SCORE", "0.4")
    monkeypatch.setenv("MAX_MATCHES_RETURNED", "3")

    s = Settings.from_env()

    assert s.environment == "prod"
    assert s.log_level == "DEBUG"
    assert s.ocr_service_url == "http://ocr:9000"
    assert s.openai_api_key == "sk-test"
    assert s.ai_configured is True
    assert s.ai_segmentation_enabled is False
    assert s.match_thresholds.min_score == 0.4
    assert s.max_matches_returned == 3


def test_unparseable_numbers_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("OCR_TIMEOUT_SECONDS", "soon")
    monkeypatch.setenv("MATCH_CANDIDATE_LIMIT", "ten")

    s = Settings.from_env()

    assert s.ocr_timeout_seconds == 30.0
    assert s.match_candidate_limit == 10
