import pytest

from facedoc.config import Settings
from facedoc.errors import (
    DIRECT_HOME_KINDS,
    GENERIC_NOTICE,
    AnalysisError,
    ErrorCategory,
    ErrorKind,
)
from facedoc.schemas import ErrorResponse


@pytest.mark.parametrize("kind", list(ErrorKind))
def test_every_kind_has_message_and_category(kind):
    error = AnalysisError(kind)
    assert error.message
    assert isinstance(error.category, ErrorCategory)
    assert error.code == kind.value
    assert error.to_dict()["next_page"] == "home"


def test_direct_kinds_use_own_notice():
    for kind in DIRECT_HOME_KINDS:
        error = AnalysisError(kind)
        assert error.notice == error.message


def test_other_kinds_use_generic_notice():
    error = AnalysisError(ErrorKind.API_ERROR, code="API_ERROR_500", status_code=500)
    assert error.notice == GENERIC_NOTICE
    assert error.to_dict()["code"] == "API_ERROR_500"
    assert str(error).startswith("API_ERROR_500")


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", " AIzaSyTestKey ")
    monkeypatch.setenv("GEMINI_MODEL", "gemini-2.5-flash")
    monkeypatch.setenv("GEMINI_TIMEOUT_SECONDS", "12.5")
    settings = Settings.from_env()

    assert settings.gemini_api_key == "AIzaSyTestKey"
    assert settings.gemini_model == "gemini-2.5-flash"
    assert settings.timeout_seconds == 12.5
    assert settings.masked_api_key() == "AIza***"


def test_settings_invalid_number(monkeypatch):
    monkeypatch.setenv("GEMINI_TOP_K", "lots")
    with pytest.raises(ValueError):
        Settings.from_env()


def test_masked_key_when_unset():
    assert Settings(gemini_api_key="").masked_api_key() == "없음"


def test_error_body_matches_response_schema():
    error = AnalysisError(ErrorKind.NO_FACE_DETECTED)
    body = ErrorResponse(**error.to_dict())
    assert body == error.to_response()
    assert body.category == "domain"


def test_rate_limited_is_not_an_input_error():
    error = AnalysisError(ErrorKind.RATE_LIMITED)
    assert error.category == ErrorCategory.THROTTLED
    assert error.notice == error.message
