"""
Tests for the HTTP surface.

Run with: pytest tests/test_api.py -v
"""

import pytest
from fastapi.testclient import TestClient

from facedoc.main import DISCLAIMER, app, detailed_status, get_client, limiter
from facedoc.schemas import ErrorResponse


@pytest.fixture
def api():
    """TestClient whose Gemini client is swapped for the one given."""
    limiter.enabled = False

    def _make(gemini_client):
        app.dependency_overrides[get_client] = lambda: gemini_client
        return TestClient(app, raise_server_exceptions=False)

    yield _make
    app.dependency_overrides.clear()
    limiter.enabled = True


def _upload(content_type="image/jpeg", size=4096):
    return {"image": ("face.jpg", b"\xff\xd8" + b"\x00" * size, content_type)}


def test_health(api, json_reply):
    client = api(json_reply({}))
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "apiKeyConfigured": True}


def test_analyze_success(api, model_reply, payload):
    client = api(model_reply(payload()))
    response = client.post("/analyze", files=_upload())

    assert response.status_code == 200
    body = response.json()
    assert body["overallScore"] == 78
    assert body["overallStatus"] == "양호"
    assert body["details"][0] == {"category": "피부 상태", "score": 82, "status": "우수"}
    assert body["disclaimer"] == DISCLAIMER


def test_analyze_without_image(api, model_reply, payload):
    client = api(model_reply(payload()))
    response = client.post("/analyze")

    assert response.status_code == 400
    assert response.json()["kind"] == "NO_IMAGE_FILE"
    assert response.json()["next_page"] == "home"


def test_analyze_wrong_type(api, model_reply, payload):
    client = api(model_reply(payload()))
    response = client.post("/analyze", files=_upload(content_type="text/plain"))

    assert response.status_code == 400
    body = response.json()
    assert body["kind"] == "WRONG_IMAGE_TYPE"
    assert body["notice"] == body["message"]


def test_analyze_no_face(api, model_reply, payload):
    client = api(model_reply(payload(isFaceDetected=False)))
    response = client.post("/analyze", files=_upload())

    assert response.status_code == 422
    assert response.json()["kind"] == "NO_FACE_DETECTED"


def test_analyze_quota_exceeded(api, json_reply):
    client = api(json_reply({"error": {"message": "Quota exceeded"}}, status=429))
    response = client.post("/analyze", files=_upload())

    assert response.status_code == 429
    body = response.json()
    assert body["kind"] == "QUOTA_EXCEEDED"
    assert body["code"] == "API_ERROR_429"
    assert body["notice"] == "분석에 실패했습니다. 다시 시도해주세요."


@pytest.mark.parametrize(
    "score, label",
    [(95, "매우 우수"), (80, "우수"), (79, "양호"), (60, "보통"), (55, "주의"), (40, "관리 필요"), (39, "즉시 관리 필요"), (12, "즉시 관리 필요")],
)
def test_detailed_status(score, label):
    assert detailed_status(score) == label


def test_rate_limit_uses_error_schema(api, json_reply):
    client = api(json_reply({}))
    limiter.enabled = True
    limiter.reset()
    try:
        for _ in range(100):
            response = client.post("/analyze")
            if response.status_code == 429:
                break
    finally:
        limiter.reset()

    assert response.status_code == 429
    body = ErrorResponse(**response.json())
    assert body.kind == "RATE_LIMITED"
    assert body.category == "throttled"
    assert body.notice == body.message
    assert body.next_page == "home"


def test_error_responses_documented():
    schema = app.openapi()["paths"]["/analyze"]["post"]["responses"]
    assert schema["429"]["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")
