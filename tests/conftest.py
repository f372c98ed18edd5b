"""
Shared fixtures for the FaceDoc tests.

Provides:
- Settings with a well-formed (fake) Gemini key
- Sample image uploads around the size limits
- Gemini-shaped responses served through httpx.MockTransport
- A seeded random source for the normalizer
"""

import json
import random

import httpx
import pytest

from facedoc.config import Settings
from facedoc.gemini import GeminiClient
from facedoc.schemas import ImageFile

FAKE_API_KEY = "AIza" + "x" * 35


def gemini_body(text, finish_reason="STOP"):
    """Wrap ``text`` the way generateContent returns it."""
    return {
        "candidates": [
            {
                "finishReason": finish_reason,
                "content": {"parts": [{"text": text}], "role": "model"},
            }
        ]
    }


def analysis_payload(**overrides):
    payload = {
        "isFaceDetected": True,
        "overallScore": 78,
        "summaryText": "전반적으로 건강한 상태이나 약간의 피로가 보입니다.",
        "details": [
            {"category": "피부 상태", "score": 82},
            {"category": "피로도", "score": 64},
            {"category": "혈색", "score": 75},
            {"category": "부기", "score": 79},
        ],
        "recommendations": [
            {
                "category": "생활 습관",
                "tip": "매일 밤 같은 시간에 잠자리에 들고, 자기 전 한 시간은 전자기기 사용을 줄여 수면의 질을 높이세요.",
            },
            {
                "category": "영양 관리",
                "tip": "비타민 C가 풍부한 과일과 녹색 채소를 하루 두 번 이상 섭취하고, 가공식품 섭취를 줄여보세요.",
            },
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def settings():
    return Settings(gemini_api_key=FAKE_API_KEY, timeout_seconds=5.0)


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def jpeg_image():
    # JPEG magic bytes followed by filler; only size and type matter here.
    return ImageFile(
        filename="face.jpg",
        content_type="image/jpeg",
        data=b"\xff\xd8\xff\xe0" + b"\x00" * 4096,
    )


@pytest.fixture
def make_client(settings):
    """Build a GeminiClient whose HTTP calls are answered by ``handler``."""

    def _make(handler, client_settings=None):
        transport = httpx.MockTransport(handler)
        return GeminiClient(client_settings or settings, transport=transport)

    return _make


@pytest.fixture
def json_reply(make_client):
    """Client that answers every request with ``body`` and ``status``."""

    def _make(body, status=200):
        def handler(request):
            if isinstance(body, (dict, list)):
                return httpx.Response(status, json=body)
            return httpx.Response(status, text=body)

        return make_client(handler)

    return _make


@pytest.fixture
def model_reply(json_reply):
    """Client whose model output text is ``payload`` (dict or raw string)."""

    def _make(payload, finish_reason="STOP"):
        text = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False)
        return json_reply(gemini_body(text, finish_reason))

    return _make


@pytest.fixture
def payload():
    return analysis_payload
