import logging
from datetime import datetime
from typing import Optional

import httpx

from .config import Settings
from .errors import AnalysisError, ErrorKind

logger = logging.getLogger(__name__)

API_KEY_PREFIX = "AIza"
MIN_API_KEY_LENGTH = 30
INVALID_KEY_MARKER = "API key not valid"

SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)
SAFETY_THRESHOLD = "BLOCK_MEDIUM_AND_ABOVE"

FACE_ANALYSIS_PROMPT = """\
당신은 최고의 전문 얼굴 건강 분석 AI입니다.

첨부된 이미지를 자세히 분석하여 맞춤형 건강 조언을 제공해주세요.

**1단계: 얼굴 감지 확인**
- 이미지에 사람의 얼굴이 명확히 보이면 "isFaceDetected": true
- 얼굴이 없거나 불분명하면 "isFaceDetected": false

**2단계: 상세 건강 분석**
각 영역을 자세히 관찰하여 서로 다른 점수(30-95점)를 부여하세요:

1. **피부 상태**: 탄력도, 윤기, 모공 크기, 색소침착, 트러블 여부
2. **피로도**: 다크서클 정도, 눈의 피로감, 전반적 활력도
3. **혈색**: 자연스러운 안색, 혈액순환 상태, 생기
4. **부기**: 얼굴과 눈 주변 부종 정도, 수분 정체
5. **눈가 주름**: 미세주름, 표정주름, 눈가 탄력도
6. **수분 상태**: 피부 건조도, 유분 밸런스, 수분 보유력
7. **스트레스 지표**: 긴장된 표정, 이마 주름, 전반적 스트레스 징후

**3단계: 맞춤형 건강 조언 생성**
관찰된 특징을 바탕으로 구체적이고 실용적인 조언을 작성하세요.

**JSON 응답 형식:**
{{
  "isFaceDetected": true,
  "overallScore": 75,
  "summaryText": "전반적인 상태 요약",
  "details": [
    {{"category": "피부 상태", "score": 82}},
    {{"category": "피로도", "score": 68}},
    {{"category": "혈색", "score": 75}},
    {{"category": "부기", "score": 79}},
    {{"category": "눈가 주름", "score": 71}},
    {{"category": "수분 상태", "score": 73}},
    {{"category": "스트레스 지표", "score": 66}}
  ],
  "recommendations": [
    {{"category": "생활 습관", "tip": "구체적인 건강 조언"}},
    {{"category": "영양 관리", "tip": "구체적인 영양 조언"}},
    {{"category": "스킨케어", "tip": "구체적인 스킨케어 조언"}}
  ]
}}

분석 ID: {analysis_id}
분석 시간: {requested_at}

JSON 형식으로만 응답해주세요.
"""


def is_api_key_well_formed(api_key: str) -> bool:
    if not api_key:
        return False
    if len(api_key) < MIN_API_KEY_LENGTH:
        return False
    return api_key.startswith(API_KEY_PREFIX)


def build_prompt(analysis_id: str, requested_at: datetime) -> str:
    return FACE_ANALYSIS_PROMPT.format(
        analysis_id=analysis_id,
        requested_at=requested_at.strftime("%Y. %m. %d. %H:%M:%S"),
    )


def _error_message(response: httpx.Response) -> str:
    try:
        detail = response.json()
        return str(detail.get("error", {}).get("message", response.text))
    except (ValueError, AttributeError):
        return response.text


def classify_status(response: httpx.Response) -> AnalysisError:
    """Map a non-success provider response to a classified error."""
    status = response.status_code
    message = _error_message(response)
    code = f"API_ERROR_{status}"
    logger.warning("Gemini API error (%d): %s", status, message)

    if status == 400:
        if INVALID_KEY_MARKER in message:
            return AnalysisError(ErrorKind.INVALID_API_KEY, status_code=status)
        kind = ErrorKind.BAD_REQUEST
    elif status == 429:
        kind = ErrorKind.QUOTA_EXCEEDED
    elif status == 403:
        kind = ErrorKind.PERMISSION_DENIED
    else:
        kind = ErrorKind.API_ERROR

    return AnalysisError(kind, code=code, status_code=status)


def extract_text(data) -> str:
    """Return the text of the first candidate's first part."""
    candidates = data.get("candidates") if isinstance(data, dict) else None
    if not candidates or not isinstance(candidates, list):
        block_reason = None
        if isinstance(data, dict):
            feedback = data.get("promptFeedback")
            if isinstance(feedback, dict):
                block_reason = feedback.get("blockReason")
        if block_reason:
            raise AnalysisError(
                ErrorKind.NO_AI_RESPONSE,
                f"AI가 응답을 생성하지 못했습니다 (차단 사유: {block_reason}). "
                "다른 이미지로 시도해보세요.",
            )
        raise AnalysisError(ErrorKind.NO_AI_RESPONSE)

    candidate = candidates[0]
    if not isinstance(candidate, dict):
        raise AnalysisError(ErrorKind.NO_AI_RESPONSE)

    finish_reason = candidate.get("finishReason")
    if finish_reason and finish_reason != "STOP":
        raise AnalysisError(
            ErrorKind.AI_FINISH_REASON,
            code=f"AI_FINISH_REASON_{finish_reason}",
        )

    content = candidate.get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    if not parts or not isinstance(parts, list):
        raise AnalysisError(ErrorKind.NO_RESPONSE_CONTENT)

    first = parts[0] if isinstance(parts[0], dict) else {}
    text = first.get("text")
    if not isinstance(text, str) or not text.strip():
        raise AnalysisError(ErrorKind.NO_RESPONSE_CONTENT)
    return text.strip()


class GeminiClient:
    """REST client for the Gemini ``generateContent`` endpoint.

    The credential comes from the injected ``Settings`` and is checked on
    first use, not at construction. ``transport`` lets tests swap in an
    ``httpx.MockTransport``.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self._transport = transport

    @property
    def url(self) -> str:
        return (
            f"{self.settings.gemini_api_base}"
            f"/models/{self.settings.gemini_model}:generateContent"
        )

    def is_api_key_valid(self) -> bool:
        return is_api_key_well_formed(self.settings.gemini_api_key)

    def check_credentials(self) -> None:
        api_key = self.settings.gemini_api_key
        if not api_key:
            raise AnalysisError(ErrorKind.API_KEY_NOT_SET)
        if not is_api_key_well_formed(api_key):
            raise AnalysisError(ErrorKind.INVALID_API_KEY_FORMAT)
        if not self.settings.gemini_model or not self.settings.gemini_api_base:
            raise AnalysisError(ErrorKind.AI_CLIENT_INIT_FAILED)

    def build_payload(self, prompt: str, image_b64: str, mime_type: str) -> dict:
        settings = self.settings
        return {
            "contents": [
                {
                    "parts": [
                        {"text": prompt},
                        {
                            "inline_data": {
                                "mime_type": mime_type,
                                "data": image_b64,
                            }
                        },
                    ],
                }
            ],
            "generationConfig": {
                "temperature": settings.temperature,
                "topK": settings.top_k,
                "topP": settings.top_p,
                "maxOutputTokens": settings.max_output_tokens,
                "responseMimeType": "application/json",
            },
            "safetySettings": [
                {"category": category, "threshold": SAFETY_THRESHOLD}
                for category in SAFETY_CATEGORIES
            ],
        }

    async def generate(
        self,
        image_b64: str,
        mime_type: str,
        *,
        analysis_id: str,
        requested_at: Optional[datetime] = None,
    ) -> str:
        """Send one analysis request and return the model's raw text."""
        self.check_credentials()

        prompt = build_prompt(analysis_id, requested_at or datetime.now())
        payload = self.build_payload(prompt, image_b64, mime_type)

        try:
            async with httpx.AsyncClient(
                timeout=self.settings.timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    self.url,
                    json=payload,
                    headers={"x-goog-api-key": self.settings.gemini_api_key},
                )
        except httpx.TimeoutException as exc:
            logger.warning("Gemini request timed out for analysis %s", analysis_id)
            raise AnalysisError(ErrorKind.REQUEST_TIMEOUT) from exc
        except httpx.RequestError as exc:
            logger.warning("Gemini request failed for analysis %s: %s", analysis_id, exc)
            raise AnalysisError(ErrorKind.NETWORK_ERROR) from exc

        if not response.is_success:
            raise classify_status(response)

        try:
            data = response.json()
        except ValueError as exc:
            raise AnalysisError(ErrorKind.NO_AI_RESPONSE) from exc

        return extract_text(data)
