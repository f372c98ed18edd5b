from enum import Enum
from typing import Optional

from .schemas import ErrorResponse


class ErrorKind(str, Enum):
    # input
    NO_IMAGE_FILE = "NO_IMAGE_FILE"
    WRONG_IMAGE_TYPE = "WRONG_IMAGE_TYPE"
    IMAGE_TOO_SMALL = "IMAGE_TOO_SMALL"
    IMAGE_TOO_LARGE = "IMAGE_TOO_LARGE"
    IMAGE_CONVERSION_FAILED = "IMAGE_CONVERSION_FAILED"
    # configuration
    API_KEY_NOT_SET = "API_KEY_NOT_SET"
    INVALID_API_KEY_FORMAT = "INVALID_API_KEY_FORMAT"
    AI_CLIENT_INIT_FAILED = "AI_CLIENT_INIT_FAILED"
    # provider
    INVALID_API_KEY = "INVALID_API_KEY"
    BAD_REQUEST = "BAD_REQUEST"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    API_ERROR = "API_ERROR"
    REQUEST_TIMEOUT = "REQUEST_TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"
    # content
    NO_AI_RESPONSE = "NO_AI_RESPONSE"
    AI_FINISH_REASON = "AI_FINISH_REASON"
    NO_RESPONSE_CONTENT = "NO_RESPONSE_CONTENT"
    JSON_PARSE_ERROR = "JSON_PARSE_ERROR"
    # domain
    NO_FACE_DETECTED = "NO_FACE_DETECTED"
    # throttling on this service
    RATE_LIMITED = "RATE_LIMITED"

    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"


class ErrorCategory(str, Enum):
    INPUT = "input"
    CONFIGURATION = "configuration"
    PROVIDER = "provider"
    CONTENT = "content"
    DOMAIN = "domain"
    THROTTLED = "throttled"
    UNEXPECTED = "unexpected"


_CATEGORIES = {
    ErrorKind.NO_IMAGE_FILE: ErrorCategory.INPUT,
    ErrorKind.WRONG_IMAGE_TYPE: ErrorCategory.INPUT,
    ErrorKind.IMAGE_TOO_SMALL: ErrorCategory.INPUT,
    ErrorKind.IMAGE_TOO_LARGE: ErrorCategory.INPUT,
    ErrorKind.IMAGE_CONVERSION_FAILED: ErrorCategory.INPUT,
    ErrorKind.API_KEY_NOT_SET: ErrorCategory.CONFIGURATION,
    ErrorKind.INVALID_API_KEY_FORMAT: ErrorCategory.CONFIGURATION,
    ErrorKind.AI_CLIENT_INIT_FAILED: ErrorCategory.CONFIGURATION,
    ErrorKind.INVALID_API_KEY: ErrorCategory.PROVIDER,
    ErrorKind.BAD_REQUEST: ErrorCategory.PROVIDER,
    ErrorKind.QUOTA_EXCEEDED: ErrorCategory.PROVIDER,
    ErrorKind.PERMISSION_DENIED: ErrorCategory.PROVIDER,
    ErrorKind.API_ERROR: ErrorCategory.PROVIDER,
    ErrorKind.REQUEST_TIMEOUT: ErrorCategory.PROVIDER,
    ErrorKind.NETWORK_ERROR: ErrorCategory.PROVIDER,
    ErrorKind.NO_AI_RESPONSE: ErrorCategory.CONTENT,
    ErrorKind.AI_FINISH_REASON: ErrorCategory.CONTENT,
    ErrorKind.NO_RESPONSE_CONTENT: ErrorCategory.CONTENT,
    ErrorKind.JSON_PARSE_ERROR: ErrorCategory.CONTENT,
    ErrorKind.NO_FACE_DETECTED: ErrorCategory.DOMAIN,
    ErrorKind.RATE_LIMITED: ErrorCategory.THROTTLED,
    ErrorKind.UNEXPECTED_ERROR: ErrorCategory.UNEXPECTED,
}

_MESSAGES = {
    ErrorKind.NO_IMAGE_FILE: "이미지 파일이 선택되지 않았습니다.",
    ErrorKind.WRONG_IMAGE_TYPE: (
        "이미지 파일만 업로드 가능합니다. JPEG, PNG, WebP 등의 이미지를 선택해주세요."
    ),
    ErrorKind.IMAGE_TOO_SMALL: "파일이 너무 작습니다. 올바른 이미지 파일을 선택해주세요.",
    ErrorKind.IMAGE_TOO_LARGE: "파일이 너무 큽니다. 20MB 이하의 이미지를 선택해주세요.",
    ErrorKind.IMAGE_CONVERSION_FAILED: "이미지 변환 중 오류가 발생했습니다.",
    ErrorKind.API_KEY_NOT_SET: (
        "Gemini API 키가 설정되지 않았습니다. "
        ".env 파일에 GEMINI_API_KEY를 추가한 뒤 서버를 재시작하세요."
    ),
    ErrorKind.INVALID_API_KEY_FORMAT: (
        "API 키 형식이 올바르지 않습니다. Google API 키는 AIza로 시작해야 합니다."
    ),
    ErrorKind.AI_CLIENT_INIT_FAILED: "AI 클라이언트 초기화에 실패했습니다. 설정을 다시 확인해주세요.",
    ErrorKind.INVALID_API_KEY: "API 키가 유효하지 않습니다. 키 사용량 및 권한을 확인해주세요.",
    ErrorKind.BAD_REQUEST: "API 요청 오류입니다. 이미지 형식이나 크기를 확인해주세요.",
    ErrorKind.QUOTA_EXCEEDED: (
        "Gemini API 사용량을 초과했습니다. 나중에 다시 시도하거나 API 플랜을 업그레이드하세요."
    ),
    ErrorKind.PERMISSION_DENIED: "API 접근이 거부되었습니다. API 키 권한을 확인해주세요.",
    ErrorKind.API_ERROR: "서버 연결에 실패했습니다. 잠시 후 다시 시도해주세요.",
    ErrorKind.REQUEST_TIMEOUT: "AI 응답 시간이 초과되었습니다. 잠시 후 다시 시도해주세요.",
    ErrorKind.NETWORK_ERROR: "네트워크 연결을 확인하고 다시 시도해주세요.",
    ErrorKind.NO_AI_RESPONSE: "AI가 응답을 생성하지 못했습니다. 다른 이미지로 시도해보세요.",
    ErrorKind.AI_FINISH_REASON: "AI 응답이 중단되었습니다. 다른 이미지로 다시 시도해주세요.",
    ErrorKind.NO_RESPONSE_CONTENT: "AI 응답 내용이 없습니다. 다시 시도해주세요.",
    ErrorKind.JSON_PARSE_ERROR: (
        "AI가 올바른 형식으로 응답하지 않았습니다. 다시 시도해주세요."
    ),
    ErrorKind.NO_FACE_DETECTED: (
        "얼굴이 감지되지 않았습니다. 정면을 바라보는 밝고 선명한 얼굴 사진을 업로드해 주세요."
    ),
    ErrorKind.RATE_LIMITED: "요청이 너무 많습니다. 잠시 후 다시 시도해주세요.",
    ErrorKind.UNEXPECTED_ERROR: "예상치 못한 오류가 발생했습니다. 잠시 후 다시 시도해주세요.",
}

GENERIC_NOTICE = "분석에 실패했습니다. 다시 시도해주세요."

# Kinds whose own message is the notice; the caller goes straight back home.
DIRECT_HOME_KINDS = frozenset(
    {
        ErrorKind.NO_FACE_DETECTED,
        ErrorKind.WRONG_IMAGE_TYPE,
        ErrorKind.API_KEY_NOT_SET,
        ErrorKind.INVALID_API_KEY_FORMAT,
    }
)

# Kinds whose own message is clearer than the generic retry notice.
OWN_NOTICE_KINDS = DIRECT_HOME_KINDS | {ErrorKind.RATE_LIMITED}


class AnalysisError(Exception):
    """A classified failure of the face analysis pipeline.

    ``kind`` is the stable classification, ``code`` the tagged string
    (``API_ERROR_429``, ``AI_FINISH_REASON_SAFETY``) and ``message`` a
    human-readable explanation.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: Optional[str] = None,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        stage: Optional[str] = None,
    ):
        self.kind = ErrorKind(kind)
        self.code = code or self.kind.value
        self.message = message or _MESSAGES[self.kind]
        self.status_code = status_code
        self.stage = stage
        super().__init__(f"{self.code}: {self.message}")

    @property
    def category(self) -> ErrorCategory:
        return _CATEGORIES[self.kind]

    @property
    def returns_home_directly(self) -> bool:
        return self.kind in DIRECT_HOME_KINDS

    @property
    def notice(self) -> str:
        if self.kind in OWN_NOTICE_KINDS:
            return self.message
        return GENERIC_NOTICE

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            kind=self.kind.value,
            code=self.code,
            category=self.category.value,
            message=self.message,
            notice=self.notice,
        )

    def to_dict(self) -> dict:
        return self.to_response().model_dump()
