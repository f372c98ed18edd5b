import logging
from contextlib import asynccontextmanager
from typing import Optional

logger = logging.getLogger(__name__)

from dotenv import load_dotenv
load_dotenv()

from fastapi import Depends, FastAPI, File, Request, UploadFile
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from .analyzer import analyze_face_health
from .config import Settings
from .errors import AnalysisError, ErrorCategory, ErrorKind
from .gemini import GeminiClient
from .schemas import (
    AnalysisResponse,
    AnalysisResult,
    DetailView,
    ErrorResponse,
    ImageFile,
)

DISCLAIMER = (
    "본 결과는 AI 추정치로 의료 진단 목적이 아닙니다. "
    "건강에 이상이 있다면 전문 의료진과 상담하세요."
)

settings = Settings.from_env()

limiter = Limiter(key_func=get_remote_address)

_CATEGORY_STATUS = {
    ErrorCategory.INPUT: 400,
    ErrorCategory.CONFIGURATION: 503,
    ErrorCategory.PROVIDER: 502,
    ErrorCategory.CONTENT: 502,
    ErrorCategory.DOMAIN: 422,
    ErrorCategory.THROTTLED: 429,
    ErrorCategory.UNEXPECTED: 500,
}
_KIND_STATUS = {
    ErrorKind.IMAGE_TOO_LARGE: 413,
    ErrorKind.QUOTA_EXCEEDED: 429,
}


def http_status_for(exc: AnalysisError) -> int:
    return _KIND_STATUS.get(exc.kind, _CATEGORY_STATUS[exc.category])


def detailed_status(score: int) -> str:
    if score >= 90:
        return "매우 우수"
    if score >= 80:
        return "우수"
    if score >= 70:
        return "양호"
    if score >= 60:
        return "보통"
    if score >= 50:
        return "주의"
    if score >= 40:
        return "관리 필요"
    return "즉시 관리 필요"


def to_response(result: AnalysisResult) -> AnalysisResponse:
    return AnalysisResponse(
        overallScore=result.overallScore,
        overallStatus=detailed_status(result.overallScore),
        summaryText=result.summaryText,
        details=[
            DetailView(category=d.category, score=d.score, status=detailed_status(d.score))
            for d in result.details
        ],
        recommendations=result.recommendations,
        disclaimer=DISCLAIMER,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.client = GeminiClient(settings)
    logger.info(
        "Gemini client ready (model=%s, key=%s, key_valid=%s)",
        settings.gemini_model,
        settings.masked_api_key(),
        app.state.client.is_api_key_valid(),
    )
    yield


app = FastAPI(title="FaceDoc Analyzer", lifespan=lifespan)
app.state.limiter = limiter


def get_client(request: Request) -> GeminiClient:
    return request.app.state.client


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    error = AnalysisError(ErrorKind.RATE_LIMITED)
    return JSONResponse(status_code=http_status_for(error), content=error.to_dict())


@app.exception_handler(AnalysisError)
async def analysis_error_handler(request: Request, exc: AnalysisError):
    """Every classified failure sends the caller back to the start screen."""
    return JSONResponse(status_code=http_status_for(exc), content=exc.to_dict())


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/")
async def index(client: GeminiClient = Depends(get_client)):
    return {"status": "ok", "apiKeyConfigured": client.is_api_key_valid()}


ERROR_RESPONSES = {
    status: {"model": ErrorResponse}
    for status in (400, 413, 422, 429, 500, 502, 503)
}


@app.post("/analyze", response_model=AnalysisResponse, responses=ERROR_RESPONSES)
@limiter.limit(settings.rate_limit_per_ip)
async def analyze(
    request: Request,
    image: Optional[UploadFile] = File(None),
    client: GeminiClient = Depends(get_client),
):
    upload = None
    if image is not None:
        upload = ImageFile(
            filename=image.filename,
            content_type=image.content_type,
            data=await image.read(),
        )

    result = await analyze_face_health(upload, client=client)
    return to_response(result)
