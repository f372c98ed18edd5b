from pydantic import BaseModel, ConfigDict
from typing import List, Optional


class ImageFile(BaseModel):
    filename: Optional[str] = None
    content_type: Optional[str] = None
    data: bytes = b""

    @property
    def size(self) -> int:
        return len(self.data)


class HealthDetail(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: str
    score: int


class HealthRecommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: str
    tip: str


class AnalysisResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    overallScore: int
    summaryText: str
    details: List[HealthDetail]
    recommendations: List[HealthRecommendation]


class DetailView(HealthDetail):
    status: str


class AnalysisResponse(BaseModel):
    overallScore: int
    overallStatus: str
    summaryText: str
    details: List[DetailView]
    recommendations: List[HealthRecommendation]
    disclaimer: str


class ErrorResponse(BaseModel):
    kind: str
    code: str
    category: str
    message: str
    notice: str
    next_page: str = "home"
