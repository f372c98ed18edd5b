import json
import logging
import math
import random
import re
from typing import List, Optional

from .errors import AnalysisError, ErrorKind
from .schemas import AnalysisResult, HealthDetail, HealthRecommendation

logger = logging.getLogger(__name__)

MIN_SCORE = 30
MAX_SCORE = 95
FALLBACK_BASE_SCORE = 70
SCORE_VARIATION = 12
MIN_TIP_LENGTH = 40
MAX_DIVERSIFY_ATTEMPTS = 5

DEFAULT_SUMMARY = "AI가 얼굴을 분석하여 건강 상태를 평가했습니다"

# (category, low, high) inclusive bounds for fallback detail scores
DEFAULT_DETAIL_RANGES = (
    ("피부 상태", 75, 94),
    ("피로도", 60, 84),
    ("혈색", 70, 89),
    ("부기", 78, 92),
    ("눈가 주름", 65, 89),
    ("수분 상태", 55, 84),
    ("스트레스 지표", 50, 74),
)

DEFAULT_RECOMMENDATIONS = (
    HealthRecommendation(
        category="생활 습관",
        tip="관찰된 피로 징후를 바탕으로 매일 밤 11시 이전에 잠자리에 들어 7-8시간의 양질의 수면을 취하세요.",
    ),
    HealthRecommendation(
        category="스킨케어",
        tip="현재 피부 수분도를 고려하여 아침에는 가벼운 수분 크림을, 저녁에는 영양 크림을 사용하세요.",
    ),
    HealthRecommendation(
        category="영양 관리",
        tip="피부 탄력 개선을 위해 비타민 C가 풍부한 키위, 오렌지를 하루 2회 섭취하고, 견과류를 간식으로 드세요.",
    ),
)

ENHANCED_TIPS = {
    "생활 습관": (
        "규칙적인 수면 패턴을 유지하고, 스트레스 관리를 위한 명상이나 요가를 실천하세요. "
        "전자기기 사용 시간을 줄이고 자연 속에서의 활동을 늘려보세요."
    ),
    "영양 관리": (
        "항산화 성분이 풍부한 베리류, 녹색 채소를 섭취하고, 오메가-3 지방산이 포함된 "
        "견과류와 생선을 주 3회 이상 드세요. 가공식품과 당분 섭취를 줄이는 것도 중요합니다."
    ),
    "스킨케어": (
        "피부 타입에 맞는 순한 성분의 제품을 선택하고, 아침저녁 꾸준한 보습 관리를 하세요. "
        "자외선 차단제를 매일 사용하고, 주 1-2회 각질 제거로 피부 턴오버를 도와주세요."
    ),
    "수분 관리": (
        "하루 1.5-2L의 물을 나누어 마시고, 실내 습도를 적정하게 유지하세요. "
        "수분이 풍부한 과일과 채소 섭취도 피부 수분 보충에 도움이 됩니다."
    ),
    "운동 및 마사지": (
        "얼굴 마사지로 혈액순환을 개선하고, 정기적인 유산소 운동으로 전신 건강을 향상시키세요. "
        "목과 어깨 스트레칭도 안면 긴장 완화에 효과적입니다."
    ),
}

# Greedy: first "{" to last "}". Several separate objects in one reply are
# not told apart.
_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def parse_response_text(text: str) -> dict:
    """Parse the model's reply, falling back to the embedded JSON object."""
    text = (text or "").strip()
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        match = _JSON_OBJECT_RE.search(text)
        if not match:
            raise AnalysisError(
                ErrorKind.JSON_PARSE_ERROR,
                "JSON 형식을 찾을 수 없습니다. 다시 시도해주세요.",
            )
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError as exc:
            raise AnalysisError(ErrorKind.JSON_PARSE_ERROR) from exc
        logger.warning("Recovered JSON object embedded in model reply")

    if not isinstance(parsed, dict):
        raise AnalysisError(ErrorKind.JSON_PARSE_ERROR)
    return parsed


def _clamp(value: int, low: int = MIN_SCORE, high: int = MAX_SCORE) -> int:
    return max(low, min(high, value))


def _to_int(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return int(round(value))
    return None


def _clean_details(raw) -> List[dict]:
    if not isinstance(raw, list):
        return []
    details = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        category = entry.get("category")
        if not isinstance(category, str) or not category.strip():
            continue
        details.append({"category": category.strip(), "score": _to_int(entry.get("score"))})
    return details


def _clean_recommendations(raw) -> List[dict]:
    if not isinstance(raw, list):
        return []
    recommendations = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        category, tip = entry.get("category"), entry.get("tip")
        if not isinstance(category, str) or not isinstance(tip, str):
            continue
        if not category.strip() or not tip.strip():
            continue
        recommendations.append({"category": category.strip(), "tip": tip.strip()})
    return recommendations


def _is_uniform(scores: List[Optional[int]]) -> bool:
    return len(scores) > 1 and len(set(scores)) <= 2


def _perturb(bases: List[int], rng: random.Random) -> List[int]:
    return [
        _clamp(base + rng.randint(-SCORE_VARIATION, SCORE_VARIATION) + index * 2)
        for index, base in enumerate(bases)
    ]


def _spread(bases: List[int]) -> List[int]:
    # Evenly spaced, step 2, centred on the mean and kept inside the band.
    span = 2 * (len(bases) - 1)
    mean = round(sum(bases) / len(bases))
    low = _clamp(mean - span // 2, MIN_SCORE, max(MIN_SCORE, MAX_SCORE - span))
    return [min(MAX_SCORE, low + 2 * index) for index in range(len(bases))]


def diversify_scores(scores: List[Optional[int]], rng: random.Random) -> List[int]:
    """Spread out suspiciously uniform scores.

    Scores with more than two distinct values are returned untouched
    (missing ones backfilled with the fallback base). Otherwise each score is
    moved by a bounded random offset plus a small index-dependent step and
    clamped to the score band.
    """
    bases = [score or FALLBACK_BASE_SCORE for score in scores]
    if not _is_uniform(bases):
        return bases

    logger.warning("Model returned uniform detail scores %s, diversifying", scores)
    diversified = _perturb(bases, rng)
    if len(bases) < 3:
        return diversified

    attempts = 1
    while len(set(diversified)) <= 2 and attempts < MAX_DIVERSIFY_ATTEMPTS:
        diversified = _perturb(bases, rng)
        attempts += 1
    if len(set(diversified)) <= 2:
        diversified = _spread(bases)
    return diversified


def enhance_tip(category: str, tip: str) -> str:
    if tip and len(tip) < MIN_TIP_LENGTH:
        return ENHANCED_TIPS.get(category, tip)
    return tip


def default_details(rng: random.Random) -> List[HealthDetail]:
    return [
        HealthDetail(category=category, score=rng.randint(low, high))
        for category, low, high in DEFAULT_DETAIL_RANGES
    ]


def is_face_detected(payload: dict) -> bool:
    value = payload.get("isFaceDetected")
    if not isinstance(value, bool):
        return True
    return value


def normalize_analysis(payload: dict, rng: Optional[random.Random] = None) -> AnalysisResult:
    """Turn a parsed model reply into a complete ``AnalysisResult``.

    Raises ``AnalysisError(NO_FACE_DETECTED)`` when the model says no face
    is present. Past that gate it never fails: missing or unusable fields
    are backfilled so the result is always presentable.
    """
    if not is_face_detected(payload):
        raise AnalysisError(ErrorKind.NO_FACE_DETECTED)

    rng = rng or random.Random()

    raw_details = _clean_details(payload.get("details"))
    if raw_details:
        scores = diversify_scores([d["score"] for d in raw_details], rng)
        details = [
            HealthDetail(category=d["category"], score=score)
            for d, score in zip(raw_details, scores)
        ]
    else:
        logger.warning("Model reply had no usable details, using defaults")
        details = default_details(rng)

    raw_recommendations = _clean_recommendations(payload.get("recommendations"))
    if raw_recommendations:
        recommendations = [
            HealthRecommendation(
                category=r["category"], tip=enhance_tip(r["category"], r["tip"])
            )
            for r in raw_recommendations
        ]
    else:
        logger.warning("Model reply had no usable recommendations, using defaults")
        recommendations = list(DEFAULT_RECOMMENDATIONS)

    overall_score = _to_int(payload.get("overallScore"))
    if not overall_score:
        overall_score = rng.randint(70, 94)

    summary = payload.get("summaryText")
    if not isinstance(summary, str) or not summary.strip():
        summary = DEFAULT_SUMMARY

    return AnalysisResult(
        overallScore=overall_score,
        summaryText=summary.strip(),
        details=details,
        recommendations=recommendations,
    )
