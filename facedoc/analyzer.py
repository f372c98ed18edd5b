import logging
import random
import uuid
from enum import Enum
from typing import Optional

from .config import Settings
from .encoding import encode_image
from .errors import AnalysisError, ErrorKind
from .gemini import GeminiClient
from .normalizer import normalize_analysis, parse_response_text
from .schemas import AnalysisResult, ImageFile
from .validation import validate_image

logger = logging.getLogger(__name__)


class AnalysisStage(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    ENCODING = "encoding"
    REQUESTING = "requesting"
    PARSING = "parsing"
    NORMALIZING = "normalizing"
    DONE = "done"
    FAILED = "failed"


async def analyze_face_health(
    image: Optional[ImageFile],
    *,
    client: Optional[GeminiClient] = None,
    settings: Optional[Settings] = None,
    rng: Optional[random.Random] = None,
) -> AnalysisResult:
    """Run one face health analysis from upload to normalized result.

    Either returns a complete ``AnalysisResult`` or raises ``AnalysisError``
    whose ``stage`` names where the pipeline stopped. Nothing is retried.
    """
    if client is None:
        client = GeminiClient(settings or Settings.from_env())

    analysis_id = uuid.uuid4().hex[:8]
    stage = AnalysisStage.IDLE

    def advance(next_stage: AnalysisStage) -> None:
        nonlocal stage
        logger.debug("Analysis %s: %s -> %s", analysis_id, stage.value, next_stage.value)
        stage = next_stage

    try:
        advance(AnalysisStage.VALIDATING)
        validate_image(image)
        client.check_credentials()
        logger.info(
            "Starting analysis %s (%s, %.1fKB)",
            analysis_id,
            image.content_type,
            image.size / 1024,
        )

        advance(AnalysisStage.ENCODING)
        image_b64 = encode_image(image.data)

        advance(AnalysisStage.REQUESTING)
        text = await client.generate(
            image_b64, image.content_type, analysis_id=analysis_id
        )

        advance(AnalysisStage.PARSING)
        payload = parse_response_text(text)

        advance(AnalysisStage.NORMALIZING)
        result = normalize_analysis(payload, rng)
    except AnalysisError as exc:
        exc.stage = stage.value
        logger.info(
            "Analysis %s failed during %s: %s", analysis_id, stage.value, exc.code
        )
        advance(AnalysisStage.FAILED)
        raise
    except Exception as exc:
        logger.exception("Unexpected error during analysis %s", analysis_id)
        failed_in = stage.value
        advance(AnalysisStage.FAILED)
        raise AnalysisError(ErrorKind.UNEXPECTED_ERROR, stage=failed_in) from exc

    advance(AnalysisStage.DONE)
    logger.info("Analysis %s complete (overall score %d)", analysis_id, result.overallScore)
    return result
