from typing import Optional

from .errors import AnalysisError, ErrorKind
from .schemas import ImageFile

MIN_IMAGE_BYTES = 1024  # 1 KB, smaller files are placeholders or corrupt
MAX_IMAGE_BYTES = 20 * 1024 * 1024  # 20 MB (Gemini inline limit)


def validate_image(image: Optional[ImageFile]) -> None:
    """Raise ``AnalysisError`` unless ``image`` is an acceptable upload."""
    if image is None or not image.data:
        raise AnalysisError(ErrorKind.NO_IMAGE_FILE)

    content_type = (image.content_type or "").strip().lower()
    if not content_type.startswith("image/"):
        raise AnalysisError(ErrorKind.WRONG_IMAGE_TYPE)

    if image.size < MIN_IMAGE_BYTES:
        raise AnalysisError(ErrorKind.IMAGE_TOO_SMALL)

    if image.size > MAX_IMAGE_BYTES:
        raise AnalysisError(ErrorKind.IMAGE_TOO_LARGE)
