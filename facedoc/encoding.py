import base64
import binascii

from .errors import AnalysisError, ErrorKind


def encode_image(data: bytes) -> str:
    """Return ``data`` as base64 text for an ``inline_data`` request part."""
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise AnalysisError(
            ErrorKind.IMAGE_CONVERSION_FAILED,
            "파일을 읽을 수 없습니다.",
        )
    if not data:
        raise AnalysisError(ErrorKind.IMAGE_CONVERSION_FAILED)

    try:
        return base64.b64encode(data).decode("ascii")
    except (binascii.Error, TypeError, ValueError) as exc:
        raise AnalysisError(ErrorKind.IMAGE_CONVERSION_FAILED) from exc
