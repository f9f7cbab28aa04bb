from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging

from ocr2pdf.models.errors import ErrorKind, OcrErrorKind, PdfErrorKind, Stage

logger = logging.getLogger(__name__)

OCR_USER_MESSAGES: Dict[OcrErrorKind, str] = {
    OcrErrorKind.INVALID_API_KEY: "Invalid API key. Please check your Gemini API key configuration.",
    OcrErrorKind.RATE_LIMIT_EXCEEDED: "API rate limit exceeded. Please try again later.",
    OcrErrorKind.UNSUPPORTED_IMAGE_FORMAT: "The provided image format is not supported by the API.",
    OcrErrorKind.PROCESSING_ERROR: "The image could not be processed. Please try again.",
    OcrErrorKind.UNKNOWN: "An unexpected error occurred while extracting text.",
}

# Separate table: both UNKNOWN members compare and hash equal
PDF_USER_MESSAGES: Dict[PdfErrorKind, str] = {
    PdfErrorKind.IMAGE_LOAD_ERROR: "Unable to load one or more images for the PDF. Please check the image files and try again.",
    PdfErrorKind.IMAGE_FORMAT_ERROR: "One or more images are in an unsupported format. Please use JPG or PNG images.",
    PdfErrorKind.PDF_GENERATION_ERROR: "An error occurred while creating the PDF document. Please try again later.",
    PdfErrorKind.FILE_SYSTEM_ERROR: "A file system error occurred while generating the PDF. Please try again later.",
    PdfErrorKind.UNKNOWN: "An unexpected error occurred during PDF generation. Please try again later.",
}


def user_message_for(kind: ErrorKind) -> str:
    """Fixed user-facing sentence for an error kind"""
    if isinstance(kind, OcrErrorKind):
        return OCR_USER_MESSAGES[kind]
    return PDF_USER_MESSAGES[kind]


@dataclass(frozen=True)
class ClassifiedError:
    """A raw failure mapped onto the closed error kinds"""
    kind: ErrorKind
    user_message: str
    detail: str = ""


class PdfGenerationError(Exception):
    """Document-level PDF failure carrying its classified kind"""

    def __init__(
        self,
        message: str,
        kind: PdfErrorKind = PdfErrorKind.UNKNOWN,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.kind = kind
        self.details = details or {}

    @property
    def user_message(self) -> str:
        return user_message_for(self.kind)


Predicate = Callable[[BaseException, str], bool]


def _contains(*needles: str) -> Predicate:
    return lambda error, message: any(needle in message for needle in needles)


def _image_related(error: BaseException, message: str) -> bool:
    return "addimage" in message or "image" in message


# Ordered, first match wins. Messages are lower-cased before matching.
OCR_RULES: List[Tuple[Predicate, OcrErrorKind]] = [
    (_contains("api key"), OcrErrorKind.INVALID_API_KEY),
    (_contains("quota", "rate limit"), OcrErrorKind.RATE_LIMIT_EXCEEDED),
    (_contains("format", "image"), OcrErrorKind.UNSUPPORTED_IMAGE_FORMAT),
    (lambda error, message: bool(message), OcrErrorKind.PROCESSING_ERROR),
]

PDF_RULES: List[Tuple[Predicate, PdfErrorKind]] = [
    (lambda error, message: _image_related(error, message) and ("type" in message or "format" in message),
     PdfErrorKind.IMAGE_FORMAT_ERROR),
    (_image_related, PdfErrorKind.IMAGE_LOAD_ERROR),
    (lambda error, message: isinstance(error, OSError) or "enoent" in message or "file" in message,
     PdfErrorKind.FILE_SYSTEM_ERROR),
    (lambda error, message: bool(message), PdfErrorKind.PDF_GENERATION_ERROR),
]


def _error_message(raw_error: Any) -> str:
    if raw_error is None:
        return ""
    return str(raw_error).strip()


def classify(raw_error: Any, stage: Stage) -> ClassifiedError:
    """
    Map a low-level failure into the closed error kinds of a stage

    Args:
        raw_error: Exception (or any object with a meaningful str())
        stage: Stage.OCR or Stage.PDF

    Returns:
        ClassifiedError with the kind, fixed user message and raw detail
    """
    if stage == Stage.PDF and isinstance(raw_error, PdfGenerationError):
        return ClassifiedError(raw_error.kind, raw_error.user_message, _error_message(raw_error))

    detail = _error_message(raw_error)
    message = detail.lower()
    error = raw_error if isinstance(raw_error, BaseException) else Exception(detail)

    if stage == Stage.OCR:
        rules, fallback = OCR_RULES, OcrErrorKind.UNKNOWN
    else:
        rules, fallback = PDF_RULES, PdfErrorKind.UNKNOWN

    kind = next((kind for predicate, kind in rules if predicate(error, message)), fallback)
    logger.debug(f"Classified {stage.value} error as {kind.value}: {detail}")
    return ClassifiedError(kind, user_message_for(kind), detail)


def to_pdf_error(raw_error: Any) -> PdfGenerationError:
    """Wrap any failure as a PdfGenerationError with a classified kind"""
    if isinstance(raw_error, PdfGenerationError):
        return raw_error

    classified = classify(raw_error, Stage.PDF)
    return PdfGenerationError(
        classified.detail or "Unknown PDF generation error",
        classified.kind,
        {"original_error": classified.detail}
    )
