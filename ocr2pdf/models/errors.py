from enum import Enum
from typing import Union


class OcrErrorKind(str, Enum):
    """Closed set of OCR stage failures"""
    INVALID_API_KEY = "API_KEY_INVALID"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    UNSUPPORTED_IMAGE_FORMAT = "INVALID_IMAGE_FORMAT"
    PROCESSING_ERROR = "PROCESSING_ERROR"
    UNKNOWN = "UNKNOWN_ERROR"


class PdfErrorKind(str, Enum):
    """Closed set of PDF stage failures"""
    IMAGE_LOAD_ERROR = "IMAGE_LOAD_ERROR"
    IMAGE_FORMAT_ERROR = "IMAGE_FORMAT_ERROR"
    PDF_GENERATION_ERROR = "PDF_GENERATION_ERROR"
    FILE_SYSTEM_ERROR = "FILE_SYSTEM_ERROR"
    UNKNOWN = "UNKNOWN_ERROR"


class Stage(str, Enum):
    OCR = "ocr"
    PDF = "pdf"


ErrorKind = Union[OcrErrorKind, PdfErrorKind]
