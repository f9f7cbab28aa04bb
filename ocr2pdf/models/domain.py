from dataclasses import dataclass
from typing import Optional

from ocr2pdf.models.errors import OcrErrorKind


@dataclass(frozen=True)
class ImageInput:
    """One accepted user image, read-only for the rest of the request"""
    name: str
    content: bytes
    declared_mime_type: Optional[str] = None
    detected_mime_type: Optional[str] = None

    @property
    def mime_type(self) -> str:
        """MIME type sent to the OCR service (sniffed type wins over the declared one)"""
        return self.detected_mime_type or self.declared_mime_type or "application/octet-stream"


@dataclass(frozen=True)
class OcrOutcome:
    """
    Result of processing one image

    Exactly one of extracted_text or (error_kind, error_message) is set.
    Empty text is still a success.
    """
    file_name: str
    extracted_text: Optional[str] = None
    error_kind: Optional[OcrErrorKind] = None
    error_message: Optional[str] = None

    def __post_init__(self):
        if (self.extracted_text is None) == (self.error_kind is None):
            raise ValueError("OcrOutcome needs either extracted_text or error_kind, not both")

    @property
    def success(self) -> bool:
        return self.extracted_text is not None

    @classmethod
    def succeeded(cls, file_name: str, text: str) -> "OcrOutcome":
        return cls(file_name=file_name, extracted_text=text)

    @classmethod
    def failed(cls, file_name: str, kind: OcrErrorKind, message: str) -> "OcrOutcome":
        return cls(file_name=file_name, error_kind=kind, error_message=message)


@dataclass(frozen=True)
class ImageTextPair:
    """Input to PDF composition: one page worth of image and text"""
    file_name: str
    extracted_text: str = ""
    image_bytes: Optional[bytes] = None
