from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional
import logging
import re

from ocr2pdf.models.domain import ImageInput

logger = logging.getLogger(__name__)


class RejectionReason(str, Enum):
    EMPTY_FILE = "EmptyFile"
    INVALID_EXTENSION = "InvalidExtension"
    INVALID_SIGNATURE = "InvalidSignature"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of classifying one candidate file"""
    accepted: bool
    image: Optional[ImageInput] = None
    reason: Optional[RejectionReason] = None


HEADER_SIZE = 12
HEIF_BRANDS = (b"heic", b"heif", b"mif1")


class ImageService:
    """Service for classifying uploaded files as supported images"""

    SUPPORTED_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.webp', '.heic', '.heif'}

    def __init__(self, supported_formats: Optional[Iterable[str]] = None):
        if supported_formats is not None:
            self.SUPPORTED_EXTENSIONS = {f".{fmt.lower().lstrip('.')}" for fmt in supported_formats}

    @staticmethod
    def extract_filename(path: str) -> str:
        """Strip any client-side directory components from an upload name"""
        parts = [part for part in re.split(r'[/\\]', path or '') if part]
        return parts[-1] if parts else (path or '')

    def has_valid_extension(self, filename: str) -> bool:
        """
        Check extension against the supported set (case-insensitive)

        The extension is whatever follows the last dot, so a bare ".png"
        counts as a PNG file.
        """
        if '.' not in (filename or ''):
            return False
        return f".{filename.rsplit('.', 1)[-1].lower()}" in self.SUPPORTED_EXTENSIONS

    @staticmethod
    def sniff_mime_type(content: bytes) -> Optional[str]:
        """
        Identify an image format from its magic number

        Args:
            content: File bytes (only the first 12 are inspected)

        Returns:
            MIME type of the matched signature, None if nothing matches
        """
        header = content[:HEADER_SIZE]

        if header[:3] == b'\xff\xd8\xff':
            return 'image/jpeg'

        if header[:8] == b'\x89PNG\r\n\x1a\n':
            return 'image/png'

        if len(header) >= 12 and header[:4] == b'RIFF' and header[8:12] == b'WEBP':
            return 'image/webp'

        if len(header) >= 12 and header[4:8] == b'ftyp' and header[8:12] in HEIF_BRANDS:
            return 'image/heif' if header[8:12] == b'mif1' else f"image/{header[8:12].decode('ascii')}"

        return None

    def validate(
        self,
        filename: str,
        content: bytes,
        declared_mime_type: Optional[str] = None
    ) -> ValidationResult:
        """
        Classify a candidate file as a supported image

        Args:
            filename: Original filename as uploaded
            content: Raw file bytes
            declared_mime_type: Content type claimed by the client, may be wrong

        Returns:
            ValidationResult, accepted with an ImageInput or rejected with a reason
        """
        name = self.extract_filename(filename)

        if not content:
            logger.debug(f"Rejecting empty file: {name}")
            return ValidationResult(accepted=False, reason=RejectionReason.EMPTY_FILE)

        if not self.has_valid_extension(name):
            logger.debug(f"Unsupported extension: {name}")
            return ValidationResult(accepted=False, reason=RejectionReason.INVALID_EXTENSION)

        detected = self.sniff_mime_type(content)
        if detected is None:
            logger.debug(f"Unrecognised file signature for {name}: {content[:HEADER_SIZE]!r}")
            return ValidationResult(accepted=False, reason=RejectionReason.INVALID_SIGNATURE)

        if declared_mime_type and declared_mime_type != detected:
            logger.debug(f"Declared type {declared_mime_type} differs from detected {detected} for {name}")

        return ValidationResult(
            accepted=True,
            image=ImageInput(
                name=name,
                content=content,
                declared_mime_type=declared_mime_type,
                detected_mime_type=detected
            )
        )
