from dataclasses import dataclass
from typing import Any, Optional
import logging

from google import genai
from google.genai import types

from ocr2pdf.core.config import Settings, settings as default_settings
from ocr2pdf.services.error_classifier import ClassifiedError, Stage, classify

logger = logging.getLogger(__name__)


class MissingApiKeyError(RuntimeError):
    """Raised when no Gemini API key is configured"""


@dataclass(frozen=True)
class ExtractionResult:
    """Text extracted from one image, or the classified failure"""
    text: Optional[str] = None
    error: Optional[ClassifiedError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class GeminiOCRClient:
    """Service for extracting text from a single image with Gemini"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[Any] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Args:
            settings: Application settings (API key, model, prompt, timeout)
            client: Pre-built genai.Client, created lazily from settings when omitted
            logger: Logger override
        """
        self.settings = settings or default_settings
        self._client = client
        self.logger = logger or logging.getLogger(__name__)

    @property
    def client(self) -> Any:
        if self._client is None:
            api_key = self.settings.GEMINI_API_KEY.strip()
            if not api_key:
                raise MissingApiKeyError("Gemini API key is not configured (set GEMINI_API_KEY)")

            # HttpOptions timeout is in milliseconds
            http_options = types.HttpOptions(timeout=self.settings.OCR_TIMEOUT_SECONDS * 1000)
            self.logger.debug("Initializing Gemini API client")
            self._client = genai.Client(api_key=api_key, http_options=http_options)
        return self._client

    async def extract_text(self, image_bytes: bytes, mime_type: str) -> ExtractionResult:
        """
        Send one image to Gemini and return its text

        Args:
            image_bytes: Raw image content
            mime_type: MIME type of the image

        Returns:
            ExtractionResult with the text (possibly empty) or a classified error
        """
        try:
            response = await self.client.aio.models.generate_content(
                model=self.settings.GEMINI_MODEL,
                contents=[
                    types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
                    self.settings.OCR_PROMPT
                ]
            )
        except Exception as e:
            classified = classify(e, Stage.OCR)
            self.logger.error(
                f"Gemini API error ({classified.kind.value}): {classified.detail}",
                exc_info=self.settings.DEBUG
            )
            return ExtractionResult(error=classified)

        text = response.text or ""
        self.logger.debug(f"Gemini returned {len(text)} characters")
        return ExtractionResult(text=text)
