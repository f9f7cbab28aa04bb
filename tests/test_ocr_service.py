"""Tests for the Gemini OCR adapter."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from ocr2pdf.core.config import Settings
from ocr2pdf.models.errors import OcrErrorKind
from ocr2pdf.services.ocr_service import GeminiOCRClient


def _fake_genai(generate_content: AsyncMock) -> SimpleNamespace:
    return SimpleNamespace(aio=SimpleNamespace(models=SimpleNamespace(generate_content=generate_content)))


@pytest.fixture
def settings() -> Settings:
    return Settings(GEMINI_API_KEY="test-key", GEMINI_MODEL="gemini-2.0-flash")


class TestExtractText:
    @pytest.mark.asyncio
    async def test_returns_text(self, settings: Settings, png_bytes: bytes) -> None:
        generate = AsyncMock(return_value=SimpleNamespace(text="hello world"))
        client = GeminiOCRClient(settings=settings, client=_fake_genai(generate))

        result = await client.extract_text(png_bytes, "image/png")

        assert result.ok is True
        assert result.text == "hello world"
        generate.assert_awaited_once()
        kwargs = generate.await_args.kwargs
        assert kwargs["model"] == "gemini-2.0-flash"
        assert kwargs["contents"][1] == settings.OCR_PROMPT
        assert kwargs["contents"][0].inline_data.data == png_bytes
        assert kwargs["contents"][0].inline_data.mime_type == "image/png"

    @pytest.mark.asyncio
    async def test_empty_response_is_success(self, settings: Settings, png_bytes: bytes) -> None:
        generate = AsyncMock(return_value=SimpleNamespace(text=None))
        client = GeminiOCRClient(settings=settings, client=_fake_genai(generate))

        result = await client.extract_text(png_bytes, "image/png")

        assert result.ok is True
        assert result.text == ""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "message, expected",
        [
            ("400 INVALID_ARGUMENT. API key not valid.", OcrErrorKind.INVALID_API_KEY),
            ("429 RESOURCE_EXHAUSTED. Quota exceeded.", OcrErrorKind.RATE_LIMIT_EXCEEDED),
            ("Unable to process input image.", OcrErrorKind.UNSUPPORTED_IMAGE_FORMAT),
            ("503 Service Unavailable", OcrErrorKind.PROCESSING_ERROR),
        ],
    )
    async def test_failures_are_classified(
        self, settings: Settings, png_bytes: bytes, message: str, expected: OcrErrorKind
    ) -> None:
        generate = AsyncMock(side_effect=RuntimeError(message))
        client = GeminiOCRClient(settings=settings, client=_fake_genai(generate))

        result = await client.extract_text(png_bytes, "image/png")

        assert result.ok is False
        assert result.text is None
        assert result.error.kind is expected
        assert result.error.detail == message

    @pytest.mark.asyncio
    async def test_missing_api_key(self, png_bytes: bytes) -> None:
        client = GeminiOCRClient(settings=Settings(GEMINI_API_KEY=""))

        result = await client.extract_text(png_bytes, "image/png")

        assert result.ok is False
        assert result.error.kind is OcrErrorKind.INVALID_API_KEY
