"""Shared fixtures for the OCR to PDF tests."""

from __future__ import annotations

import io
from pathlib import Path
from typing import List, Optional, Sequence, Union

import pytest
from PIL import Image

from ocr2pdf.services.error_classifier import OcrErrorKind, Stage, classify
from ocr2pdf.services.ocr_service import ExtractionResult
from ocr2pdf.services.temp_file_service import TempFileService


def make_image_bytes(fmt: str, size: tuple = (40, 30), color: tuple = (200, 30, 30)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


def ok(text: str) -> ExtractionResult:
    return ExtractionResult(text=text)


def failure(message: str) -> ExtractionResult:
    return ExtractionResult(error=classify(Exception(message), Stage.OCR))


class FakeOCRClient:
    """Scripted stand-in for GeminiOCRClient, answers calls in order."""

    def __init__(
        self,
        script: Sequence[Union[ExtractionResult, Exception]],
        temp_dir: Optional[Path] = None,
    ) -> None:
        self.script = list(script)
        self.temp_dir = temp_dir
        self.calls: List[tuple] = []
        self.temp_files_seen: List[int] = []

    async def extract_text(self, image_bytes: bytes, mime_type: str) -> ExtractionResult:
        self.calls.append((image_bytes, mime_type))
        if self.temp_dir is not None:
            self.temp_files_seen.append(len(list(self.temp_dir.iterdir())))

        step = self.script[len(self.calls) - 1]
        if isinstance(step, Exception):
            raise step
        return step


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes("PNG")


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image_bytes("JPEG")


@pytest.fixture
def temp_files(tmp_path: Path) -> TempFileService:
    return TempFileService(temp_dir=tmp_path, orphan_min_age_seconds=0)


@pytest.fixture
def invalid_key_error() -> ExtractionResult:
    result = failure("API key not valid. Please pass a valid API key.")
    assert result.error.kind is OcrErrorKind.INVALID_API_KEY
    return result
