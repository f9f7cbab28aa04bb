from pathlib import Path
from typing import List, Optional, Sequence
import logging

import aiofiles

from ocr2pdf.models.domain import ImageInput, OcrOutcome
from ocr2pdf.models.errors import OcrErrorKind, Stage
from ocr2pdf.services.error_classifier import classify
from ocr2pdf.services.ocr_service import GeminiOCRClient
from ocr2pdf.services.temp_file_service import TempFileService

logger = logging.getLogger(__name__)

CRITICAL_KINDS = frozenset({OcrErrorKind.INVALID_API_KEY, OcrErrorKind.RATE_LIMIT_EXCEEDED})


def is_critical(kind: OcrErrorKind) -> bool:
    """Critical errors mean no further image in the batch can succeed"""
    return kind in CRITICAL_KINDS


def should_stop(kind: OcrErrorKind, stop_on_any_error: bool) -> bool:
    """Decide whether a failure of this kind halts the remaining batch"""
    return stop_on_any_error or is_critical(kind)


class BatchOCRService:
    """Runs OCR over a list of images one at a time, in order"""

    def __init__(
        self,
        ocr_client: GeminiOCRClient,
        temp_files: TempFileService,
        stop_on_any_error: bool = True,
        logger: Optional[logging.Logger] = None
    ):
        """
        Args:
            ocr_client: Adapter for the external OCR service
            temp_files: Temp copy manager
            stop_on_any_error: Halt after the first failure of any kind.
                When False only critical failures halt, other images are skipped
            logger: Logger override
        """
        self.ocr_client = ocr_client
        self.temp_files = temp_files
        self.stop_on_any_error = stop_on_any_error
        self.logger = logger or logging.getLogger(__name__)

    async def process_all(self, images: Sequence[ImageInput]) -> List[OcrOutcome]:
        """
        Extract text from every image, sequentially

        Args:
            images: Accepted images in submission order

        Returns:
            One OcrOutcome per attempted image, in input order. Images after a
            stopping failure are not attempted and have no outcome.
        """
        outcomes: List[OcrOutcome] = []
        temp_paths: List[Path] = []

        self.logger.info(f"Job started: OCR batch of {len(images)} images")

        try:
            for index, image in enumerate(images, start=1):
                self.logger.debug(f"Processing image {index}/{len(images)}: {image.name}")
                outcome = await self._process_one(image, temp_paths)
                outcomes.append(outcome)

                if outcome.success:
                    continue

                if should_stop(outcome.error_kind, self.stop_on_any_error):
                    reason = "critical error" if is_critical(outcome.error_kind) else "error"
                    self.logger.warning(
                        f"Stopping OCR batch after {reason} in file {image.name}: "
                        f"{outcome.error_kind.value}; {len(images) - index} images not attempted"
                    )
                    break

                self.logger.warning(f"Skipping {image.name} after non-critical error {outcome.error_kind.value}")

        except Exception:
            self.logger.error("Unexpected error in OCR batch processing", exc_info=True)
            raise

        finally:
            self.temp_files.verify_cleanup(temp_paths)
            await self.temp_files.cleanup_orphans()

        success_count = sum(1 for o in outcomes if o.success)
        self.logger.info(
            f"Job completed: OCR batch, {success_count} succeeded, "
            f"{len(outcomes) - success_count} failed, {len(images) - len(outcomes)} not attempted"
        )
        return outcomes

    async def _process_one(self, image: ImageInput, temp_paths: List[Path]) -> OcrOutcome:
        """Pending -> TempFileWritten -> ApiCalled -> Succeeded/Failed -> TempFileCleaned"""
        temp_path: Optional[Path] = None
        try:
            try:
                temp_path = await self.temp_files.create_temp_copy(image.content, image.name)
                temp_paths.append(temp_path)

                async with aiofiles.open(temp_path, 'rb') as f:
                    payload = await f.read()
            except Exception as e:
                classified = classify(e, Stage.OCR)
                self.logger.error(
                    f"Temp file handling failed for {image.name} ({classified.kind.value}): {e}",
                    exc_info=True
                )
                return OcrOutcome.failed(image.name, classified.kind, classified.user_message)

            result = await self.ocr_client.extract_text(payload, image.mime_type)

            if result.ok:
                self.logger.debug(f"Successfully extracted text from {image.name} ({len(result.text)} chars)")
                return OcrOutcome.succeeded(image.name, result.text)

            self.logger.error(f"OCR failed for {image.name}: {result.error.kind.value}: {result.error.detail}")
            return OcrOutcome.failed(image.name, result.error.kind, result.error.user_message)

        finally:
            if temp_path is not None:
                await self.temp_files.cleanup([temp_path])
