from fastapi import APIRouter, File, HTTPException, Request, UploadFile, status
from typing import List, Optional
import logging

from ocr2pdf.models.domain import ImageInput, OcrOutcome
from ocr2pdf.models.errors import OcrErrorKind
from ocr2pdf.models.responses import OCRResponse, OcrImageResult, OcrSummary
from ocr2pdf.services.batch_service import BatchOCRService
from ocr2pdf.services.image_service import ImageService, RejectionReason
from ocr2pdf.services.ocr_service import GeminiOCRClient
from ocr2pdf.services.temp_file_service import TempFileService
from ocr2pdf.core.config import settings

logger = logging.getLogger(__name__)

router = APIRouter()

# Initialize services (singleton pattern)
image_service = ImageService(supported_formats=settings.SUPPORTED_IMAGE_FORMATS)
temp_file_service = TempFileService()
batch_service = BatchOCRService(
    ocr_client=GeminiOCRClient(settings=settings),
    temp_files=temp_file_service,
    stop_on_any_error=settings.OCR_STOP_ON_ANY_ERROR
)

REJECTION_MESSAGES = {
    RejectionReason.EMPTY_FILE: "The file is empty.",
    RejectionReason.INVALID_EXTENSION: "Unsupported file extension. Use JPG, PNG, WEBP, HEIC or HEIF images.",
    RejectionReason.INVALID_SIGNATURE: "The file content is not a supported image or is corrupted.",
}


def _to_result(outcome: OcrOutcome) -> OcrImageResult:
    if outcome.success:
        return OcrImageResult(file_name=outcome.file_name, text=outcome.extracted_text, success=True)
    return OcrImageResult(
        file_name=outcome.file_name,
        error=outcome.error_message,
        error_type=outcome.error_kind.value,
        success=False
    )


@router.post("", response_model=OCRResponse, response_model_exclude_none=True)
async def extract_text_from_images(
    request: Request,
    files: Optional[List[UploadFile]] = File(None)
):
    """
    Extract text from uploaded images with Gemini

    Images are validated, then processed one at a time in upload order.
    Processing stops at the first failure (or first critical failure, see
    OCR_STOP_ON_ANY_ERROR); images after that point get no result.

    Returns:
        OCRResponse with per-image results and a summary
    """
    logger.info("Job started: OCR")

    content_type = request.headers.get("content-type", "")
    if "multipart/form-data" not in content_type:
        logger.warning(f"Invalid content type in request: {content_type}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Request must use multipart/form-data"
        )

    if not files:
        logger.warning("No image files were uploaded")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No image files were uploaded"
        )

    if len(files) > settings.MAX_IMAGES_PER_REQUEST:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Too many images. Maximum: {settings.MAX_IMAGES_PER_REQUEST}, Found: {len(files)}"
        )

    logger.info(f"Received {len(files)} files for OCR processing")

    try:
        accepted: List[ImageInput] = []
        rejected: List[OcrImageResult] = []
        rejected_by_reason = {reason: 0 for reason in RejectionReason}

        for upload in files:
            content = await upload.read()
            validation = image_service.validate(upload.filename or "", content, upload.content_type)

            if validation.accepted:
                accepted.append(validation.image)
                continue

            logger.warning(f"Skipping invalid image {upload.filename}: {validation.reason.value}")
            rejected_by_reason[validation.reason] += 1
            rejected.append(OcrImageResult(
                file_name=image_service.extract_filename(upload.filename or "") or "unknown",
                error=REJECTION_MESSAGES[validation.reason],
                error_type=OcrErrorKind.UNSUPPORTED_IMAGE_FORMAT.value,
                success=False
            ))

        logger.info(f"Valid files: {len(accepted)}, Invalid files: {len(rejected)}")

        outcomes = await batch_service.process_all(accepted)
        results = rejected + [_to_result(outcome) for outcome in outcomes]

        success_count = sum(1 for r in results if r.success)
        failure_count = len(results) - success_count

        logger.info(
            f"Job completed: OCR, {success_count} succeeded, {failure_count} failed, "
            f"{len(results)} processed"
        )

        return OCRResponse(
            results=results,
            summary=OcrSummary(
                total_processed=len(results),
                success_count=success_count,
                failure_count=failure_count,
                rejected_extension_count=rejected_by_reason[RejectionReason.INVALID_EXTENSION],
                rejected_signature_count=rejected_by_reason[RejectionReason.INVALID_SIGNATURE]
            )
        )

    except Exception as e:
        logger.error(f"OCR processing failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An unexpected error occurred while processing the images."
        )
