from fastapi import APIRouter, HTTPException, status
from fastapi.responses import Response
from datetime import datetime, timezone
from typing import Optional
import asyncio
import base64
import binascii
import logging
import re

from ocr2pdf.models.domain import ImageTextPair
from ocr2pdf.models.responses import PdfGenerationRequest
from ocr2pdf.services.error_classifier import to_pdf_error
from ocr2pdf.services.pdf_service import PdfBatchAssembler, PdfPageCompositor
from ocr2pdf.services.temp_file_service import TempFileService
from ocr2pdf.core.config import settings

logger = logging.getLogger(__name__)

router = APIRouter()

# Initialize services (singleton pattern)
pdf_assembler = PdfBatchAssembler(
    compositor=PdfPageCompositor(
        margin_mm=settings.PDF_MARGIN_MM,
        title_font_size=settings.PDF_TITLE_FONT_SIZE,
        body_font_size=settings.PDF_BODY_FONT_SIZE
    ),
    font_file=settings.PDF_FONT_FILE or None
)
temp_file_service = TempFileService()

DATA_URL_PATTERN = re.compile(r'^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(?:;[^;,]*)*?);base64,(?P<data>.*)$', re.DOTALL)


def decode_image_data_url(file_name: str, image_url: Optional[str]) -> Optional[bytes]:
    """
    Decode a base64 data URL into image bytes

    Returns:
        The decoded bytes, or None when the URL is missing, not a base64
        data URL, or not valid base64
    """
    if not image_url:
        logger.warning(f"No image data provided for {file_name}")
        return None

    match = DATA_URL_PATTERN.match(image_url.strip())
    if not match:
        logger.warning(f"Unknown image URL format for {file_name}: {image_url[:20]}...")
        return None

    try:
        return base64.b64decode(match.group("data"), validate=True) or None
    except (binascii.Error, ValueError) as e:
        logger.warning(f"Invalid base64 image data for {file_name}: {e}")
        return None


@router.post("/generate")
async def generate_pdf(payload: PdfGenerationRequest):
    """
    Build a PDF with one page per successful OCR result

    Each page shows the original image on the left and the extracted text on
    the right. Results with success=false are skipped.

    Returns:
        The PDF as an attachment
    """
    logger.info("Job started: PDF generation")
    ocr_results = payload.ocr_results

    if not ocr_results:
        logger.warning("No OCR results provided for PDF generation")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No OCR results provided for PDF generation"
        )

    if len(ocr_results) > settings.MAX_IMAGES_PER_REQUEST:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Too many results. Maximum: {settings.MAX_IMAGES_PER_REQUEST}, Found: {len(ocr_results)}"
        )

    successful = [r for r in ocr_results if r.success and r.file_name]
    logger.info(
        f"PDF generation preparation: {len(ocr_results)} results, {len(successful)} successful, "
        f"{sum(1 for r in successful if r.image_url)} with images"
    )

    if not successful:
        logger.warning("No successful OCR results found for PDF generation")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No successful OCR results found for PDF generation"
        )

    pairs = [
        ImageTextPair(
            file_name=r.file_name,
            extracted_text=r.text or "",
            image_bytes=decode_image_data_url(r.file_name, r.image_url)
        )
        for r in successful
    ]

    try:
        # Page rendering is CPU-bound, keep it off the event loop
        loop = asyncio.get_running_loop()
        pdf_bytes = await loop.run_in_executor(None, pdf_assembler.build, pairs)

    except Exception as e:
        pdf_error = to_pdf_error(e)
        logger.error(f"PDF generation failed ({pdf_error.kind.value}): {e}", exc_info=True)
        logger.info("Job completed: PDF generation, 0 succeeded, 1 failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": pdf_error.user_message, "errorType": pdf_error.kind.value}
        )

    finally:
        await temp_file_service.cleanup_orphans()

    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    filename = f"ocr_results_{timestamp}.pdf"

    logger.info(f"Job completed: PDF generation, {len(pairs)} pages, {len(pdf_bytes)} bytes")

    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )
