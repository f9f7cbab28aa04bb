from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import List, Optional


class CamelModel(BaseModel):
    """Wire models use camelCase keys"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OcrImageResult(CamelModel):
    """Result of OCR processing for a single image"""
    file_name: str
    text: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    success: bool


class OcrSummary(CamelModel):
    total_processed: int
    success_count: int
    failure_count: int
    rejected_extension_count: int = 0
    rejected_signature_count: int = 0


class OCRResponse(CamelModel):
    """Response model for the OCR endpoint"""
    results: List[OcrImageResult]
    summary: OcrSummary


class PdfOcrResult(CamelModel):
    """One OCR result sent back by the client for PDF generation"""
    file_name: str = ""
    text: Optional[str] = None
    error: Optional[str] = None
    success: bool = False
    image_url: Optional[str] = None


class PdfGenerationRequest(CamelModel):
    ocr_results: List[PdfOcrResult] = []
