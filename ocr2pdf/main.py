from fastapi import FastAPI, Request
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

import uvicorn

from ocr2pdf.core.config import settings
from ocr2pdf.api.endpoints import ocr, pdf
from ocr2pdf.services.temp_file_service import TempFileService

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.DEBUG else logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager
    Sweeps temp files left behind by earlier runs on startup and shutdown
    """
    temp_files = TempFileService()

    logger.info("Starting up OCR to PDF API...")
    logger.info(f"Temp directory: {temp_files.temp_dir}")
    await temp_files.cleanup_orphans()

    yield

    logger.info("Shutting down OCR to PDF API...")
    await temp_files.cleanup_orphans()


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    description="API for extracting text from images with Gemini and composing the results into a PDF.",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render errors as {"error": ...} bodies"""
    content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


# Include routers
app.include_router(
    ocr.router,
    prefix="/ocr",
    tags=["OCR"]
)
app.include_router(
    pdf.router,
    prefix="/pdf",
    tags=["PDF"]
)


@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "name": settings.APP_NAME,
        "version": settings.VERSION,
        "status": "running",
        "docs": "/docs",
        "ocr_endpoint": "/ocr",
        "pdf_endpoint": "/pdf/generate"
    }


@app.get("/health")
async def health():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "version": settings.VERSION
    }


if __name__ == "__main__":
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
