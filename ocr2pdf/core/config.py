from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path
from typing import List
import tempfile


class Settings(BaseSettings):
    """Application configuration settings"""

    # Application
    APP_NAME: str = "OCR to PDF API"
    VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    CORS_ORIGINS: List[str] = ["*"]

    # File Processing
    MAX_IMAGES_PER_REQUEST: int = 50
    TEMP_DIR: str = ""  # Empty = system temp directory
    ORPHAN_MIN_AGE_SECONDS: float = 300.0  # Younger temp files may belong to a running batch

    # Gemini OCR Settings
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.0-flash"
    OCR_PROMPT: str = "Please extract and provide the text content from the image."
    OCR_TIMEOUT_SECONDS: int = 60
    OCR_STOP_ON_ANY_ERROR: bool = True  # False = only critical errors stop the batch

    # PDF Layout
    PDF_MARGIN_MM: float = 20.0
    PDF_TITLE_FONT_SIZE: float = 14.0
    PDF_BODY_FONT_SIZE: float = 10.0
    PDF_FONT_FILE: str = ""  # TTF/OTF to embed for non-Latin text; empty = built-in Helvetica

    # Supported Formats
    SUPPORTED_IMAGE_FORMATS: List[str] = ["jpg", "jpeg", "png", "webp", "heic", "heif"]

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    @property
    def temp_dir_path(self) -> Path:
        """Directory used for per-image temp copies"""
        return Path(self.TEMP_DIR) if self.TEMP_DIR else Path(tempfile.gettempdir())


settings = Settings()
