"""Configuration and environment settings"""

from pydantic_settings import BaseSettings
from typing import Optional, List
from pathlib import Path

from core.enums import RecalculationPolicy


class Settings(BaseSettings):
    """Application configuration"""

    # Database
    DATABASE_URL: Optional[str] = None

    # Transient upload storage
    UPLOAD_DIR: str = "./uploads"

    # Templates
    DEFAULT_TEMPLATE_NAME: str = "PMS-Header"
    DEFAULT_TEMPLATE_DESCRIPTION: str = "PMS Header Template for employee data uploads"
    TEMPLATE_VERSION: str = "1.0.0"
    FALLBACK_TEMPLATE_NAME: str = "PMS-APAC-Header"  # used when no template is named

    # Structure extraction
    HEADER_SCAN_LAST_ROW: int = 10

    # Row processing
    RECALCULATION_POLICY: RecalculationPolicy = RecalculationPolicy.BACKFILL

    # Queries and export
    UPLOAD_HISTORY_LIMIT: int = 50
    EXPORT_MAX_COLUMN_WIDTH: int = 50

    # Web
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"

    def get_cors_origins(self) -> List[str]:
        """Get allowed CORS origins"""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    def get_upload_path(self) -> Path:
        """Get upload directory path"""
        path = Path(self.UPLOAD_DIR)
        path.mkdir(parents=True, exist_ok=True)
        return path


settings = Settings()
