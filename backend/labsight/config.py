"""
Configuration management for the LabSight backend.
"""

from __future__ import annotations

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    allowed_origins: str = (
        "http://localhost:3000,http://localhost:5173,"
        "http://127.0.0.1:3000,http://127.0.0.1:5173"
    )
    allowed_hosts: str = "localhost,127.0.0.1"
    log_level: str = "INFO"

    # App metadata
    app_version: str = "0.1.0"

    # Text extraction
    enable_ocr: bool = True
    tesseract_config: str = ""
    ocr_lang: str = "eng"
    ocr_timeout_s: float = 30.0
    max_pdf_pages: int = 5
    max_upload_bytes: int = 10 * 1024 * 1024
    max_files: int = 5

    # Pipeline thresholds
    min_extracted_chars: int = 10
    min_parse_chars: int = 10
    direct_lookahead_chars: int = 25
    proximity_window_chars: int = 100

    # Insights
    trend_default_days: int = 30
    text_preview_chars: int = 1000

    # pydantic-settings v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    def cors_origins(self) -> List[str]:
        """Return CORS origins as a list."""
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    def trusted_hosts(self) -> List[str]:
        hosts = [h.strip() for h in self.allowed_hosts.split(",") if h.strip()]
        # Allow Starlette TestClient default host
        if "testserver" not in hosts:
            hosts.append("testserver")
        return hosts


# Global settings instance
settings = Settings()
