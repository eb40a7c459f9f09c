"""Configuration management for the document organizer.

This module uses Pydantic Settings to load configuration from environment
variables. All settings are validated at startup to catch configuration
errors early.
"""

import logging
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

OCR_METHODS = ("tesseract", "vision", "document")
CLASSIFICATION_MODES = ("text", "document")


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    The Gemini API key must be provided via environment variables or
    .env file.
    """

    # Gemini API Configuration
    gemini_api_key: str = Field(
        ...,
        description="Google Gemini API key for classification and OCR"
    )

    # AI Model Configuration
    model_name: str = Field(
        default="gemini-2.5-flash",
        description="Gemini model used for classification and vision OCR"
    )
    model_max_retries: int = Field(
        default=2,
        ge=0,
        le=10,
        description="Retries for transient Gemini transport errors"
    )

    # Pipeline Configuration
    ocr_method: str = Field(
        default="tesseract",
        description="OCR fallback strategy: tesseract, vision or document"
    )
    classification_mode: str = Field(
        default="document",
        description="Send raw PDFs (document) or extracted text (text) to the model"
    )
    batch_delay_ms: int = Field(
        default=500,
        ge=0,
        le=60000,
        description="Minimum delay between model calls in a batch"
    )
    output_dir: str = Field(
        default="./organized_documents",
        description="Base directory for organized documents"
    )

    # OCR Configuration
    tesseract_lang: str = Field(
        default="eng",
        description="Tesseract language pack(s), e.g. 'eng' or 'eng+ind'"
    )
    ocr_dpi: int = Field(
        default=200,
        ge=72,
        le=600,
        description="Rasterization resolution for OCR page images"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level name"
    )

    # Model configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        protected_namespaces=(),
    )

    @field_validator("gemini_api_key")
    @classmethod
    def validate_gemini_api_key(cls, v: str) -> str:
        """Validate that GEMINI_API_KEY is present and non-empty."""
        if not v or not v.strip():
            raise ValueError(
                "GEMINI_API_KEY must be set in environment variables. "
                "Get your API key from https://ai.google.dev/"
            )
        return v.strip()

    @field_validator("ocr_method")
    @classmethod
    def validate_ocr_method(cls, v: str) -> str:
        method = v.strip().lower()
        if method not in OCR_METHODS:
            raise ValueError(
                f"OCR_METHOD must be one of {', '.join(OCR_METHODS)} (got: {v})"
            )
        return method

    @field_validator("classification_mode")
    @classmethod
    def validate_classification_mode(cls, v: str) -> str:
        mode = v.strip().lower()
        if mode not in CLASSIFICATION_MODES:
            raise ValueError(
                f"CLASSIFICATION_MODE must be one of {', '.join(CLASSIFICATION_MODES)} "
                f"(got: {v})"
            )
        return mode

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"LOG_LEVEL is not a valid logging level: {v}")
        return level


@lru_cache
def get_settings() -> Settings:
    """Get cached Settings instance.

    This function uses lru_cache to ensure settings are loaded only once
    and reused across the application lifetime.

    Returns:
        Settings: Validated application settings

    Raises:
        ValueError: If required environment variables are missing or invalid
    """
    return Settings()
