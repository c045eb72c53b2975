"""
Configuration Management for Statement Ingest

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.

The Gemini API key is deliberately optional at load time: a missing key
is reported as a configuration error when the completion service is first
used, so the rest of the pipeline (validation, commit) stays usable.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CloudinarySettings(BaseSettings):
    """Cloudinary file storage configuration (uploaded statements)."""

    model_config = SettingsConfigDict(
        env_prefix="CLOUDINARY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    cloud_name: str = Field(
        ...,
        description="Cloudinary cloud name"
    )
    api_key: str = Field(
        ...,
        description="Cloudinary API key"
    )
    api_secret: str = Field(
        ...,
        description="Cloudinary API secret"
    )
    fetch_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for downloading a stored statement file"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    categories_sheet_name: str = Field(
        default="Categories",
        description="Name of the sheet holding the category catalog"
    )
    transactions_sheet_name: str = Field(
        default="Transactions",
        description="Name of the sheet holding committed transactions"
    )
    statements_sheet_name: str = Field(
        default="Statements",
        description="Name of the sheet holding statement records"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class GeminiSettings(BaseSettings):
    """Gemini completion service configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: Optional[str] = Field(
        default=None,
        description="Gemini API key (required for extraction)"
    )
    model_name: str = Field(
        default="gemini-1.5-pro",
        description="Gemini model to use (must be vision-capable)"
    )
    max_tokens: int = Field(
        default=8192,
        ge=100,
        le=32768,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )


class IngestionSettings(BaseSettings):
    """
    Statement ingestion pipeline settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="INGEST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # File upload limits
    max_upload_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum statement file size in MB"
    )

    # Content extraction
    min_pdf_text_chars: int = Field(
        default=50,
        ge=1,
        description="PDFs yielding less text than this are treated as scans"
    )
    max_text_chars: int = Field(
        default=50_000,
        ge=1_000,
        description="Statement text beyond this length is truncated before extraction"
    )

    # Completion service retries
    max_extraction_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per extraction call before giving up"
    )
    retry_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Base delay; attempt N waits N times this before retrying"
    )

    # Duplicate detection
    duplicate_window: int = Field(
        default=5000,
        ge=1,
        description="How many existing account transactions to fingerprint"
    )

    # Commit limits
    max_commit_transactions: int = Field(
        default=500,
        ge=1,
        description="Maximum transactions accepted in one commit"
    )

    @property
    def max_upload_size_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def cloudinary(self) -> CloudinarySettings:
        return CloudinarySettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def ingestion(self) -> IngestionSettings:
        return IngestionSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.cloudinary
        results["cloudinary"] = True
    except Exception as e:
        results["cloudinary"] = False
        results["cloudinary_error"] = str(e)

    try:
        _ = settings.google_sheets
        results["google_sheets"] = True
    except Exception as e:
        results["google_sheets"] = False
        results["google_sheets_error"] = str(e)

    try:
        gemini = settings.gemini
        results["gemini"] = bool(gemini.api_key)
        if not gemini.api_key:
            results["gemini_error"] = "GEMINI_API_KEY is not set"
    except Exception as e:
        results["gemini"] = False
        results["gemini_error"] = str(e)

    try:
        _ = settings.ingestion
        results["ingestion"] = True
    except Exception as e:
        results["ingestion"] = False
        results["ingestion_error"] = str(e)

    return results
