"""Configuration package."""

from statement_ingest.config.settings import (
    CloudinarySettings,
    GeminiSettings,
    GoogleSheetsSettings,
    IngestionSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "CloudinarySettings",
    "GeminiSettings",
    "GoogleSheetsSettings",
    "IngestionSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
