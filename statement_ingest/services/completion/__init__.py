"""Completion service package."""

from statement_ingest.services.completion.gemini_service import GeminiCompletionService

__all__ = ["GeminiCompletionService"]
