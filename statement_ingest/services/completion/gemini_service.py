"""
Completion Service using Google Gemini

DESIGN DECISION: Gemini is used for both statement modes because:
1. One vision-capable model reads text and page images
2. Native JSON mode with a response schema keeps output parseable
3. Low temperature gives repeatable extractions

This class makes exactly one model call per complete() and never retries;
retry policy belongs to the extraction agent. A missing API key raises
ConfigurationError before anything leaves the process.
"""

import base64
from typing import Optional, Sequence

import google.generativeai as genai
import structlog

from statement_ingest.config import GeminiSettings, get_settings
from statement_ingest.errors import ConfigurationError, MalformedResponseError
from statement_ingest.models.transaction import EncodedImage
from statement_ingest.services.storage.interface import CompletionServiceInterface


logger = structlog.get_logger(__name__)


class GeminiCompletionService(CompletionServiceInterface):
    """
    Gemini-backed completion service constrained to JSON output.

    The model is configured lazily so that constructing the service
    (e.g. at app startup) works without credentials.
    """

    def __init__(self, settings: Optional[GeminiSettings] = None):
        self._settings = settings or get_settings().gemini
        self._configured = False

    def _configure_genai(self):
        """Configure Google Generative AI."""
        if not self._settings.api_key:
            raise ConfigurationError(
                "Gemini API key not configured. Please set GEMINI_API_KEY."
            )
        if not self._configured:
            genai.configure(api_key=self._settings.api_key)
            self._configured = True

    def _build_model(self, system_prompt: str, schema: dict) -> genai.GenerativeModel:
        return genai.GenerativeModel(
            model_name=self._settings.model_name,
            system_instruction=system_prompt,
            generation_config=genai.GenerationConfig(
                temperature=self._settings.temperature,
                max_output_tokens=self._settings.max_tokens,
                response_mime_type="application/json",
                response_schema=schema,
            ),
        )

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: dict,
        images: Optional[Sequence[EncodedImage]] = None,
    ) -> str:
        self._configure_genai()
        model = self._build_model(system_prompt, schema)

        parts: list = [user_prompt]
        for image in images or []:
            parts.append({
                "mime_type": image.mime_type,
                "data": base64.b64decode(image.data),
            })

        response = await model.generate_content_async(parts)

        try:
            text = response.text
        except ValueError as e:
            # Raised when the candidate has no parts (e.g. safety block)
            logger.warning("gemini_empty_candidate", error=str(e))
            raise MalformedResponseError("No response content from Gemini") from e

        if not text or not text.strip():
            raise MalformedResponseError("No response content from Gemini")
        return text
