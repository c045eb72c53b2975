"""Statement content extraction package."""

from statement_ingest.services.content.extractor import (
    SUPPORTED_EXTENSIONS,
    ContentExtractor,
    decode_text,
    file_extension,
)
from statement_ingest.services.content.pdf_text import PdfPlumberTextExtractor

__all__ = [
    "ContentExtractor",
    "PdfPlumberTextExtractor",
    "SUPPORTED_EXTENSIONS",
    "decode_text",
    "file_extension",
]
