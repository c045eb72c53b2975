"""
PDF Text Extraction using pdfplumber

pdfplumber is synchronous and CPU-bound, so extraction runs in a worker
thread. Every page is read and merged with newlines in page order; the
extraction agent bounds the length and reports truncation. Image-only
PDFs produce an empty string; deciding what that means is the caller's job.
"""

import asyncio
from io import BytesIO

import pdfplumber
import structlog

from statement_ingest.errors import ContentError
from statement_ingest.services.storage.interface import PdfTextExtractorInterface


logger = structlog.get_logger(__name__)


class PdfPlumberTextExtractor(PdfTextExtractorInterface):
    """Extracts the text layer of a PDF held in memory."""

    def _extract_sync(self, pdf_bytes: bytes) -> str:
        page_texts = []
        with pdfplumber.open(BytesIO(pdf_bytes)) as pdf:
            for page in pdf.pages:
                text = page.extract_text() or ""
                if text.strip():
                    page_texts.append(text)
            logger.info(
                "pdf_text_extracted",
                total_pages=len(pdf.pages),
                text_pages=len(page_texts),
            )
        return "\n".join(page_texts).strip()

    async def extract_text(self, pdf_bytes: bytes) -> str:
        try:
            return await asyncio.to_thread(self._extract_sync, pdf_bytes)
        except Exception as e:
            # pdfminer raises a zoo of parser exceptions on corrupt files
            raise ContentError(f"Could not read the PDF file: {e}") from e
