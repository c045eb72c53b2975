"""
Statement Content Extraction

Turns a stored statement file into content the completion service can
interpret: plain text for CSV/TSV and PDF, base64 images for PNG/JPEG.

DESIGN DECISION: The file extension decides the path, and an unsupported
extension is rejected before anything is downloaded. Images are opened
with Pillow before they are sent anywhere: a truncated or mislabelled
upload fails here with a clear message instead of burning completion
attempts on bytes the model cannot see.
"""

import base64
from io import BytesIO
from typing import Optional

import structlog
from PIL import Image

from statement_ingest.config import IngestionSettings, get_settings
from statement_ingest.errors import (
    ContentError,
    EmptyFileError,
    EmptyPdfTextError,
    UnsupportedFileTypeError,
)
from statement_ingest.models.transaction import (
    EncodedImage,
    ExtractedContent,
    FileKind,
)
from statement_ingest.services.storage.interface import (
    FileStoreInterface,
    PdfTextExtractorInterface,
)


logger = structlog.get_logger(__name__)


TEXT_EXTENSIONS = ("csv", "tsv")
IMAGE_MIME_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
}
PDF_EXTENSIONS = ("pdf",)

SUPPORTED_EXTENSIONS = TEXT_EXTENSIONS + tuple(IMAGE_MIME_TYPES) + PDF_EXTENSIONS

# Pillow format name -> MIME type we can send
_PIL_FORMAT_MIME = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "MPO": "image/jpeg",  # multi-picture JPEG written by many phone cameras
}

_UTF8_BOM = "\ufeff"


def file_extension(file_name: str) -> str:
    """Lower-cased extension without the dot, or '' if there is none."""
    name = (file_name or "").strip()
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[1].lower()


def decode_text(data: bytes) -> str:
    """
    Decode statement bytes.

    Strict UTF-8 first (a leading byte-order mark is dropped); anything
    that is not valid UTF-8 is read as ISO-8859-1, which never fails.
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("latin-1")
    if text.startswith(_UTF8_BOM):
        text = text[len(_UTF8_BOM):]
    return text


class ContentExtractor:
    """
    Produces ExtractedContent from a file reference.

    Boundaries:
    - Reads from the file store and the PDF text extractor only
    - Never calls the completion service
    """

    def __init__(
        self,
        file_store: FileStoreInterface,
        pdf_extractor: PdfTextExtractorInterface,
        settings: Optional[IngestionSettings] = None,
    ):
        self._file_store = file_store
        self._pdf_extractor = pdf_extractor
        self._settings = settings or get_settings().ingestion

    async def extract(self, file_ref: str, file_name: str) -> ExtractedContent:
        """
        Extract interpretable content from a stored statement.

        Raises:
            UnsupportedFileTypeError: Extension is not supported (nothing fetched)
            FileFetchError: The file could not be downloaded
            EmptyFileError: The file has no content
            EmptyPdfTextError: A PDF has no usable text layer
            ContentError: The file is too large or unreadable
        """
        extension = file_extension(file_name)
        if extension not in SUPPORTED_EXTENSIONS:
            raise UnsupportedFileTypeError(extension, SUPPORTED_EXTENSIONS)

        data = await self._download(file_ref)

        if extension in TEXT_EXTENSIONS:
            text = decode_text(data)
            if not text.strip():
                raise EmptyFileError("The statement file is empty.")
            return ExtractedContent(
                kind=FileKind.TEXT,
                source_format=extension,
                text=text,
            )

        if extension in IMAGE_MIME_TYPES:
            mime_type = self._inspect_image(data, extension)
            return ExtractedContent(
                kind=FileKind.IMAGE,
                source_format=extension,
                images=[
                    EncodedImage(
                        data=base64.b64encode(data).decode("ascii"),
                        mime_type=mime_type,
                    )
                ],
            )

        text = (await self._pdf_extractor.extract_text(data)).strip()
        if len(text) < self._settings.min_pdf_text_chars:
            logger.info(
                "pdf_text_too_short",
                char_count=len(text),
                minimum=self._settings.min_pdf_text_chars,
            )
            raise EmptyPdfTextError(len(text))
        return ExtractedContent(
            kind=FileKind.PDF,
            source_format=extension,
            text=text,
        )

    async def _download(self, file_ref: str) -> bytes:
        url = await self._file_store.get_download_url(file_ref)
        data = await self._file_store.fetch(url)

        if not data:
            raise EmptyFileError("The statement file is empty.")
        if len(data) > self._settings.max_upload_size_bytes:
            raise ContentError(
                f"The statement file is too large. "
                f"Maximum size is {self._settings.max_upload_size_mb} MB."
            )
        return data

    def _inspect_image(self, data: bytes, extension: str) -> str:
        """
        Check the bytes really are an image and return the MIME type to send.

        The detected format wins over the extension for PNG/JPEG, so a
        screenshot saved as .jpg is still tagged image/png.
        """
        try:
            with Image.open(BytesIO(data)) as img:
                detected = (img.format or "").upper()
                img.verify()
        except (OSError, SyntaxError, ValueError) as e:
            raise ContentError(
                "The uploaded image could not be read. "
                "Please upload a PNG or JPG picture of the statement."
            ) from e

        return _PIL_FORMAT_MIME.get(detected, IMAGE_MIME_TYPES[extension])
