"""
Statement File Store using Cloudinary

DESIGN DECISION: Uploaded statements live in Cloudinary as raw resources.
Uploading is done by the client application; the pipeline only needs to:
1. Resolve a storage reference (the Cloudinary public ID) to a delivery URL
2. Download the bytes behind that URL

Downloads go through httpx with an explicit timeout. Any non-2xx response
or transport error becomes a FileFetchError - we never hand empty or
partial bytes to the content extractor.
"""

from typing import Optional

import cloudinary
import cloudinary.utils
import httpx
import structlog

from statement_ingest.config import get_settings
from statement_ingest.errors import FileFetchError
from statement_ingest.services.storage.interface import FileStoreInterface


logger = structlog.get_logger(__name__)


class CloudinaryFileStore(FileStoreInterface):
    """
    File store backed by Cloudinary delivery URLs.

    Flow:
    1. file_ref (public ID) -> signed-free secure delivery URL
    2. URL -> bytes via httpx
    """

    def __init__(
        self,
        resource_type: str = "raw",
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = get_settings().cloudinary
        self._resource_type = resource_type
        self._http_client = http_client
        self._configured = False

    def _configure(self):
        """Configure Cloudinary SDK."""
        if not self._configured:
            cloudinary.config(
                cloud_name=self._settings.cloud_name,
                api_key=self._settings.api_key,
                api_secret=self._settings.api_secret,
                secure=True,
            )
            self._configured = True

    async def get_download_url(self, file_ref: str) -> str:
        if not file_ref or not file_ref.strip():
            raise FileFetchError("File not found in storage: empty reference")

        self._configure()
        url, _options = cloudinary.utils.cloudinary_url(
            file_ref.strip(),
            resource_type=self._resource_type,
            type="upload",
            secure=True,
        )
        if not url:
            raise FileFetchError(f"File not found in storage: {file_ref}")
        return url

    async def fetch(self, url: str) -> bytes:
        timeout = httpx.Timeout(self._settings.fetch_timeout_seconds)
        try:
            if self._http_client is not None:
                response = await self._http_client.get(url, timeout=timeout)
            else:
                async with httpx.AsyncClient(follow_redirects=True) as client:
                    response = await client.get(url, timeout=timeout)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            logger.warning("statement_fetch_timeout", url=url)
            raise FileFetchError("Timed out downloading the statement file") from e
        except httpx.HTTPStatusError as e:
            logger.warning(
                "statement_fetch_failed",
                url=url,
                status_code=e.response.status_code,
            )
            raise FileFetchError(
                f"Failed to fetch file from storage (HTTP {e.response.status_code})"
            ) from e
        except httpx.RequestError as e:
            logger.warning("statement_fetch_failed", url=url, error=str(e))
            raise FileFetchError(f"Failed to fetch file from storage: {e}") from e

        return response.content
