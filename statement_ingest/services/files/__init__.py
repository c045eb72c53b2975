"""Statement file storage package."""

from statement_ingest.services.files.cloudinary_store import CloudinaryFileStore

__all__ = ["CloudinaryFileStore"]
