"""
Abstract Collaborator Interfaces

DESIGN DECISION: Every external system the pipeline touches is an abstract
interface. This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory fakes for testing
3. Run the PDF extractor somewhere else if it needs a heavier runtime
4. Keep pipeline logic decoupled from storage implementation

The interfaces are intentionally narrow - the pipeline only reads
categories and recent transactions, and only writes a statement record
plus one bulk insert.
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from statement_ingest.models.audit import AuditEvent
from statement_ingest.models.transaction import (
    Category,
    EncodedImage,
    ExistingTransaction,
    NewTransaction,
    StatementRecord,
)


class FileStoreInterface(ABC):
    """Where uploaded statement files live."""

    @abstractmethod
    async def get_download_url(self, file_ref: str) -> str:
        """
        Resolve a storage reference to a download URL.

        Raises:
            FileFetchError: If the reference does not resolve
        """
        pass

    @abstractmethod
    async def fetch(self, url: str) -> bytes:
        """
        Download the file behind a URL.

        Raises:
            FileFetchError: If the download fails
        """
        pass


class PdfTextExtractorInterface(ABC):
    """Turns PDF bytes into plain text."""

    @abstractmethod
    async def extract_text(self, pdf_bytes: bytes) -> str:
        """
        Extract the text layer of a PDF, pages merged.

        Returns an empty string for image-only PDFs.
        """
        pass


class CompletionServiceInterface(ABC):
    """
    A language/vision model constrained to a JSON output schema.

    Implementations must raise ConfigurationError (not retryable) when
    their credential is missing, before making any network call.
    """

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: dict,
        images: Optional[Sequence[EncodedImage]] = None,
    ) -> str:
        """
        Run one completion and return the raw response text.

        Args:
            system_prompt: Business rules the model must follow
            user_prompt: The request, including any statement text
            schema: JSON schema the response must conform to
            images: Vision attachments (vision mode only)
        """
        pass


class CategoryCatalogInterface(ABC):
    """Read access to a user's categories."""

    @abstractmethod
    async def list_categories(self, owner_id: str) -> list[Category]:
        """List every category visible to the owner."""
        pass


class TransactionHistoryInterface(ABC):
    """
    Read/write access to committed transactions.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def list_transactions(
        self,
        account_id: str,
        limit: int,
    ) -> list[ExistingTransaction]:
        """
        List the most recent transactions of an account.

        Args:
            account_id: Account to read
            limit: Maximum number of rows to return (newest first)
        """
        pass

    @abstractmethod
    async def bulk_insert(
        self,
        account_id: str,
        transactions: Sequence[NewTransaction],
    ) -> None:
        """
        Insert a batch of transactions.

        Raises:
            StorageError: If the write fails
        """
        pass


class StatementStoreInterface(ABC):
    """
    Storage for statement records.

    Statement records are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def create_record(self, record: StatementRecord) -> StatementRecord:
        """
        Persist a new statement record.

        Returns:
            The stored record (with its final id)

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def list_records(
        self,
        user_id: str,
        account_id: Optional[str] = None,
    ) -> list[StatementRecord]:
        """
        List a user's statement records, newest first.

        Args:
            user_id: Owner of the records
            account_id: Optional account filter
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
