"""Services package."""

from statement_ingest.services.completion import GeminiCompletionService
from statement_ingest.services.content import ContentExtractor, PdfPlumberTextExtractor
from statement_ingest.services.files import CloudinaryFileStore
from statement_ingest.services.storage import (
    AuditStorageInterface,
    CategoryCatalogInterface,
    CompletionServiceInterface,
    ConnectionError,
    FileStoreInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsCategoryCatalog,
    GoogleSheetsClient,
    GoogleSheetsStatementStore,
    GoogleSheetsTransactionHistory,
    NotFoundError,
    PdfTextExtractorInterface,
    StatementStoreInterface,
    StorageError,
    TransactionHistoryInterface,
)

__all__ = [
    # Completion
    "GeminiCompletionService",
    # Content extraction
    "ContentExtractor",
    "PdfPlumberTextExtractor",
    # File storage
    "CloudinaryFileStore",
    # Storage services
    "AuditStorageInterface",
    "CategoryCatalogInterface",
    "CompletionServiceInterface",
    "ConnectionError",
    "FileStoreInterface",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsCategoryCatalog",
    "GoogleSheetsClient",
    "GoogleSheetsStatementStore",
    "GoogleSheetsTransactionHistory",
    "NotFoundError",
    "PdfTextExtractorInterface",
    "StatementStoreInterface",
    "StorageError",
    "TransactionHistoryInterface",
]
