"""
Storage Services Package

Provides abstract interfaces for every external collaborator and the
Google Sheets implementations of the data stores.
"""

from statement_ingest.services.storage.interface import (
    AuditStorageInterface,
    CategoryCatalogInterface,
    CompletionServiceInterface,
    ConnectionError,
    FileStoreInterface,
    NotFoundError,
    PdfTextExtractorInterface,
    StatementStoreInterface,
    StorageError,
    TransactionHistoryInterface,
)
from statement_ingest.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsCategoryCatalog,
    GoogleSheetsClient,
    GoogleSheetsStatementStore,
    GoogleSheetsTransactionHistory,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "CategoryCatalogInterface",
    "CompletionServiceInterface",
    "FileStoreInterface",
    "PdfTextExtractorInterface",
    "StatementStoreInterface",
    "TransactionHistoryInterface",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsCategoryCatalog",
    "GoogleSheetsClient",
    "GoogleSheetsStatementStore",
    "GoogleSheetsTransactionHistory",
]
