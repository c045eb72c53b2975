"""
Pipeline Exceptions

DESIGN DECISION: Every failure the caller can see derives from
StatementIngestError and carries a message that can be shown to the user
as-is. The subclasses map onto how the caller should react:

- ConfigurationError: operator problem, never retried
- ExtractionError: completion service trouble (retried inside the client)
- ContentError: this file cannot produce transactions
- CommitValidationError: the submitted batch was rejected, nothing written
- PersistenceError: a write failed part-way; see statement_id
"""

from typing import Optional
from uuid import UUID


class StatementIngestError(Exception):
    """Base exception for the statement ingestion pipeline."""
    pass


class ConfigurationError(StatementIngestError):
    """A required credential or setting is missing."""
    pass


# =============================================================================
# EXTRACTION
# =============================================================================

class ExtractionError(StatementIngestError):
    """Base exception for completion service failures."""
    pass


class MalformedResponseError(ExtractionError):
    """The completion service answered with something we cannot parse."""
    pass


class ExtractionFailedError(ExtractionError):
    """All extraction attempts were exhausted."""

    def __init__(self, attempts: int, last_error: BaseException):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Could not read transactions from the statement after "
            f"{attempts} attempt(s): {last_error}"
        )


# =============================================================================
# CONTENT
# =============================================================================

class ContentError(StatementIngestError):
    """The uploaded file cannot be turned into transactions."""
    pass


class UnsupportedFileTypeError(ContentError):
    """File extension is not one we can interpret."""

    def __init__(self, extension: str, supported: tuple[str, ...]):
        self.extension = extension
        self.supported = supported
        shown = extension or "(none)"
        super().__init__(
            f"Unsupported file type: {shown}. "
            f"Please upload one of: {', '.join(supported)}."
        )


class EmptyFileError(ContentError):
    """The stored file has no content."""
    pass


class EmptyPdfTextError(ContentError):
    """A PDF yielded (almost) no text - most likely a scanned image."""

    def __init__(self, char_count: int):
        self.char_count = char_count
        super().__init__(
            "This PDF contains no readable text (it looks like a scanned "
            "document). Please upload the statement pages as PNG or JPG "
            "images instead."
        )


class NoTransactionsFoundError(ContentError):
    """The completion service found no transactions at all."""

    def __init__(self):
        super().__init__(
            "No transactions were found in the statement. "
            "Please check that the file is a bank statement."
        )


class AllTransactionsInvalidError(ContentError):
    """Transactions were found but none passed validation."""

    def __init__(self, found: int):
        self.found = found
        super().__init__(
            f"Found {found} transaction(s) in the statement, but none had a "
            "usable date, amount and description. Please check the file format."
        )


class AllDuplicatesError(ContentError):
    """Every valid transaction is already on the account."""

    def __init__(self, count: int):
        self.count = count
        super().__init__(
            f"All {count} transactions were already imported. "
            "No new transactions to add."
        )


class FileFetchError(StatementIngestError):
    """The stored statement file could not be downloaded."""
    pass


# =============================================================================
# COMMIT
# =============================================================================

class CommitValidationError(StatementIngestError):
    """
    The submitted batch failed strict validation.

    Nothing was written. ``issues`` holds (row_index, message) pairs;
    row_index is None for batch-level problems.
    """

    def __init__(self, message: str, issues: Optional[list[tuple[Optional[int], str]]] = None):
        self.issues = issues or []
        super().__init__(message)


class PersistenceError(StatementIngestError):
    """
    A write failed during commit.

    When ``statement_id`` is set, the statement record was created but the
    transactions were not inserted; the record is left as-is.
    """

    def __init__(self, message: str, statement_id: Optional[UUID] = None):
        self.statement_id = statement_id
        super().__init__(message)
