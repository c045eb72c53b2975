"""
Data Models Package

This package contains all Pydantic models used by the statement ingestion
pipeline. All data flowing through the pipeline must conform to these schemas.
"""

from statement_ingest.models.transaction import (
    OTHER_CATEGORY,
    Category,
    CommitResult,
    CommitState,
    CommitTransactionInput,
    EncodedImage,
    ExistingTransaction,
    ExtractedContent,
    ExtractionResult,
    FileKind,
    ImportResult,
    NewTransaction,
    PreviewResult,
    PreviewTransaction,
    RawCandidateTransaction,
    RejectionReason,
    StatementRecord,
    ValidatedTransaction,
    ValidationSummary,
)
from statement_ingest.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "OTHER_CATEGORY",
    "Category",
    "CommitResult",
    "CommitState",
    "CommitTransactionInput",
    "EncodedImage",
    "ExistingTransaction",
    "ExtractedContent",
    "ExtractionResult",
    "FileKind",
    "ImportResult",
    "NewTransaction",
    "PreviewResult",
    "PreviewTransaction",
    "RawCandidateTransaction",
    "RejectionReason",
    "StatementRecord",
    "ValidatedTransaction",
    "ValidationSummary",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
