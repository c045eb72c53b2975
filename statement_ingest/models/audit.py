"""
Audit Models for Statement Ingest

Every significant step of a statement import is logged for audit purposes.
This provides:
1. Traceability from an uploaded file to the rows it produced
2. Debugging information when extraction goes wrong
3. A record of rejected commits and persistence failures

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
Audit details carry counts and identifiers, never statement content.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every stage of the ingestion pipeline has its own event type.
    """
    # Content extraction
    STATEMENT_RECEIVED = "statement_received"
    CONTENT_EXTRACTED = "content_extracted"
    CONTENT_REJECTED = "content_rejected"

    # Completion service
    EXTRACTION_COMPLETED = "extraction_completed"
    EXTRACTION_FAILED = "extraction_failed"

    # Validation and review
    CANDIDATES_VALIDATED = "candidates_validated"
    PREVIEW_GENERATED = "preview_generated"

    # Commit gate
    COMMIT_REJECTED = "commit_rejected"
    STATEMENT_RECORD_CREATED = "statement_record_created"
    TRANSACTIONS_COMMITTED = "transactions_committed"
    PERSISTENCE_FAILED = "persistence_failed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'statement', 'file', 'batch')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one preview call)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.statement_received(file_ref, file_name, ...)
        event = AuditEventBuilder.commit_rejected(account_id, reason, ...)
    """

    @staticmethod
    def statement_received(
        file_ref: str,
        file_name: str,
        file_type: str,
        account_id: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATEMENT_RECEIVED,
            entity_type="file",
            entity_id=file_ref,
            correlation_id=correlation_id,
            description=f"Statement received: {file_name}",
            details={
                "file_name": file_name,
                "file_type": file_type,
                "account_id": account_id,
            },
            is_user_action=True,
        )

    @staticmethod
    def content_extracted(
        file_ref: str,
        kind: str,
        size: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONTENT_EXTRACTED,
            entity_type="file",
            entity_id=file_ref,
            correlation_id=correlation_id,
            description=f"Extracted {kind} content from statement",
            details={
                "kind": kind,
                "size": size,
            },
        )

    @staticmethod
    def content_rejected(
        file_ref: str,
        reason: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONTENT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="file",
            entity_id=file_ref,
            correlation_id=correlation_id,
            description="Statement content rejected",
            error_message=reason,
        )

    @staticmethod
    def extraction_completed(
        file_ref: str,
        candidate_count: int,
        was_truncated: bool,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_COMPLETED,
            entity_type="file",
            entity_id=file_ref,
            correlation_id=correlation_id,
            description=f"Completion service returned {candidate_count} candidates",
            details={
                "candidate_count": candidate_count,
                "was_truncated": was_truncated,
            },
        )

    @staticmethod
    def extraction_failed(
        file_ref: str,
        attempts: int,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="file",
            entity_id=file_ref,
            correlation_id=correlation_id,
            description=f"Extraction failed after {attempts} attempt(s)",
            error_message=error_message,
            details={
                "attempts": attempts,
            },
        )

    @staticmethod
    def candidates_validated(
        file_ref: str,
        received: int,
        accepted: int,
        rejected_by_reason: dict[str, int],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CANDIDATES_VALIDATED,
            severity=AuditSeverity.INFO if accepted else AuditSeverity.WARNING,
            entity_type="file",
            entity_id=file_ref,
            correlation_id=correlation_id,
            description=f"Validated {accepted} of {received} candidates",
            details={
                "received": received,
                "accepted": accepted,
                "rejected_by_reason": rejected_by_reason,
            },
        )

    @staticmethod
    def preview_generated(
        file_ref: str,
        transaction_count: int,
        duplicate_count: int,
        uncategorized_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PREVIEW_GENERATED,
            entity_type="file",
            entity_id=file_ref,
            correlation_id=correlation_id,
            description=f"Preview ready with {transaction_count} transactions",
            details={
                "transaction_count": transaction_count,
                "duplicate_count": duplicate_count,
                "uncategorized_count": uncategorized_count,
            },
        )

    @staticmethod
    def commit_rejected(
        account_id: str,
        reason: str,
        issue_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMIT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description="Commit batch rejected",
            error_message=reason,
            details={
                "issue_count": issue_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def statement_record_created(
        statement_id: UUID,
        file_name: str,
        transaction_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATEMENT_RECORD_CREATED,
            entity_type="statement",
            entity_id=str(statement_id),
            correlation_id=correlation_id,
            description=f"Statement record created for {file_name}",
            details={
                "file_name": file_name,
                "transaction_count": transaction_count,
            },
        )

    @staticmethod
    def transactions_committed(
        statement_id: UUID,
        account_id: str,
        transaction_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTIONS_COMMITTED,
            entity_type="statement",
            entity_id=str(statement_id),
            correlation_id=correlation_id,
            description=f"Committed {transaction_count} transactions",
            details={
                "account_id": account_id,
                "transaction_count": transaction_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def persistence_failed(
        statement_id: UUID,
        account_id: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSISTENCE_FAILED,
            severity=AuditSeverity.CRITICAL,
            entity_type="statement",
            entity_id=str(statement_id),
            correlation_id=correlation_id,
            description="Bulk insert failed after statement record was created",
            error_message=error_message,
            details={
                "account_id": account_id,
                "orphaned_statement_id": str(statement_id),
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
