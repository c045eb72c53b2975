"""
Audit Logger

DESIGN DECISION: Every significant step of an ingestion run is logged.
This provides:
1. Complete traceability from upload to committed rows
2. Debugging capability
3. A record of orphaned statement records when a commit fails part-way

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the pipeline if logging fails)
- Supports correlation IDs to trace one invocation end to end
- Never logs raw statement content, only counts and identifiers
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from statement_ingest.models.audit import AuditEvent, AuditEventBuilder
from statement_ingest.models.transaction import ValidationSummary
from statement_ingest.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_statement_received(
        self,
        file_ref: str,
        file_name: str,
        file_type: str,
        account_id: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.statement_received(
            file_ref=file_ref,
            file_name=file_name,
            file_type=file_type,
            account_id=account_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_content_extracted(
        self,
        file_ref: str,
        kind: str,
        size: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.content_extracted(
            file_ref=file_ref,
            kind=kind,
            size=size,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_content_rejected(
        self,
        file_ref: str,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        """Log a file that cannot produce transactions."""
        event = AuditEventBuilder.content_rejected(
            file_ref=file_ref,
            reason=reason,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_extraction_completed(
        self,
        file_ref: str,
        candidate_count: int,
        was_truncated: bool,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.extraction_completed(
            file_ref=file_ref,
            candidate_count=candidate_count,
            was_truncated=was_truncated,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_extraction_failed(
        self,
        file_ref: str,
        attempts: int,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.extraction_failed(
            file_ref=file_ref,
            attempts=attempts,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_candidates_validated(
        self,
        file_ref: str,
        summary: ValidationSummary,
        correlation_id: UUID,
    ) -> None:
        """Log the normalizer's aggregate counts."""
        event = AuditEventBuilder.candidates_validated(
            file_ref=file_ref,
            received=summary.received,
            accepted=summary.accepted,
            rejected_by_reason={
                reason.value: count
                for reason, count in summary.rejected_by_reason.items()
            },
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_preview_generated(
        self,
        file_ref: str,
        transaction_count: int,
        duplicate_count: int,
        uncategorized_count: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.preview_generated(
            file_ref=file_ref,
            transaction_count=transaction_count,
            duplicate_count=duplicate_count,
            uncategorized_count=uncategorized_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_commit_rejected(
        self,
        account_id: str,
        reason: str,
        issue_count: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.commit_rejected(
            account_id=account_id,
            reason=reason,
            issue_count=issue_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_statement_record_created(
        self,
        statement_id: UUID,
        file_name: str,
        transaction_count: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.statement_record_created(
            statement_id=statement_id,
            file_name=file_name,
            transaction_count=transaction_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transactions_committed(
        self,
        statement_id: UUID,
        account_id: str,
        transaction_count: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.transactions_committed(
            statement_id=statement_id,
            account_id=account_id,
            transaction_count=transaction_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_persistence_failed(
        self,
        statement_id: UUID,
        account_id: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a bulk insert that failed after the statement record was written."""
        event = AuditEventBuilder.persistence_failed(
            statement_id=statement_id,
            account_id=account_id,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new invocation (preview, commit, import).
    Pass it through all subsequent operations.
    """
    return uuid4()
