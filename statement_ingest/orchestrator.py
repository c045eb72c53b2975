"""
Main Orchestrator for Statement Ingest

This module ties together all the components and defines the
end-to-end flows for:
1. Preview (file -> content -> candidates -> validated -> flagged -> categorized)
2. Commit (reviewed rows -> strict validation -> statement record -> bulk insert)
3. One-shot import (preview, drop duplicates, commit)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Preview never writes anything except audit events
- Only the commit gate writes transactions
- Every step is audited under one correlation id

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

from typing import Optional, Sequence
from uuid import UUID

import structlog
from pydantic import ValidationError

from statement_ingest.agents import TransactionExtractionAgent
from statement_ingest.audit import AuditLogger, create_correlation_id
from statement_ingest.commit import CommitGate
from statement_ingest.config import IngestionSettings, get_settings
from statement_ingest.errors import (
    AllDuplicatesError,
    ConfigurationError,
    ContentError,
    ExtractionFailedError,
    FileFetchError,
)
from statement_ingest.models.transaction import (
    CommitResult,
    CommitTransactionInput,
    ExtractedContent,
    ImportResult,
    PreviewResult,
    PreviewTransaction,
    StatementRecord,
)
from statement_ingest.review import CategoryResolver, Deduplicator
from statement_ingest.services.completion import GeminiCompletionService
from statement_ingest.services.content import ContentExtractor, PdfPlumberTextExtractor
from statement_ingest.services.files import CloudinaryFileStore
from statement_ingest.services.storage import (
    CategoryCatalogInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsCategoryCatalog,
    GoogleSheetsClient,
    GoogleSheetsStatementStore,
    GoogleSheetsTransactionHistory,
    StatementStoreInterface,
    TransactionHistoryInterface,
)
from statement_ingest.validation import (
    CommitValidator,
    TransactionNormalizer,
    ensure_transactions_found,
)
from statement_ingest.validation.commit_validator import CommitRow


logger = structlog.get_logger(__name__)


def _content_size(content: ExtractedContent) -> int:
    if content.is_vision:
        return len(content.images)
    return len(content.text or "")


class StatementPreviewFlow:
    """
    Orchestrates the preview flow.

    Flow:
    1. Extract → File store / PDF text extractor
    2. Read → Completion service (retried)
    3. Normalize → Drop unusable candidates, count rejections
    4. Flag → Compare against recent account history
    5. Categorize → Map labels onto the caller's catalog
    6. Return → PreviewResult for human review (PAUSE - nothing persisted)
    """

    def __init__(
        self,
        content_extractor: ContentExtractor,
        extraction_agent: TransactionExtractionAgent,
        category_catalog: CategoryCatalogInterface,
        deduplicator: Deduplicator,
        normalizer: Optional[TransactionNormalizer] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._content_extractor = content_extractor
        self._extraction_agent = extraction_agent
        self._category_catalog = category_catalog
        self._deduplicator = deduplicator
        self._normalizer = normalizer or TransactionNormalizer()
        self._audit_logger = audit_logger or AuditLogger()

    async def _extract_content(
        self,
        file_ref: str,
        file_name: str,
        correlation_id: UUID,
    ) -> ExtractedContent:
        try:
            content = await self._content_extractor.extract(file_ref, file_name)
        except ContentError as e:
            await self._audit_logger.log_content_rejected(
                file_ref=file_ref,
                reason=str(e),
                correlation_id=correlation_id,
            )
            raise
        except FileFetchError as e:
            await self._audit_logger.log_external_service_error(
                service="file_store",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        await self._audit_logger.log_content_extracted(
            file_ref=file_ref,
            kind=content.kind.value,
            size=_content_size(content),
            correlation_id=correlation_id,
        )
        return content

    async def preview(
        self,
        file_ref: str,
        account_id: str,
        file_name: str,
        file_type: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> PreviewResult:
        """
        Build the review payload for an uploaded statement.

        Raises:
            UnsupportedFileTypeError, EmptyPdfTextError, EmptyFileError: Bad file
            FileFetchError: The stored file could not be downloaded
            ConfigurationError: Completion service credential missing
            ExtractionFailedError: Completion service kept failing
            NoTransactionsFoundError: Nothing was extracted
            AllTransactionsInvalidError: Nothing extracted was usable
        """
        correlation_id = correlation_id or create_correlation_id()
        log = logger.bind(correlation_id=str(correlation_id), account_id=account_id)

        await self._audit_logger.log_statement_received(
            file_ref=file_ref,
            file_name=file_name,
            file_type=file_type,
            account_id=account_id,
            correlation_id=correlation_id,
        )

        content = await self._extract_content(file_ref, file_name, correlation_id)

        categories = await self._category_catalog.list_categories(user_id)
        resolver = CategoryResolver(categories)

        try:
            extraction = await self._extraction_agent.extract(
                content,
                resolver.category_names,
            )
        except ConfigurationError as e:
            await self._audit_logger.log_error(
                error_type="configuration",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise
        except ExtractionFailedError as e:
            await self._audit_logger.log_extraction_failed(
                file_ref=file_ref,
                attempts=e.attempts,
                error_message=str(e.last_error),
                correlation_id=correlation_id,
            )
            raise

        await self._audit_logger.log_extraction_completed(
            file_ref=file_ref,
            candidate_count=len(extraction.candidates),
            was_truncated=extraction.was_truncated,
            correlation_id=correlation_id,
        )

        validated, summary = self._normalizer.normalize(extraction.candidates)
        await self._audit_logger.log_candidates_validated(
            file_ref=file_ref,
            summary=summary,
            correlation_id=correlation_id,
        )
        try:
            ensure_transactions_found(summary)
        except ContentError as e:
            await self._audit_logger.log_content_rejected(
                file_ref=file_ref,
                reason=str(e),
                correlation_id=correlation_id,
            )
            raise

        duplicate_flags = await self._deduplicator.find_duplicates(account_id, validated)

        preview = []
        for transaction, is_duplicate in zip(validated, duplicate_flags):
            resolved_name, category_id = resolver.resolve(transaction.category)
            preview.append(PreviewTransaction(
                **transaction.model_dump(),
                resolved_category=resolved_name,
                category_id=category_id,
                is_duplicate=is_duplicate,
            ))

        duplicate_count = sum(1 for row in preview if row.is_duplicate)
        uncategorized_count = sum(1 for row in preview if row.category_id is None)

        await self._audit_logger.log_preview_generated(
            file_ref=file_ref,
            transaction_count=len(preview),
            duplicate_count=duplicate_count,
            uncategorized_count=uncategorized_count,
            correlation_id=correlation_id,
        )
        log.info(
            "preview_ready",
            transaction_count=len(preview),
            duplicate_count=duplicate_count,
            rejected=summary.rejected,
            was_truncated=extraction.was_truncated,
        )

        return PreviewResult(
            file_ref=file_ref,
            preview=preview,
            available_categories=resolver.categories,
            was_truncated=extraction.was_truncated,
            validation=summary,
            duplicate_count=duplicate_count,
        )


class StatementCommitFlow:
    """
    Orchestrates the commit flow.

    Every call gets a fresh CommitGate; gates are single-use.
    """

    def __init__(
        self,
        statement_store: StatementStoreInterface,
        transaction_history: TransactionHistoryInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[IngestionSettings] = None,
    ):
        self._statement_store = statement_store
        self._transaction_history = transaction_history
        self._audit_logger = audit_logger or AuditLogger()
        self._settings = settings or get_settings().ingestion

    def create_gate(self) -> CommitGate:
        return CommitGate(
            statement_store=self._statement_store,
            transaction_history=self._transaction_history,
            validator=CommitValidator(self._settings.max_commit_transactions),
            audit_logger=self._audit_logger,
        )

    async def commit(
        self,
        file_ref: str,
        account_id: str,
        file_name: str,
        file_type: str,
        transactions: Sequence[CommitRow],
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> CommitResult:
        """
        Persist a reviewed batch.

        Not idempotent: committing the same batch twice imports it twice.
        """
        correlation_id = correlation_id or create_correlation_id()
        gate = self.create_gate()
        return await gate.commit(
            user_id=user_id,
            account_id=account_id,
            file_ref=file_ref,
            file_name=file_name,
            file_type=file_type,
            transactions=transactions,
            correlation_id=correlation_id,
        )

    async def list_statements(
        self,
        user_id: str,
        account_id: Optional[str] = None,
    ) -> list[StatementRecord]:
        """A user's statement records, newest first."""
        return await self._statement_store.list_records(user_id, account_id)


class StatementImportFlow:
    """
    One-shot import: preview, drop flagged duplicates, commit the rest.

    Used when the caller does not want a manual review step. Rows with no
    resolvable category are committed uncategorized.
    """

    def __init__(
        self,
        preview_flow: StatementPreviewFlow,
        commit_flow: StatementCommitFlow,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._preview_flow = preview_flow
        self._commit_flow = commit_flow
        self._audit_logger = audit_logger or AuditLogger()

    async def import_statement(
        self,
        file_ref: str,
        account_id: str,
        file_name: str,
        file_type: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> ImportResult:
        """
        Raises:
            AllDuplicatesError: Every usable row is already on the account
            (plus everything preview() and commit() can raise)
        """
        correlation_id = correlation_id or create_correlation_id()

        result = await self._preview_flow.preview(
            file_ref=file_ref,
            account_id=account_id,
            file_name=file_name,
            file_type=file_type,
            user_id=user_id,
            correlation_id=correlation_id,
        )

        fresh = [row for row in result.preview if not row.is_duplicate]
        if not fresh:
            error = AllDuplicatesError(len(result.preview))
            await self._audit_logger.log_content_rejected(
                file_ref=file_ref,
                reason=str(error),
                correlation_id=correlation_id,
            )
            raise error

        commit_result = await self._commit_flow.commit(
            file_ref=file_ref,
            account_id=account_id,
            file_name=file_name,
            file_type=file_type,
            transactions=[
                CommitTransactionInput(
                    date=row.date,
                    description=row.description,
                    amount=row.amount,
                    category_id=row.category_id,
                )
                for row in fresh
            ],
            user_id=user_id,
            correlation_id=correlation_id,
        )

        return ImportResult(
            success=commit_result.success,
            transaction_count=commit_result.transaction_count,
            statement_id=commit_result.statement_id,
            skipped_duplicates=result.duplicate_count,
            was_truncated=result.was_truncated,
        )


def create_app_components(
    persist_audit: bool = True,
) -> tuple[StatementPreviewFlow, StatementCommitFlow, StatementImportFlow, GoogleSheetsClient]:
    """
    Factory function to create all application components.

    Args:
        persist_audit: Whether to also write audit events to Google Sheets.
                       Set to False to keep audit events in the local log only.

    Returns:
        (preview_flow, commit_flow, import_flow, sheets_client)

    Raises:
        ConfigurationError: Storage or file store settings are missing
    """
    try:
        sheets_client = GoogleSheetsClient()
        file_store = CloudinaryFileStore()
    except ValidationError as e:
        raise ConfigurationError(f"Storage is not configured: {e}") from e

    settings = get_settings().ingestion
    audit_logger = AuditLogger(
        GoogleSheetsAuditStorage(sheets_client) if persist_audit else None
    )
    transaction_history = GoogleSheetsTransactionHistory(sheets_client)

    preview_flow = StatementPreviewFlow(
        content_extractor=ContentExtractor(
            file_store=file_store,
            pdf_extractor=PdfPlumberTextExtractor(),
            settings=settings,
        ),
        extraction_agent=TransactionExtractionAgent(
            completion_service=GeminiCompletionService(),
            settings=settings,
        ),
        category_catalog=GoogleSheetsCategoryCatalog(sheets_client),
        deduplicator=Deduplicator(transaction_history, settings),
        audit_logger=audit_logger,
    )

    commit_flow = StatementCommitFlow(
        statement_store=GoogleSheetsStatementStore(sheets_client),
        transaction_history=transaction_history,
        audit_logger=audit_logger,
        settings=settings,
    )

    import_flow = StatementImportFlow(
        preview_flow=preview_flow,
        commit_flow=commit_flow,
        audit_logger=audit_logger,
    )

    return preview_flow, commit_flow, import_flow, sheets_client
