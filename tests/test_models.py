"""
Tests for Statement Ingest

Test strategy:
1. Unit tests for individual components (models, normalizer, review, gate)
2. Integration tests for flows (with in-memory fakes for external services)
3. No real API calls in tests (use fakes)
"""

import pytest
from decimal import Decimal
from uuid import uuid4

from statement_ingest.models.transaction import (
    OTHER_CATEGORY,
    Category,
    EncodedImage,
    ExtractedContent,
    FileKind,
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


class TestTransactionModels:
    """Tests for transaction-related Pydantic models."""

    def test_raw_candidate_keeps_untyped_values(self):
        """Test that raw candidates keep whatever the model emitted."""
        raw = RawCandidateTransaction(date="31/12/2023", amount="12,50", balance="99")
        assert raw.amount == "12,50"
        assert raw.description is None

    def test_validated_transaction_creation(self):
        """Test ValidatedTransaction model creation."""
        transaction = ValidatedTransaction(
            date="2024-01-15",
            description="Coffee Shop",
            amount=Decimal("-4.50"),
        )
        assert transaction.category == OTHER_CATEGORY
        assert transaction.amount == Decimal("-4.50")

    def test_validated_transaction_rejects_zero_amount(self):
        """Test that zero amounts are rejected."""
        with pytest.raises(ValueError, match="nonzero"):
            ValidatedTransaction(
                date="2024-01-15",
                description="Coffee Shop",
                amount=Decimal("0.00"),
            )

    def test_validated_transaction_rejects_non_iso_date(self):
        """Test that dates must already be normalized."""
        with pytest.raises(ValueError):
            ValidatedTransaction(
                date="15/01/2024",
                description="Coffee Shop",
                amount=Decimal("1.00"),
            )

    def test_preview_transaction_defaults(self):
        """Test PreviewTransaction defaults to uncategorized, not duplicate."""
        row = PreviewTransaction(
            date="2024-01-15",
            description="Coffee Shop",
            amount=Decimal("-4.50"),
            category="coffee",
        )
        assert row.category == "coffee"
        assert row.resolved_category == OTHER_CATEGORY
        assert row.category_id is None
        assert row.is_duplicate is False

    def test_category_strips_whitespace(self):
        """Test that whitespace is stripped from category names."""
        category = Category(id="c1", name="  Groceries  ")
        assert category.name == "Groceries"

    def test_statement_record_defaults(self):
        """Test StatementRecord gets an id, timestamp and processed flag."""
        record = StatementRecord(
            user_id="u1",
            account_id="a1",
            file_name="march.csv",
            file_ref="statements/march",
            file_type="csv",
            transaction_count=3,
        )
        assert record.id is not None
        assert record.processed is True
        assert record.created_at is not None


class TestExtractedContent:
    """Tests for ExtractedContent payload rules."""

    def test_text_content(self):
        content = ExtractedContent(kind=FileKind.TEXT, source_format="csv", text="a,b")
        assert content.is_vision is False

    def test_image_content(self):
        content = ExtractedContent(
            kind=FileKind.IMAGE,
            source_format="png",
            images=[EncodedImage(data="aGVsbG8=", mime_type="image/png")],
        )
        assert content.is_vision is True

    def test_image_content_requires_images(self):
        """Test that image content without images is rejected."""
        with pytest.raises(ValueError):
            ExtractedContent(kind=FileKind.IMAGE, source_format="png", text="oops")

    def test_text_content_rejects_images(self):
        with pytest.raises(ValueError):
            ExtractedContent(
                kind=FileKind.PDF,
                source_format="pdf",
                text="x",
                images=[EncodedImage(data="aGVsbG8=", mime_type="image/png")],
            )

    def test_encoded_image_mime_type_restricted(self):
        with pytest.raises(ValueError):
            EncodedImage(data="aGVsbG8=", mime_type="image/bmp")


class TestValidationSummary:
    """Tests for ValidationSummary model."""

    def test_nothing_found(self):
        summary = ValidationSummary()
        assert summary.nothing_found is True
        assert summary.all_invalid is False

    def test_all_invalid(self):
        summary = ValidationSummary(
            received=2,
            accepted=0,
            rejected=2,
            rejected_by_reason={RejectionReason.INVALID_DATE: 2},
        )
        assert summary.nothing_found is False
        assert summary.all_invalid is True


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.STATEMENT_RECEIVED,
            description="Statement received",
        )
        assert event.event_type == AuditEventType.STATEMENT_RECEIVED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTIONS_COMMITTED,
            description="Committed",
            details={"account_id": "a1", "transaction_count": 3},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "transactions_committed"
        assert log_dict["details"]["transaction_count"] == 3

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.COMMIT_REJECTED,
            description="Commit rejected",
            is_user_action=True,
        )
        row = event.to_sheets_row()
        assert len(row) == 11  # Expected number of columns
        assert row[2] == "commit_rejected"  # event_type
        assert row[10] == "True"  # is_user_action

    def test_audit_event_builder_statement_received(self):
        """Test AuditEventBuilder.statement_received."""
        correlation_id = uuid4()

        event = AuditEventBuilder.statement_received(
            file_ref="statements/march",
            file_name="march.csv",
            file_type="csv",
            account_id="a1",
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.STATEMENT_RECEIVED
        assert event.entity_id == "statements/march"
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True

    def test_audit_event_builder_persistence_failed(self):
        """Test that a failed bulk insert names the orphaned record."""
        statement_id = uuid4()

        event = AuditEventBuilder.persistence_failed(
            statement_id=statement_id,
            account_id="a1",
            error_message="sheet unavailable",
            correlation_id=uuid4(),
        )

        assert event.severity == AuditSeverity.CRITICAL
        assert event.entity_id == str(statement_id)
        assert event.details["orphaned_statement_id"] == str(statement_id)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
