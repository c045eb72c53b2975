"""
Core Data Models for Statement Ingest

These models define the schemas for all data flowing through the
statement ingestion pipeline. They are designed to:
1. Separate untrusted model output from validated rows
2. Provide clear validation error messages
3. Be serializable for storage and logging
4. Support the audit trail

DESIGN DECISION: The raw candidate model is deliberately loose. The model
output is untrusted, and deciding what a malformed date or amount means is
the normalizer's job, not pydantic's coercion rules. Everything downstream
of the normalizer is strict.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


OTHER_CATEGORY = "Other"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class FileKind(str, Enum):
    """
    How a statement file is interpreted.

    Text files and PDFs go to the completion service as text,
    images go as vision attachments.
    """
    TEXT = "text"
    IMAGE = "image"
    PDF = "pdf"


class CommitState(str, Enum):
    """
    Commit gate lifecycle.

    RECEIVED -> VALIDATED -> PERSISTED, or RECEIVED -> REJECTED.
    PERSISTED and REJECTED are terminal.
    """
    RECEIVED = "received"
    VALIDATED = "validated"
    PERSISTED = "persisted"
    REJECTED = "rejected"


class RejectionReason(str, Enum):
    """Why a raw candidate was dropped by the normalizer."""
    INVALID_DATE = "invalid_date"
    INVALID_AMOUNT = "invalid_amount"
    INVALID_DESCRIPTION = "invalid_description"


# =============================================================================
# CONTENT MODELS (what the completion service sees)
# =============================================================================

class EncodedImage(BaseModel):
    """A statement page image, base64-encoded and tagged with its MIME type."""

    data: str = Field(
        ...,
        min_length=1,
        description="Base64-encoded image bytes"
    )
    mime_type: str = Field(
        ...,
        pattern="^image/(png|jpeg)$",
        description="MIME type of the encoded image"
    )


class ExtractedContent(BaseModel):
    """
    Interpretable content produced from an uploaded statement file.

    Exactly one of ``text`` or ``images`` is populated.
    """

    kind: FileKind
    source_format: str = Field(
        ...,
        description="Lower-cased file extension the content came from"
    )
    text: Optional[str] = None
    images: list[EncodedImage] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_payload(self) -> 'ExtractedContent':
        """Text kinds carry text, image kinds carry images."""
        if self.kind == FileKind.IMAGE:
            if not self.images or self.text is not None:
                raise ValueError("Image content must carry images and no text")
        elif self.text is None or self.images:
            raise ValueError("Text content must carry text and no images")
        return self

    @property
    def is_vision(self) -> bool:
        return self.kind == FileKind.IMAGE


# =============================================================================
# TRANSACTION MODELS
# =============================================================================

class RawCandidateTransaction(BaseModel):
    """
    A transaction as returned by the completion service.

    CRITICAL: This is UNTRUSTED data. Fields keep whatever type the
    model emitted (amounts may be strings like "1.234,56").
    """
    model_config = ConfigDict(extra="ignore")

    date: Optional[Any] = None
    description: Optional[Any] = None
    amount: Optional[Any] = None
    category: Optional[Any] = None


class ValidatedTransaction(BaseModel):
    """
    A candidate that survived normalization.

    Every field is present and well-formed; candidates that cannot be
    normalized are dropped, never defaulted (except category).
    """

    date: str = Field(
        ...,
        pattern=r"^\d{4}-\d{2}-\d{2}$",
        description="Transaction date (YYYY-MM-DD)"
    )
    description: str = Field(
        ...,
        min_length=2,
        max_length=200,
        description="Cleaned merchant/payee description"
    )
    amount: Decimal = Field(
        ...,
        decimal_places=2,
        description="Signed amount; debits negative, credits positive"
    )
    category: str = Field(
        default=OTHER_CATEGORY,
        min_length=1,
        description="Category label as emitted by the model"
    )

    @field_validator('amount')
    @classmethod
    def validate_nonzero(cls, v: Decimal) -> Decimal:
        if v == 0:
            raise ValueError("Amount must be nonzero")
        return v


class PreviewTransaction(ValidatedTransaction):
    """
    A validated transaction annotated for human review.

    Never persisted itself; the reviewer edits and approves rows,
    which come back through the commit gate. ``category`` keeps the
    label the model chose; ``resolved_category`` is the catalog name it
    maps to.
    """

    resolved_category: str = Field(
        default=OTHER_CATEGORY,
        description="Catalog category name the label resolved to"
    )
    category_id: Optional[str] = Field(
        default=None,
        description="Resolved category id (None means uncategorized)"
    )
    is_duplicate: bool = Field(
        default=False,
        description="Matches a transaction already on this account"
    )


class CommitTransactionInput(BaseModel):
    """
    A row submitted for commit.

    Loosely typed on purpose: the commit gate performs the strict checks
    itself so it can report every problem in the batch at once.
    """

    date: str
    description: str
    amount: Union[Decimal, float, int]
    category_id: Optional[str] = None

    @field_validator('amount', mode='before')
    @classmethod
    def reject_boolean_amount(cls, v: Any) -> Any:
        # Lax mode would read True as 1
        if isinstance(v, bool):
            raise ValueError("Amount must be a number, not a boolean")
        return v


class NewTransaction(BaseModel):
    """A commit-ready transaction handed to the transaction store."""

    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$")
    description: str = Field(..., min_length=2, max_length=200)
    amount: Decimal
    category_id: Optional[str] = None
    notes: str = Field(
        ...,
        max_length=300,
        description="Provenance, e.g. 'Imported from march.csv'"
    )


class ExistingTransaction(BaseModel):
    """A previously committed transaction, as read for duplicate detection."""

    date: str
    amount: Decimal
    description: str


class Category(BaseModel):
    """A category from the caller's catalog."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)


# =============================================================================
# STATEMENT RECORD (append-only audit row)
# =============================================================================

class StatementRecord(BaseModel):
    """
    Metadata for one committed statement.

    Created once per successful commit validation, before the bulk insert.
    Never updated afterwards.
    """

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique statement ID"
    )
    user_id: str
    account_id: str
    file_name: str = Field(..., min_length=1)
    file_ref: str = Field(..., min_length=1, description="Storage reference")
    file_type: str = Field(..., description="Declared file type")
    transaction_count: int = Field(..., ge=0)
    processed: bool = True
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the statement was committed (UTC)"
    )


# =============================================================================
# PIPELINE RESULTS
# =============================================================================

class ExtractionResult(BaseModel):
    """Output of the extraction client."""

    candidates: list[RawCandidateTransaction] = Field(default_factory=list)
    was_truncated: bool = Field(
        default=False,
        description="Input text was cut to fit the completion service"
    )


class ValidationSummary(BaseModel):
    """
    Aggregate outcome of normalizing a batch of candidates.

    Counts only - never raw statement content.
    """

    received: int = Field(default=0, ge=0)
    accepted: int = Field(default=0, ge=0)
    rejected: int = Field(default=0, ge=0)
    rejected_by_reason: dict[RejectionReason, int] = Field(default_factory=dict)

    @property
    def nothing_found(self) -> bool:
        """The extraction step returned no candidates at all."""
        return self.received == 0

    @property
    def all_invalid(self) -> bool:
        """Candidates were found but none survived validation."""
        return self.received > 0 and self.accepted == 0


class PreviewResult(BaseModel):
    """Review payload returned by the preview flow. Nothing is persisted."""

    file_ref: str
    preview: list[PreviewTransaction]
    available_categories: list[Category]
    was_truncated: bool = False
    validation: ValidationSummary
    duplicate_count: int = Field(default=0, ge=0)


class CommitResult(BaseModel):
    """Outcome of a successful commit."""

    success: bool
    transaction_count: int = Field(..., ge=0)
    statement_id: UUID


class ImportResult(CommitResult):
    """Outcome of a one-shot import (preview + automatic commit)."""

    skipped_duplicates: int = Field(default=0, ge=0)
    was_truncated: bool = False
