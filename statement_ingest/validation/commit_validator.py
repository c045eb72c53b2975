"""
Strict Commit Validation

DESIGN DECISION: Nothing from the preview is trusted at commit time. The
reviewer may have edited any row, so every submitted row is checked again
with rules that are stricter than normalization (no reformatting at all):
- date must already be exactly YYYY-MM-DD and a real calendar date
- description must have at least 2 characters after trimming
- amount must be finite and nonzero at cent precision

The whole batch is checked before the verdict, so the reviewer sees every
problem at once. One problem rejects the batch.
"""

import re
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from statement_ingest.errors import CommitValidationError
from statement_ingest.models.transaction import CommitTransactionInput, NewTransaction
from statement_ingest.validation.normalizer import (
    CENT,
    MAX_DESCRIPTION_LENGTH,
    MIN_DESCRIPTION_LENGTH,
)


_STRICT_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

CommitRow = Union[CommitTransactionInput, Mapping[str, Any]]
Issue = tuple[Optional[int], str]


def _is_calendar_date(value: str) -> bool:
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def _strict_amount(value: Any) -> Optional[Decimal]:
    if isinstance(value, bool):
        return None
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    try:
        rounded = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return None
    return rounded if rounded != 0 else None


class CommitValidator:
    """All-or-nothing validation of a reviewed batch."""

    def __init__(self, max_transactions: int = 500):
        self._max_transactions = max_transactions

    @property
    def max_transactions(self) -> int:
        return self._max_transactions

    def _coerce(self, index: int, row: CommitRow, issues: list[Issue]) -> Optional[CommitTransactionInput]:
        if isinstance(row, CommitTransactionInput):
            return row
        try:
            return CommitTransactionInput.model_validate(row)
        except ValidationError as e:
            fields = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
            issues.append((index, f"missing or malformed field(s): {', '.join(fields) or 'row'}"))
            return None

    def _check_row(
        self,
        index: int,
        row: CommitTransactionInput,
        notes: str,
        issues: list[Issue],
    ) -> Optional[NewTransaction]:
        row_issues = []

        if not _STRICT_ISO_DATE.match(row.date) or not _is_calendar_date(row.date):
            row_issues.append("date must be a valid YYYY-MM-DD date")

        description = row.description.strip()
        if len(description) < MIN_DESCRIPTION_LENGTH:
            row_issues.append(
                f"description must have at least {MIN_DESCRIPTION_LENGTH} characters"
            )
        elif len(description) > MAX_DESCRIPTION_LENGTH:
            row_issues.append(
                f"description must be at most {MAX_DESCRIPTION_LENGTH} characters"
            )

        amount = _strict_amount(row.amount)
        if amount is None:
            row_issues.append("amount must be a finite, nonzero number")

        if row_issues:
            issues.extend((index, message) for message in row_issues)
            return None

        return NewTransaction(
            date=row.date,
            description=description,
            amount=amount,
            category_id=row.category_id or None,
            notes=notes,
        )

    def validate(self, transactions: Sequence[CommitRow], notes: str) -> list[NewTransaction]:
        """
        Validate a batch and build commit-ready rows.

        Raises:
            CommitValidationError: The batch is empty, too large, or any row
                is invalid. Issues are listed per row index.
        """
        if not transactions:
            raise CommitValidationError(
                "No transactions to import.",
                [(None, "batch is empty")],
            )
        if len(transactions) > self._max_transactions:
            raise CommitValidationError(
                f"Too many transactions: {len(transactions)}. "
                f"A statement can import at most {self._max_transactions} at once.",
                [(None, f"batch exceeds {self._max_transactions} transactions")],
            )

        issues: list[Issue] = []
        prepared: list[NewTransaction] = []
        for index, raw_row in enumerate(transactions):
            row = self._coerce(index, raw_row, issues)
            if row is None:
                continue
            transaction = self._check_row(index, row, notes, issues)
            if transaction is not None:
                prepared.append(transaction)

        if issues:
            first_index, first_message = issues[0]
            bad_rows = len({index for index, _ in issues})
            raise CommitValidationError(
                f"{bad_rows} transaction(s) are invalid; nothing was imported. "
                f"Row {first_index + 1}: {first_message}.",
                issues,
            )
        return prepared
