"""
Candidate Normalization

DESIGN DECISION: Normalization either produces a well-formed value or
rejects the candidate. It NEVER guesses:
- Ambiguous numeric dates (day and month both <= 12) are rejected, not
  read in either order
- Numeric-only dates never reach the generic parser, which would happily
  swap day and month
- Zero amounts are rejected, not kept as placeholders

Only the category has a default ("Other"); a row without a usable date,
amount or description is dropped and counted.
"""

import math
import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional, Sequence

import structlog
from dateutil import parser as date_parser

from statement_ingest.errors import AllTransactionsInvalidError, NoTransactionsFoundError
from statement_ingest.models.transaction import (
    OTHER_CATEGORY,
    RawCandidateTransaction,
    RejectionReason,
    ValidatedTransaction,
    ValidationSummary,
)


logger = structlog.get_logger(__name__)


CENT = Decimal("0.01")
MIN_DESCRIPTION_LENGTH = 2
MAX_DESCRIPTION_LENGTH = 200

_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_DAY_MONTH_YEAR = re.compile(r"^(\d{1,2})[./-](\d{1,2})[./-](\d{4})$")
_YEAR_MONTH_DAY = re.compile(r"^(\d{4})[./-](\d{1,2})[./-](\d{1,2})$")
_COMPACT_DATE = re.compile(r"^(\d{4})(\d{2})(\d{2})$")
_NUMERIC_DATE = re.compile(r"^[\d\s./:-]+$")
_TRAILING_TIME = re.compile(r"\s+\d{1,2}:\d{2}(:\d{2})?$")
_FOUR_DIGIT_YEAR = re.compile(r"\d{4}")

_CURRENCY_SYMBOLS = re.compile(r"R\$|[€$£¥₹]")
_EUROPEAN_AMOUNT = re.compile(r"^[+-]?(\d{1,3}(\.\d{3})+|\d+),\d{1,2}$")
_THOUSANDS_AMOUNT = re.compile(r"^[+-]?\d{1,3}(,\d{3})+(\.\d+)?$")

_WHITESPACE_RUN = re.compile(r"\s+")
_NON_PRINTABLE = re.compile(r"[^\x20-\x7E\xA0-\xFF]")

# Two dateutil defaults differing in every date part: a component the
# string leaves out shows up as a mismatch between the two parses
_PARSE_DEFAULTS = (datetime(1900, 1, 1), datetime(1904, 2, 2))


# =============================================================================
# DATES
# =============================================================================

def _calendar_date(year: int, month: int, day: int) -> Optional[str]:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def _from_day_month_year(first: int, second: int, year: int) -> Optional[str]:
    # Both parts could be a month: refuse to pick an order
    if first <= 12 and second <= 12:
        return None
    as_day_month = _calendar_date(year, second, first)
    if as_day_month:
        return as_day_month
    return _calendar_date(year, first, second)


def _numeric_fallback(value: str) -> Optional[str]:
    """Numeric-only strings: allow year-first forms, never guess an order."""
    value = _TRAILING_TIME.sub("", value).strip()

    match = _DAY_MONTH_YEAR.match(value)
    if match:
        first, second, year = (int(g) for g in match.groups())
        return _from_day_month_year(first, second, year)

    match = _YEAR_MONTH_DAY.match(value) or _COMPACT_DATE.match(value)
    if match:
        year, month, day = (int(g) for g in match.groups())
        return _calendar_date(year, month, day)

    return None


def normalize_date(value: Any) -> Optional[str]:
    """
    Normalize a candidate date to YYYY-MM-DD, or None if it cannot be resolved.

    Rules, first match wins:
    1. ISO YYYY-MM-DD that is a real calendar date
    2. D/M/YYYY (separators / . -) read day-first
    3. The same pattern read month-first, only when day-first is impossible;
       when both parts are <= 12 the date is ambiguous and rejected
    4. Generic parsing for ISO datetimes and textual forms ("15 Jan 2024")
    """
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not value:
        return None

    match = _ISO_DATE.match(value)
    if match:
        year, month, day = (int(g) for g in match.groups())
        return _calendar_date(year, month, day)

    match = _DAY_MONTH_YEAR.match(value)
    if match:
        first, second, year = (int(g) for g in match.groups())
        return _from_day_month_year(first, second, year)

    try:
        return datetime.fromisoformat(value).date().isoformat()
    except ValueError:
        pass

    if _NUMERIC_DATE.match(value):
        return _numeric_fallback(value)

    # Textual dates must name the year; dateutil would otherwise invent one
    if not _FOUR_DIGIT_YEAR.search(value):
        return None

    try:
        first, second = [
            date_parser.parse(value, dayfirst=True, default=default)
            for default in _PARSE_DEFAULTS
        ]
    except (ValueError, OverflowError, date_parser.ParserError):
        return None
    # "March 2024" names no day; refuse to default one
    if first.date() != second.date():
        return None
    return first.date().isoformat()


# =============================================================================
# AMOUNTS
# =============================================================================

def _parse_amount_string(value: str) -> Optional[Decimal]:
    text = _WHITESPACE_RUN.sub("", value)
    text = _CURRENCY_SYMBOLS.sub("", text)
    if not text or "_" in text:
        return None

    negative = False
    if text.startswith("(") and text.endswith(")"):
        negative = True
        text = text[1:-1]
    elif text.endswith("-") and len(text) > 1:
        # Trailing minus, common on European statements: "12,50-"
        negative = True
        text = text[:-1]

    if _EUROPEAN_AMOUNT.match(text):
        text = text.replace(".", "").replace(",", ".")
    elif _THOUSANDS_AMOUNT.match(text):
        text = text.replace(",", "")

    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None
    return -amount if negative else amount


def normalize_amount(value: Any) -> Optional[Decimal]:
    """
    Normalize a candidate amount to a nonzero Decimal with two places.

    Accepts numbers and strings such as "1.234,56", "1 234,56", "-€12.50",
    "1,234.56" or "(12.50)". Returns None for anything unusable.
    """
    if isinstance(value, bool) or value is None:
        return None

    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        amount = Decimal(str(value))
    elif isinstance(value, Decimal):
        amount = value
    elif isinstance(value, str):
        amount = _parse_amount_string(value)
        if amount is None:
            return None
    else:
        return None

    if not amount.is_finite():
        return None

    try:
        rounded = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return None

    if rounded == 0:
        return None
    return rounded


# =============================================================================
# DESCRIPTION / CATEGORY
# =============================================================================

def clean_description(value: Any) -> Optional[str]:
    """Collapse whitespace, drop control/binary noise, bound the length."""
    if not isinstance(value, str):
        return None
    cleaned = _WHITESPACE_RUN.sub(" ", value)
    cleaned = _NON_PRINTABLE.sub("", cleaned).strip()
    if len(cleaned) < MIN_DESCRIPTION_LENGTH:
        return None
    return cleaned[:MAX_DESCRIPTION_LENGTH]


def normalize_category(value: Any) -> str:
    if not isinstance(value, str):
        return OTHER_CATEGORY
    return value.strip() or OTHER_CATEGORY


# =============================================================================
# BATCH
# =============================================================================

class TransactionNormalizer:
    """
    Turns raw candidates into ValidatedTransactions plus aggregate counts.

    Stateless; safe to share between invocations.
    """

    def normalize_one(
        self,
        candidate: RawCandidateTransaction,
    ) -> tuple[Optional[ValidatedTransaction], Optional[RejectionReason]]:
        """Normalize one candidate. Returns (transaction, None) or (None, reason)."""
        normalized_date = normalize_date(candidate.date)
        if normalized_date is None:
            return None, RejectionReason.INVALID_DATE

        amount = normalize_amount(candidate.amount)
        if amount is None:
            return None, RejectionReason.INVALID_AMOUNT

        description = clean_description(candidate.description)
        if description is None:
            return None, RejectionReason.INVALID_DESCRIPTION

        return ValidatedTransaction(
            date=normalized_date,
            description=description,
            amount=amount,
            category=normalize_category(candidate.category),
        ), None

    def normalize(
        self,
        candidates: Sequence[RawCandidateTransaction],
    ) -> tuple[list[ValidatedTransaction], ValidationSummary]:
        accepted = []
        rejected_by_reason: dict[RejectionReason, int] = {}

        for candidate in candidates:
            transaction, reason = self.normalize_one(candidate)
            if transaction is None:
                rejected_by_reason[reason] = rejected_by_reason.get(reason, 0) + 1
            else:
                accepted.append(transaction)

        summary = ValidationSummary(
            received=len(candidates),
            accepted=len(accepted),
            rejected=len(candidates) - len(accepted),
            rejected_by_reason=rejected_by_reason,
        )
        logger.info(
            "candidates_normalized",
            received=summary.received,
            accepted=summary.accepted,
            rejected=summary.rejected,
        )
        return accepted, summary


def ensure_transactions_found(summary: ValidationSummary) -> None:
    """
    Raise if normalization left nothing to review.

    Distinguishes "the statement had no transactions" from
    "transactions were found but none were usable".
    """
    if summary.nothing_found:
        raise NoTransactionsFoundError()
    if summary.all_invalid:
        raise AllTransactionsInvalidError(summary.received)
