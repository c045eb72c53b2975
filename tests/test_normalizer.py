"""
Tests for candidate normalization.

Dates and amounts either normalize to one well-defined value or are
rejected; nothing is guessed.
"""

import pytest
from decimal import Decimal

from statement_ingest.errors import AllTransactionsInvalidError, NoTransactionsFoundError
from statement_ingest.models.transaction import RawCandidateTransaction, RejectionReason
from statement_ingest.validation.normalizer import (
    TransactionNormalizer,
    clean_description,
    ensure_transactions_found,
    normalize_amount,
    normalize_category,
    normalize_date,
)


class TestNormalizeDate:
    """Tests for the ordered date rules."""

    def test_iso_date_accepted_as_is(self):
        assert normalize_date("2024-01-15") == "2024-01-15"

    def test_iso_date_must_be_calendar_valid(self):
        assert normalize_date("2023-02-29") is None
        assert normalize_date("2024-13-01") is None

    def test_leap_day(self):
        assert normalize_date("2024-02-29") == "2024-02-29"

    @pytest.mark.parametrize("value", ["31/12/2023", "31-12-2023", "31.12.2023"])
    def test_day_month_year_separators(self, value):
        assert normalize_date(value) == "2023-12-31"

    def test_day_first_when_unambiguous(self):
        assert normalize_date("15/01/2024") == "2024-01-15"
        assert normalize_date("5/13/2024") is not None

    def test_month_first_only_when_day_first_impossible(self):
        """Test that 01/15/2024 can only be January 15th."""
        assert normalize_date("01/15/2024") == "2024-01-15"
        assert normalize_date("12/31/2023") == "2023-12-31"

    @pytest.mark.parametrize("value", [
        "05/03/2024",
        "01/02/2024",
        "12/12/2023",
        "1.1.2024",
        "10-11-2024",
    ])
    def test_ambiguous_dates_rejected(self, value):
        """Test that day and month both <= 12 is never guessed."""
        assert normalize_date(value) is None

    def test_impossible_in_both_orders(self):
        assert normalize_date("31/31/2024") is None
        assert normalize_date("30/02/2024") is None

    def test_ambiguous_date_with_time_still_rejected(self):
        assert normalize_date("05/03/2024 10:30") is None

    @pytest.mark.parametrize("value,expected", [
        ("15 Jan 2024", "2024-01-15"),
        ("Jan 15, 2024", "2024-01-15"),
        ("15 January 2024", "2024-01-15"),
        ("2024-01-15T10:30:00", "2024-01-15"),
        ("2024/01/15", "2024-01-15"),
        ("20240115", "2024-01-15"),
        ("15/01/2024 09:15", "2024-01-15"),
    ])
    def test_generic_parsing(self, value, expected):
        assert normalize_date(value) == expected

    @pytest.mark.parametrize("value", [
        None,
        "",
        "   ",
        "yesterday",
        "15 Jan",
        "not a date 2024x",
        20240115,
        "2024/02/30",
        "March 2024",
        "Jan 2024",
    ])
    def test_unresolvable_dates(self, value):
        assert normalize_date(value) is None


class TestNormalizeAmount:
    """Tests for amount parsing and rounding."""

    @pytest.mark.parametrize("value,expected", [
        ("1.234,56", Decimal("1234.56")),
        ("1234,56", Decimal("1234.56")),
        ("1 234,56", Decimal("1234.56")),
        ("12,50", Decimal("12.50")),
        ("-12,5", Decimal("-12.50")),
        ("1.234.567,89", Decimal("1234567.89")),
    ])
    def test_european_format(self, value, expected):
        assert normalize_amount(value) == expected

    @pytest.mark.parametrize("value,expected", [
        ("1,234.56", Decimal("1234.56")),
        ("-45.10", Decimal("-45.10")),
        ("€ 12.30", Decimal("12.30")),
        ("-$7.99", Decimal("-7.99")),
        ("R$ 1.234,56", Decimal("1234.56")),
        ("£3", Decimal("3.00")),
        ("₹ 2,500.00", Decimal("2500.00")),
        ("(12.50)", Decimal("-12.50")),
        ("12,50-", Decimal("-12.50")),
    ])
    def test_string_formats(self, value, expected):
        assert normalize_amount(value) == expected

    def test_numbers_rounded_half_up(self):
        assert normalize_amount(12.345) == Decimal("12.35")
        assert normalize_amount(-0.125) == Decimal("-0.13")
        assert normalize_amount(7) == Decimal("7.00")

    def test_rounding_is_idempotent(self):
        once = normalize_amount("1234.565")
        assert once == Decimal("1234.57")
        assert normalize_amount(once) == once
        assert normalize_amount(str(once)) == once

    @pytest.mark.parametrize("value", [
        float("nan"),
        float("inf"),
        float("-inf"),
        "NaN",
        "Infinity",
        "abc",
        "",
        "  ",
        None,
        True,
        0,
        "0,00",
        0.004,
        ["12.50"],
        "1_000",
        "1_234,56",
    ])
    def test_rejected_amounts(self, value):
        assert normalize_amount(value) is None


class TestDescriptionAndCategory:
    """Tests for description cleaning and category defaults."""

    def test_whitespace_collapsed_and_trimmed(self):
        assert clean_description("  Coffee \t Shop\n ") == "Coffee Shop"

    def test_control_characters_removed(self):
        assert clean_description("ATM\x00 Withdrawal\x07") == "ATM Withdrawal"

    def test_latin1_accents_kept(self):
        assert clean_description("Café Açaí") == "Café Açaí"

    def test_characters_outside_latin1_removed(self):
        assert clean_description("Shop ☕ Lisboa") == "Shop  Lisboa"

    def test_too_short_rejected(self):
        assert clean_description("A") is None
        assert clean_description("   ") is None
        assert clean_description(None) is None
        assert clean_description(42) is None

    def test_long_description_truncated_not_rejected(self):
        cleaned = clean_description("x" * 250)
        assert cleaned == "x" * 200

    def test_category_defaults_to_other(self):
        assert normalize_category("") == "Other"
        assert normalize_category("   ") == "Other"
        assert normalize_category(None) == "Other"
        assert normalize_category("  Dining ") == "Dining"


class TestTransactionNormalizer:
    """Tests for batch normalization and summaries."""

    def test_coffee_shop_scenario(self):
        """Test the reference European row normalizes fully."""
        normalizer = TransactionNormalizer()
        accepted, summary = normalizer.normalize([
            RawCandidateTransaction(
                date="31/12/2023",
                description="Coffee Shop  ",
                amount="12,50",
                category="",
            ),
        ])

        assert summary.accepted == 1
        transaction = accepted[0]
        assert transaction.date == "2023-12-31"
        assert transaction.description == "Coffee Shop"
        assert transaction.amount == Decimal("12.50")
        assert transaction.category == "Other"

    def test_rejections_counted_by_first_failing_field(self):
        normalizer = TransactionNormalizer()
        accepted, summary = normalizer.normalize([
            RawCandidateTransaction(date="2024-01-15", description="Rent", amount=-900),
            RawCandidateTransaction(date="05/03/2024", description="Ambiguous", amount=10),
            RawCandidateTransaction(date="bad", description="x", amount="nope"),
            RawCandidateTransaction(date="2024-01-16", description="Zero", amount="0"),
            RawCandidateTransaction(date="2024-01-17", description="?", amount=5),
        ])

        assert len(accepted) == 1
        assert summary.received == 5
        assert summary.accepted == 1
        assert summary.rejected == 4
        assert summary.rejected_by_reason == {
            RejectionReason.INVALID_DATE: 2,
            RejectionReason.INVALID_AMOUNT: 1,
            RejectionReason.INVALID_DESCRIPTION: 1,
        }

    def test_nothing_found_error(self):
        _, summary = TransactionNormalizer().normalize([])
        with pytest.raises(NoTransactionsFoundError):
            ensure_transactions_found(summary)

    def test_all_invalid_error(self):
        _, summary = TransactionNormalizer().normalize([
            RawCandidateTransaction(date="never", description="Rent", amount=1),
        ])
        with pytest.raises(AllTransactionsInvalidError) as exc_info:
            ensure_transactions_found(summary)
        assert exc_info.value.found == 1

    def test_some_valid_passes(self):
        _, summary = TransactionNormalizer().normalize([
            RawCandidateTransaction(date="2024-01-15", description="Rent", amount=-900),
        ])
        ensure_transactions_found(summary)
