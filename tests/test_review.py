"""
Tests for duplicate flagging and category resolution.
"""

import asyncio
from decimal import Decimal

from statement_ingest.config import IngestionSettings
from statement_ingest.models.transaction import (
    Category,
    ExistingTransaction,
    ValidatedTransaction,
)
from statement_ingest.review import CategoryResolver, Deduplicator, fingerprint
from tests.helpers.fakes import FakeTransactionHistory


def validated(date="2024-01-15", description="Coffee Shop", amount="-4.50", category="Dining"):
    return ValidatedTransaction(
        date=date,
        description=description,
        amount=Decimal(amount),
        category=category,
    )


class TestFingerprint:
    """Tests for the duplicate fingerprint."""

    def test_format(self):
        assert fingerprint("2024-01-15", Decimal("-4.5"), "Coffee SHOP") == "2024-01-15|-4.50|coffee shop"

    def test_amount_representation_does_not_matter(self):
        assert fingerprint("2024-01-15", -4.5, "x") == fingerprint("2024-01-15", Decimal("-4.50"), "x")

    def test_trailing_reference_ignored(self):
        """Test that descriptions differing after 30 characters match."""
        first = "CARD PAYMENT SUPERMERCADO CONT INV-000123"
        second = "CARD PAYMENT SUPERMERCADO CONT INV-000999"
        assert fingerprint("2024-01-15", Decimal("-20"), first) == fingerprint(
            "2024-01-15", Decimal("-20"), second
        )

    def test_different_amounts_differ(self):
        assert fingerprint("2024-01-15", Decimal("-20"), "x") != fingerprint(
            "2024-01-15", Decimal("-21"), "x"
        )


class TestDeduplicator:
    """Tests for duplicate flagging against account history."""

    def test_flags_match_with_different_invoice_suffix(self):
        history = FakeTransactionHistory(existing=[
            ExistingTransaction(
                date="2024-01-15",
                amount=Decimal("-20.00"),
                description="CARD PAYMENT SUPERMERCADO CONT INV-000123",
            ),
        ])
        deduplicator = Deduplicator(history, IngestionSettings())
        rows = [
            validated(description="CARD PAYMENT SUPERMERCADO CONT INV-000999", amount="-20.00"),
            validated(description="Bakery", amount="-3.10"),
        ]

        flags = asyncio.run(deduplicator.find_duplicates("acct-1", rows))

        assert flags == [True, False]

    def test_uses_configured_window(self):
        history = FakeTransactionHistory()
        deduplicator = Deduplicator(history, IngestionSettings(duplicate_window=1234))

        asyncio.run(deduplicator.find_duplicates("acct-1", [validated()]))

        assert history.list_limits == [1234]

    def test_identical_rows_in_one_statement_not_flagged(self):
        deduplicator = Deduplicator(FakeTransactionHistory(), IngestionSettings())
        flags = asyncio.run(deduplicator.find_duplicates("acct-1", [validated(), validated()]))
        assert flags == [False, False]

    def test_flagging_is_order_independent(self):
        existing = {fingerprint("2024-01-15", Decimal("-4.50"), "Coffee Shop")}
        rows = [validated(description="Bakery"), validated()]
        assert Deduplicator.flag(rows, existing) == [False, True]
        assert Deduplicator.flag(list(reversed(rows)), existing) == [True, False]


class TestCategoryResolver:
    """Tests for mapping model labels onto the caller's catalog."""

    CATALOG = [
        Category(id="c-groc", name="Groceries"),
        Category(id="c-trans", name="Transport"),
        Category(id="c-other", name="Other"),
    ]

    def test_exact_match_case_insensitive(self):
        resolver = CategoryResolver(self.CATALOG)
        assert resolver.resolve("  groceries ") == ("Groceries", "c-groc")

    def test_alias_match(self):
        resolver = CategoryResolver(self.CATALOG)
        assert resolver.resolve("Uber") == ("Transport", "c-trans")
        assert resolver.resolve("supermarket") == ("Groceries", "c-groc")

    def test_alias_target_missing_falls_back_to_other(self):
        resolver = CategoryResolver(self.CATALOG)
        assert resolver.resolve("netflix") == ("Other", "c-other")

    def test_unknown_label_falls_back_to_other(self):
        resolver = CategoryResolver(self.CATALOG)
        assert resolver.resolve("Pets") == ("Other", "c-other")

    def test_degraded_without_other_category(self):
        resolver = CategoryResolver([Category(id="c-groc", name="Groceries")])
        assert resolver.resolve("Pets") == ("Other", None)

    def test_empty_catalog(self):
        resolver = CategoryResolver([])
        assert resolver.resolve("Groceries") == ("Other", None)
        assert resolver.category_names == []
