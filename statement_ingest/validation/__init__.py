"""Normalization and commit validation package."""

from statement_ingest.validation.commit_validator import CommitValidator
from statement_ingest.validation.normalizer import (
    TransactionNormalizer,
    clean_description,
    ensure_transactions_found,
    normalize_amount,
    normalize_category,
    normalize_date,
)

__all__ = [
    "CommitValidator",
    "TransactionNormalizer",
    "clean_description",
    "ensure_transactions_found",
    "normalize_amount",
    "normalize_category",
    "normalize_date",
]
