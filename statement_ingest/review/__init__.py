"""Preview review helpers: duplicate flags and category resolution."""

from statement_ingest.review.category_resolver import CATEGORY_ALIASES, CategoryResolver
from statement_ingest.review.deduplicator import Deduplicator, fingerprint, fingerprint_set

__all__ = [
    "CATEGORY_ALIASES",
    "CategoryResolver",
    "Deduplicator",
    "fingerprint",
    "fingerprint_set",
]
