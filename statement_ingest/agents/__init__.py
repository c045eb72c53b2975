"""AI Agents package."""

from statement_ingest.agents.extraction_agent import (
    TRANSACTIONS_SCHEMA,
    TransactionExtractionAgent,
    parse_transactions,
    strip_code_fences,
)

__all__ = [
    "TRANSACTIONS_SCHEMA",
    "TransactionExtractionAgent",
    "parse_transactions",
    "strip_code_fences",
]
