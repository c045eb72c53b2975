"""
Duplicate Detection

DESIGN DECISION: Duplicates are FLAGGED, never removed. The fingerprint
is deliberately coarse (date, cent amount, first 30 characters of the
lower-cased description) so that re-imports still match when a bank
appends reference numbers to the end of a description. Whether a flagged
row is really a duplicate is the reviewer's call.

Only already-committed transactions count. Two identical rows inside the
same statement (two coffees on the same day) are both kept unflagged.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Sequence, Union

import structlog

from statement_ingest.config import IngestionSettings, get_settings
from statement_ingest.models.transaction import ExistingTransaction, ValidatedTransaction
from statement_ingest.services.storage.interface import TransactionHistoryInterface


logger = structlog.get_logger(__name__)


FINGERPRINT_DESCRIPTION_CHARS = 30


def fingerprint(date: str, amount: Union[Decimal, float, int], description: str) -> str:
    """Order-independent similarity key for one transaction."""
    cents = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    prefix = description.lower()[:FINGERPRINT_DESCRIPTION_CHARS]
    return f"{date}|{cents:.2f}|{prefix}"


def fingerprint_set(transactions: Iterable[ExistingTransaction]) -> set[str]:
    return {fingerprint(t.date, t.amount, t.description) for t in transactions}


class Deduplicator:
    """
    Marks validated transactions that match recent account history.

    The history window is bounded (default 5000 rows) rather than the
    full account history.
    """

    def __init__(
        self,
        history: TransactionHistoryInterface,
        settings: Optional[IngestionSettings] = None,
    ):
        self._history = history
        self._settings = settings or get_settings().ingestion

    async def load_existing(self, account_id: str) -> set[str]:
        """Fingerprints of the account's most recent transactions."""
        existing = await self._history.list_transactions(
            account_id,
            limit=self._settings.duplicate_window,
        )
        logger.debug(
            "duplicate_window_loaded",
            account_id=account_id,
            existing_count=len(existing),
        )
        return fingerprint_set(existing)

    @staticmethod
    def flag(
        transactions: Sequence[ValidatedTransaction],
        existing: set[str],
    ) -> list[bool]:
        """One duplicate flag per transaction, in order."""
        return [
            fingerprint(t.date, t.amount, t.description) in existing
            for t in transactions
        ]

    async def find_duplicates(
        self,
        account_id: str,
        transactions: Sequence[ValidatedTransaction],
    ) -> list[bool]:
        existing = await self.load_existing(account_id)
        return self.flag(transactions, existing)
