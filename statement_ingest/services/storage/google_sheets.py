"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the initial storage backend because:
1. Households can view their imported transactions directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for household use)
- No transactions (we handle this with careful ordering: statement record
  first, then one append_rows call for the whole batch)
- Limited query capabilities (we filter in Python)

gspread is synchronous, so every sheet call runs in a worker thread to keep
the event loop free. Reads are retried; writes are not, because a retried
append that actually reached the sheet would duplicate rows.
"""

import asyncio
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, Sequence
from uuid import UUID, uuid4

import gspread
from google.oauth2.service_account import Credentials
from pydantic import ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential

from statement_ingest.config import get_settings
from statement_ingest.models.audit import AuditEvent
from statement_ingest.models.transaction import (
    Category,
    ExistingTransaction,
    NewTransaction,
    StatementRecord,
)
from statement_ingest.services.storage.interface import (
    AuditStorageInterface,
    CategoryCatalogInterface,
    ConnectionError,
    StatementStoreInterface,
    StorageError,
    TransactionHistoryInterface,
)


CATEGORY_COLUMNS = [
    "id",
    "owner_id",
    "name",
]

TRANSACTION_COLUMNS = [
    "id",
    "account_id",
    "date",
    "description",
    "amount",
    "category_id",
    "notes",
    "created_at",
]

STATEMENT_COLUMNS = [
    "id",
    "user_id",
    "account_id",
    "file_name",
    "file_ref",
    "file_type",
    "transaction_count",
    "processed",
    "created_at",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

_MALFORMED_ROW_ERRORS = (ValueError, InvalidOperation, ValidationError, IndexError)


def _cell(row: list, index: int, default: str = "") -> str:
    """Read a cell, tolerating short rows."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @property
    def settings(self):
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}") from e

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(
        self,
        title: str,
        columns: list[str],
        rows: int = 1000,
    ) -> gspread.Worksheet:
        """Get or create a worksheet, writing the header row on creation."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def read_rows(self, title: str, columns: list[str]) -> list[list[str]]:
        """Read every data row (header excluded) of a worksheet."""
        sheet = self.get_worksheet(title, columns)
        return sheet.get_all_values()[1:]

    def append_rows(self, title: str, columns: list[str], rows: list[list]) -> None:
        """Append rows in a single API call. Not retried."""
        sheet = self.get_worksheet(title, columns)
        sheet.append_rows(rows, value_input_option="RAW")


class GoogleSheetsCategoryCatalog(CategoryCatalogInterface):
    """
    Categories stored one per row.

    Rows with an empty owner_id are shared defaults visible to everyone.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    async def list_categories(self, owner_id: str) -> list[Category]:
        title = self._client.settings.categories_sheet_name
        try:
            rows = await asyncio.to_thread(self._client.read_rows, title, CATEGORY_COLUMNS)
        except Exception as e:
            raise StorageError(f"Failed to list categories: {e}") from e

        categories = []
        for row in rows:
            owner = _cell(row, 1)
            if owner and owner != owner_id:
                continue
            try:
                categories.append(Category(id=_cell(row, 0), name=_cell(row, 2)))
            except ValidationError:
                continue  # Skip malformed rows
        return categories


class GoogleSheetsTransactionHistory(TransactionHistoryInterface):
    """
    Committed transactions, one per row.

    Amounts are stored as plain decimal strings ("-12.50").
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _transaction_to_row(self, account_id: str, transaction: NewTransaction) -> list:
        return [
            str(uuid4()),
            account_id,
            transaction.date,
            transaction.description,
            str(transaction.amount),
            transaction.category_id or "",
            transaction.notes,
            datetime.utcnow().isoformat(),
        ]

    async def list_transactions(
        self,
        account_id: str,
        limit: int,
    ) -> list[ExistingTransaction]:
        title = self._client.settings.transactions_sheet_name
        try:
            rows = await asyncio.to_thread(self._client.read_rows, title, TRANSACTION_COLUMNS)
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}") from e

        matching = []
        for row in rows:
            if _cell(row, 1) != account_id:
                continue
            try:
                transaction = ExistingTransaction(
                    date=_cell(row, 2),
                    amount=Decimal(_cell(row, 4)),
                    description=_cell(row, 3),
                )
            except _MALFORMED_ROW_ERRORS:
                continue  # Skip malformed rows
            matching.append((transaction, _cell(row, 7)))

        # Newest first: by transaction date, then insertion time
        matching.sort(key=lambda pair: (pair[0].date, pair[1]), reverse=True)
        return [transaction for transaction, _ in matching[:limit]]

    async def bulk_insert(
        self,
        account_id: str,
        transactions: Sequence[NewTransaction],
    ) -> None:
        title = self._client.settings.transactions_sheet_name
        rows = [self._transaction_to_row(account_id, t) for t in transactions]
        try:
            await asyncio.to_thread(self._client.append_rows, title, TRANSACTION_COLUMNS, rows)
        except Exception as e:
            raise StorageError(f"Failed to insert transactions: {e}") from e


class GoogleSheetsStatementStore(StatementStoreInterface):
    """
    Statement records, one per row.

    Append-only: there is no update or delete.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _record_to_row(self, record: StatementRecord) -> list:
        return [
            str(record.id),
            record.user_id,
            record.account_id,
            record.file_name,
            record.file_ref,
            record.file_type,
            str(record.transaction_count),
            str(record.processed),
            record.created_at.isoformat(),
        ]

    def _row_to_record(self, row: list) -> StatementRecord:
        return StatementRecord(
            id=UUID(_cell(row, 0)),
            user_id=_cell(row, 1),
            account_id=_cell(row, 2),
            file_name=_cell(row, 3),
            file_ref=_cell(row, 4),
            file_type=_cell(row, 5),
            transaction_count=int(_cell(row, 6, "0")),
            processed=_cell(row, 7).lower() == "true",
            created_at=datetime.fromisoformat(_cell(row, 8)),
        )

    async def create_record(self, record: StatementRecord) -> StatementRecord:
        title = self._client.settings.statements_sheet_name
        try:
            await asyncio.to_thread(
                self._client.append_rows,
                title,
                STATEMENT_COLUMNS,
                [self._record_to_row(record)],
            )
        except Exception as e:
            raise StorageError(f"Failed to create statement record: {e}") from e
        return record

    async def list_records(
        self,
        user_id: str,
        account_id: Optional[str] = None,
    ) -> list[StatementRecord]:
        title = self._client.settings.statements_sheet_name
        try:
            rows = await asyncio.to_thread(self._client.read_rows, title, STATEMENT_COLUMNS)
        except Exception as e:
            raise StorageError(f"Failed to list statement records: {e}") from e

        records = []
        for row in rows:
            if _cell(row, 1) != user_id:
                continue
            if account_id and _cell(row, 2) != account_id:
                continue
            try:
                records.append(self._row_to_record(row))
            except _MALFORMED_ROW_ERRORS:
                continue

        records.sort(key=lambda r: r.created_at, reverse=True)
        return records


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        title = self._client.settings.audit_sheet_name
        try:
            await asyncio.to_thread(
                self._client.append_rows,
                title,
                AUDIT_COLUMNS,
                [event.to_sheets_row()],
            )
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}") from e
        return True
