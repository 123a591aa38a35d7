"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the hosted storage backend because:
1. Group members can view the ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (a friend group is fine)
- No transactions: the version check and the row write are two API calls,
  so the check narrows the lost-update window rather than closing it
- Limited query capabilities (we filter and sort in Python)

The implementation follows the abstract interface, so we can swap
to PostgreSQL/SQLite later without changing ledger logic.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from splitledger.config import GoogleSheetsSettings, get_settings
from splitledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from splitledger.models.ledger import (
    ParticipantShare,
    SplitExpense,
    SplitMethod,
    SplitUser,
)
from splitledger.services.storage.interface import (
    AuditStorageInterface,
    ConcurrentModificationError,
    ConnectionError,
    DuplicateError,
    ExpenseStorageInterface,
    NotFoundError,
    StorageError,
    UserStorageInterface,
    sort_newest_first,
)


logger = structlog.get_logger(__name__)


USER_COLUMNS = [
    "id",
    "name",
    "created_at",
    "updated_at",
]

EXPENSE_COLUMNS = [
    "id",
    "title",
    "date",
    "total_amount",
    "paid_by_id",
    "split_method",
    "participants_json",
    "is_fully_settled",
    "version",
    "created_at",
    "updated_at",
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
]


def _column_letter(count: int) -> str:
    """Spreadsheet letter of the last column for a row of `count` cells."""
    letters = ""
    while count:
        count, rem = divmod(count - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def _safe_getter(row: list):
    """Tolerate short rows (Sheets trims trailing empty cells)."""
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default
    return safe_get


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

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
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

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

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def append_row(self, sheet: gspread.Worksheet, row: list) -> None:
        """Append one row, retrying transient API failures."""
        sheet.append_row(row, value_input_option="RAW")

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_users_sheet(self) -> gspread.Worksheet:
        """Get or create the users worksheet."""
        return self._get_or_create_sheet(
            self._settings.users_sheet_name, USER_COLUMNS, rows=200
        )

    def get_expenses_sheet(self) -> gspread.Worksheet:
        """Get or create the expenses worksheet."""
        return self._get_or_create_sheet(
            self._settings.expenses_sheet_name, EXPENSE_COLUMNS, rows=1000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


class GoogleSheetsUserStorage(UserStorageInterface):
    """One group member per row."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _user_to_row(self, user: SplitUser) -> list:
        return [
            user.id,
            user.name,
            user.created_at.isoformat(),
            user.updated_at.isoformat(),
        ]

    def _row_to_user(self, row: list) -> SplitUser:
        safe_get = _safe_getter(row)
        return SplitUser(
            id=safe_get(0),
            name=safe_get(1),
            created_at=datetime.fromisoformat(safe_get(2)),
            updated_at=datetime.fromisoformat(safe_get(3)),
        )

    async def get_user(self, user_id: str) -> Optional[SplitUser]:
        try:
            sheet = self._client.get_users_sheet()
            for row in sheet.get_all_values()[1:]:
                if row and row[0] == user_id:
                    return self._row_to_user(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get user: {e}")

    async def save_user(self, user: SplitUser) -> bool:
        if await self.get_user(user.id) is not None:
            raise DuplicateError(f"User already exists: {user.id}")
        try:
            sheet = self._client.get_users_sheet()
            self._client.append_row(sheet, self._user_to_row(user))
            return True
        except Exception as e:
            raise StorageError(f"Failed to save user: {e}")

    async def delete_user(self, user_id: str) -> bool:
        try:
            sheet = self._client.get_users_sheet()
            all_rows = sheet.get_all_values()

            for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is header
                if row and row[0] == user_id:
                    sheet.delete_rows(idx)
                    return True

            return False
        except Exception as e:
            raise StorageError(f"Failed to delete user: {e}")

    async def list_users(self) -> list[SplitUser]:
        try:
            sheet = self._client.get_users_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list users: {e}")

        users = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                users.append(self._row_to_user(row))
            except ValueError as e:
                logger.warning("malformed_user_row", row_id=row[0], error=str(e))
        return users


class GoogleSheetsExpenseStorage(ExpenseStorageInterface):
    """
    One shared expense per row.

    Participants are JSON-serialized into a single cell so a settle
    rewrites exactly one row.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _expense_to_row(self, expense: SplitExpense) -> list:
        participants = [
            {
                "user_id": p.user_id,
                "share_amount": str(p.share_amount),
                "is_settled": p.is_settled,
            }
            for p in expense.participants
        ]
        return [
            expense.id,
            expense.title,
            expense.date.isoformat(),
            str(expense.total_amount),
            expense.paid_by_id,
            expense.split_method.value,
            json.dumps(participants),
            str(expense.is_fully_settled),
            str(expense.version),
            expense.created_at.isoformat(),
            expense.updated_at.isoformat(),
        ]

    def _row_to_expense(self, row: list) -> SplitExpense:
        safe_get = _safe_getter(row)
        participants = [
            ParticipantShare(
                user_id=p["user_id"],
                share_amount=Decimal(p["share_amount"]),
                is_settled=bool(p["is_settled"]),
            )
            for p in json.loads(safe_get(6, "[]"))
        ]
        return SplitExpense(
            id=safe_get(0),
            title=safe_get(1),
            date=date.fromisoformat(safe_get(2)),
            total_amount=Decimal(safe_get(3)),
            paid_by_id=safe_get(4),
            split_method=SplitMethod(safe_get(5)),
            participants=participants,
            version=int(safe_get(8, "1")),
            created_at=datetime.fromisoformat(safe_get(9)),
            updated_at=datetime.fromisoformat(safe_get(10)),
        )

    def _find_row(self, sheet: gspread.Worksheet, expense_id: str):
        """Return (sheet_row_index, row) or (None, None)."""
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
            if row and row[0] == expense_id:
                return idx, row
        return None, None

    async def get_expense(self, expense_id: str) -> Optional[SplitExpense]:
        try:
            sheet = self._client.get_expenses_sheet()
            _, row = self._find_row(sheet, expense_id)
        except Exception as e:
            raise StorageError(f"Failed to get expense: {e}")
        return self._row_to_expense(row) if row else None

    async def save_expense(self, expense: SplitExpense) -> bool:
        if await self.get_expense(expense.id) is not None:
            raise DuplicateError(f"Expense already exists: {expense.id}")
        try:
            sheet = self._client.get_expenses_sheet()
            self._client.append_row(sheet, self._expense_to_row(expense))
            return True
        except Exception as e:
            raise StorageError(f"Failed to save expense: {e}")

    # Not retried: a version conflict must reach the caller untouched
    async def update_expense(
        self,
        expense: SplitExpense,
        expected_version: int,
    ) -> SplitExpense:
        try:
            sheet = self._client.get_expenses_sheet()
            idx, row = self._find_row(sheet, expense.id)
        except Exception as e:
            raise StorageError(f"Failed to update expense: {e}")

        if row is None:
            raise NotFoundError(f"Expense not found: {expense.id}")

        stored_version = int(_safe_getter(row)(8, "1"))
        if stored_version != expected_version:
            raise ConcurrentModificationError(
                expense.id, expected_version, stored_version
            )

        stored = expense.model_copy(update={"version": expected_version + 1})
        new_row = self._expense_to_row(stored)
        try:
            sheet.update(
                range_name=f"A{idx}:{_column_letter(len(new_row))}{idx}",
                values=[new_row],
                value_input_option="RAW",
            )
        except Exception as e:
            raise StorageError(f"Failed to update expense: {e}")
        return stored

    async def delete_expense(self, expense_id: str) -> bool:
        try:
            sheet = self._client.get_expenses_sheet()
            idx, _ = self._find_row(sheet, expense_id)
            if idx is None:
                return False
            sheet.delete_rows(idx)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete expense: {e}")

    async def list_expenses(self, limit: Optional[int] = None) -> list[SplitExpense]:
        try:
            sheet = self._client.get_expenses_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except Exception as e:
            raise StorageError(f"Failed to list expenses: {e}")

        expenses = []
        for row in all_rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                expenses.append(self._row_to_expense(row))
            except (ValueError, KeyError) as e:
                logger.warning("malformed_expense_row", row_id=row[0], error=str(e))

        expenses = sort_newest_first(expenses)
        if limit is not None:
            expenses = expenses[:limit]
        return expenses


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        safe_get = _safe_getter(row)
        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
        )

    def _read_events(self) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except ValueError as e:
                logger.warning("malformed_audit_row", row_id=row[0], error=str(e))
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        try:
            sheet = self._client.get_audit_sheet()
            self._client.append_row(sheet, event.to_sheets_row())
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._read_events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = self._read_events()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
