"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a persistent backend because:
1. Users can view their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions (the coordinator serializes writes per category)
- Limited query capabilities (we filter and aggregate in Python)

One worksheet per table. Row 1 holds the column headers.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from ledger_engine.config import GoogleSheetsSettings, get_settings
from ledger_engine.models.audit import AuditEvent, AuditEventType, AuditSeverity
from ledger_engine.models.ledger import (
    Budget,
    Notification,
    NotificationSeverity,
    Transaction,
    TransactionKind,
    User,
)
from ledger_engine.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    LedgerStoreInterface,
    StoreError,
)


USER_COLUMNS = ["id", "name", "email", "username", "credential_hash", "created_at"]

TRANSACTION_COLUMNS = [
    "id",
    "amount",
    "category",
    "date",
    "description",
    "kind",
    "user_id",
]

BUDGET_COLUMNS = ["id", "category", "limit", "created_at", "user_id"]

NOTIFICATION_COLUMNS = [
    "id",
    "user_id",
    "title",
    "message",
    "severity",
    "related_category",
    "is_read",
    "created_at",
    "period_key",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "user_id",
    "description",
    "details_json",
    "error_message",
]

TABLE_COLUMNS = {
    "users": USER_COLUMNS,
    "transactions": TRANSACTION_COLUMNS,
    "budgets": BUDGET_COLUMNS,
    "notifications": NOTIFICATION_COLUMNS,
    "audit": AUDIT_COLUMNS,
}

_write_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


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

    def _sheet_name(self, table: str) -> str:
        return {
            "users": self._settings.users_sheet_name,
            "transactions": self._settings.transactions_sheet_name,
            "budgets": self._settings.budgets_sheet_name,
            "notifications": self._settings.notifications_sheet_name,
            "audit": self._settings.audit_sheet_name,
        }[table]

    def get_table(self, table: str) -> gspread.Worksheet:
        """Get or create the worksheet backing a table."""
        spreadsheet = self.get_spreadsheet()
        name = self._sheet_name(table)
        columns = TABLE_COLUMNS[table]
        try:
            sheet = spreadsheet.worksheet(name)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=name,
                rows=5000 if table == "audit" else 1000,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet


# =============================================================================
# ROW CONVERSION
# =============================================================================

def _cell(row: list, index: int, default: str = "") -> str:
    """Handle missing columns gracefully."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def user_to_row(user: User) -> list:
    return [
        user.id,
        user.name,
        user.email,
        user.username,
        user.credential_hash,
        user.created_at.isoformat(),
    ]


def row_to_user(row: list) -> User:
    return User(
        id=_cell(row, 0),
        name=_cell(row, 1),
        email=_cell(row, 2),
        username=_cell(row, 3),
        credential_hash=_cell(row, 4),
        created_at=datetime.fromisoformat(_cell(row, 5)),
    )


def transaction_to_row(transaction: Transaction) -> list:
    return [
        str(transaction.id),
        str(transaction.amount),
        transaction.category,
        transaction.date.isoformat(),
        transaction.description or "",
        transaction.kind.value,
        transaction.user_id,
    ]


def row_to_transaction(row: list) -> Transaction:
    return Transaction(
        id=UUID(_cell(row, 0)),
        amount=Decimal(_cell(row, 1)),
        category=_cell(row, 2),
        date=date.fromisoformat(_cell(row, 3)),
        description=_cell(row, 4) or None,
        kind=TransactionKind(_cell(row, 5)),
        user_id=_cell(row, 6),
    )


def budget_to_row(budget: Budget) -> list:
    return [
        str(budget.id),
        budget.category,
        str(budget.limit),
        budget.created_at.isoformat(),
        budget.user_id,
    ]


def row_to_budget(row: list) -> Budget:
    return Budget(
        id=UUID(_cell(row, 0)),
        category=_cell(row, 1),
        limit=Decimal(_cell(row, 2)),
        created_at=datetime.fromisoformat(_cell(row, 3)),
        user_id=_cell(row, 4),
    )


def notification_to_row(notification: Notification) -> list:
    return [
        str(notification.id),
        notification.user_id,
        notification.title,
        notification.message,
        notification.severity.value,
        notification.related_category or "",
        str(notification.is_read),
        notification.created_at.isoformat(),
        notification.period_key or "",
    ]


def row_to_notification(row: list) -> Notification:
    return Notification(
        id=UUID(_cell(row, 0)),
        user_id=_cell(row, 1),
        title=_cell(row, 2),
        message=_cell(row, 3),
        severity=NotificationSeverity(_cell(row, 4, "info")),
        related_category=_cell(row, 5) or None,
        is_read=_cell(row, 6).lower() == "true",
        created_at=datetime.fromisoformat(_cell(row, 7)),
        period_key=_cell(row, 8) or None,
    )


def row_to_event(row: list) -> AuditEvent:
    return AuditEvent(
        event_id=UUID(_cell(row, 0)),
        timestamp=datetime.fromisoformat(_cell(row, 1)),
        event_type=AuditEventType(_cell(row, 2)),
        severity=AuditSeverity(_cell(row, 3)),
        entity_type=_cell(row, 4) or None,
        entity_id=_cell(row, 5) or None,
        user_id=_cell(row, 6) or None,
        description=_cell(row, 7),
        details=json.loads(_cell(row, 8)) if _cell(row, 8) else {},
        error_message=_cell(row, 9) or None,
    )


# =============================================================================
# LEDGER STORE
# =============================================================================

class GoogleSheetsLedgerStore(LedgerStoreInterface):
    """
    Google Sheets implementation of the ledger store.

    Each record is one row; the id is always the first column.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    # ------------------------------------------------------------------
    # Generic table helpers
    # ------------------------------------------------------------------

    def _read(self, table: str, parse: Callable[[list], object]) -> list:
        """All parseable rows of a table (header and malformed rows skipped)."""
        try:
            all_rows = self._client.get_table(table).get_all_values()[1:]
        except Exception as e:
            raise StoreError(f"Failed to read {table}: {e}")

        records = []
        for row in all_rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                records.append(parse(row))
            except Exception:
                continue  # Skip malformed rows
        return records

    def _find(self, table: str, parse: Callable[[list], object], key: str):
        for record in self._read(table, parse):
            if str(record.id) == key:
                return record
        return None

    @_write_retry
    async def _append(self, table: str, row: list) -> int:
        try:
            self._client.get_table(table).append_row(row, value_input_option="RAW")
            return 1
        except Exception as e:
            raise StoreError(f"Failed to write {table}: {e}")

    async def _replace(self, table: str, key: str, row: list) -> int:
        try:
            sheet = self._client.get_table(table)
            all_rows = sheet.get_all_values()

            # Start from 2 (row 1 is header)
            for idx, existing in enumerate(all_rows[1:], start=2):
                if existing and existing[0] == key:
                    for col_idx, value in enumerate(row, start=1):
                        sheet.update_cell(idx, col_idx, value)
                    return 1
            return 0
        except Exception as e:
            raise StoreError(f"Failed to update {table}: {e}")

    async def _delete(self, table: str, key: str) -> int:
        try:
            sheet = self._client.get_table(table)
            all_rows = sheet.get_all_values()

            for idx, existing in enumerate(all_rows[1:], start=2):
                if existing and existing[0] == key:
                    sheet.delete_rows(idx)
                    return 1
            return 0
        except Exception as e:
            raise StoreError(f"Failed to delete from {table}: {e}")

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def add_user(self, user: User) -> int:
        if await self.find_user(email=user.email, username=user.username):
            raise DuplicateError("Email or username already registered")
        return await self._append("users", user_to_row(user))

    async def get_user(self, user_id: str) -> Optional[User]:
        return self._find("users", row_to_user, user_id)

    async def update_user(self, user: User) -> int:
        return await self._replace("users", user.id, user_to_row(user))

    async def find_user(
        self,
        email: Optional[str] = None,
        username: Optional[str] = None,
    ) -> Optional[User]:
        email = email.lower() if email else None
        username = username.lower() if username else None
        for user in self._read("users", row_to_user):
            if email and user.email.lower() == email:
                return user
            if username and user.username.lower() == username:
                return user
        return None

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def add_transaction(self, transaction: Transaction) -> int:
        return await self._append("transactions", transaction_to_row(transaction))

    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        return self._find("transactions", row_to_transaction, str(transaction_id))

    async def update_transaction(self, transaction: Transaction) -> int:
        return await self._replace(
            "transactions", str(transaction.id), transaction_to_row(transaction)
        )

    async def delete_transaction(self, transaction_id: UUID) -> int:
        return await self._delete("transactions", str(transaction_id))

    async def list_transactions(self, user_id: str) -> list[Transaction]:
        return [
            t for t in self._read("transactions", row_to_transaction)
            if t.user_id == user_id
        ]

    # ------------------------------------------------------------------
    # Budgets
    # ------------------------------------------------------------------

    async def add_budget(self, budget: Budget) -> int:
        return await self._append("budgets", budget_to_row(budget))

    async def get_budget(self, budget_id: UUID) -> Optional[Budget]:
        return self._find("budgets", row_to_budget, str(budget_id))

    async def update_budget(self, budget: Budget) -> int:
        return await self._replace("budgets", str(budget.id), budget_to_row(budget))

    async def delete_budget(self, budget_id: UUID) -> int:
        return await self._delete("budgets", str(budget_id))

    async def list_budgets(self, user_id: str) -> list[Budget]:
        return [b for b in self._read("budgets", row_to_budget) if b.user_id == user_id]

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    async def add_notification(self, notification: Notification) -> int:
        return await self._append("notifications", notification_to_row(notification))

    async def get_notification(self, notification_id: UUID) -> Optional[Notification]:
        return self._find("notifications", row_to_notification, str(notification_id))

    async def update_notification(self, notification: Notification) -> int:
        return await self._replace(
            "notifications",
            str(notification.id),
            notification_to_row(notification),
        )

    async def delete_notification(self, notification_id: UUID) -> int:
        return await self._delete("notifications", str(notification_id))

    async def list_notifications(self, user_id: str) -> list[Notification]:
        owned = [
            n for n in self._read("notifications", row_to_notification)
            if n.user_id == user_id
        ]
        return sorted(reversed(owned), key=lambda n: n.created_at, reverse=True)


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @_write_retry
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_table("audit")
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StoreError(f"Failed to write audit event: {e}")

    def _events(self) -> list[AuditEvent]:
        try:
            all_rows = self._client.get_table("audit").get_all_values()[1:]
        except Exception as e:
            raise StoreError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if row and row[0]:
                try:
                    events.append(row_to_event(row))
                except Exception:
                    continue
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        # Sort newest first; later rows win timestamp ties
        events = list(reversed(self._events()))
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
