"""
Google Sheets Storage Implementation

Two optional sinks live here:
1. GoogleSheetsAuditStorage - the append-only audit trail
2. GoogleSheetsMovementMirror - one row per created movement, so a
   household can read its ledger in a spreadsheet

TRADEOFFS:
- Not suitable for the primary ledger (no transactions, no locking)
- Limited query capabilities (we filter in Python)

Both are best-effort copies. The ledger never reads back from them, and a
failed write is reported to the caller's logger, never raised into a
movement operation.
"""

import json
from datetime import datetime
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from household_ledger.config import get_settings
from household_ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from household_ledger.models.movement import Movement
from household_ledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    MovementMirrorInterface,
    StorageError,
)

logger = structlog.get_logger(__name__)


# Column mappings for Movements sheet
MOVEMENT_COLUMNS = [
    "id",
    "household_id",
    "type",
    "movement_date",
    "description",
    "amount",
    "category_id",
    "payer",
    "counterparty",
    "loan_direction",
    "payment_method_id",
    "receiver_account_id",
    "income_type",
    "participants_json",
    "template_id",
    "created_by",
    "created_at",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "household_id",
    "actor_id",
    "entity_type",
    "entity_id",
    "description",
    "success",
    "details_json",
    "old_values_json",
    "new_values_json",
    "error_message",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

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

    def _get_or_create_sheet(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(title=title, rows=rows, cols=len(columns))
            sheet.append_row(columns)
        return sheet

    def get_movements_sheet(self) -> gspread.Worksheet:
        """Get or create the Movements worksheet."""
        return self._get_or_create_sheet(
            self._settings.movements_sheet_name, MOVEMENT_COLUMNS, rows=1000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


class GoogleSheetsMovementMirror(MovementMirrorInterface):
    """
    Appends created movements to the Movements sheet.

    Participants are JSON-serialized into a single cell.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _movement_to_row(self, movement: Movement) -> list:
        participants = [
            {
                "participant": str(p.participant),
                "name": p.display_name,
                "percentage": str(p.percentage),
                "amount": str(p.amount) if p.amount is not None else None,
            }
            for p in movement.participants
        ]
        return [
            str(movement.id),
            str(movement.household_id),
            movement.type.value,
            movement.movement_date.isoformat(),
            movement.description,
            str(movement.amount),
            str(movement.category_id) if movement.category_id else "",
            movement.payer_name or "",
            movement.counterparty_name or "",
            movement.loan_direction.value if movement.loan_direction else "",
            str(movement.payment_method_id) if movement.payment_method_id else "",
            str(movement.receiver_account_id) if movement.receiver_account_id else "",
            movement.income_type.value if movement.income_type else "",
            json.dumps(participants) if participants else "",
            str(movement.template_id) if movement.template_id else "",
            str(movement.created_by),
            movement.created_at.isoformat(),
        ]

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_movement(self, movement: Movement) -> bool:
        """Append one movement row."""
        try:
            sheet = self._client.get_movements_sheet()
            sheet.append_row(self._movement_to_row(movement), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to mirror movement: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            household_id=UUID(safe_get(4)) if safe_get(4) else None,
            actor_id=UUID(safe_get(5)) if safe_get(5) else None,
            entity_type=safe_get(6) or None,
            entity_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            success=safe_get(9, "True").lower() == "true",
            details=json.loads(safe_get(10)) if safe_get(10) else {},
            old_values=json.loads(safe_get(11)) if safe_get(11) else None,
            new_values=json.loads(safe_get(12)) if safe_get(12) else None,
            error_message=safe_get(13) or None,
        )

    def _read_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValueError, IndexError) as e:
                logger.warning("audit_row_skipped", error=str(e), event_id=row[0])
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        try:
            events = [
                e for e in self._read_events()
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            events = self._read_events()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
