"""
Google Sheets Remote Store

DESIGN DECISION: Google Sheets can act as the remote replica because:
1. The user can inspect their synced data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (fine for one person's records)
- No server-side filtering (we filter by owner and updated_at in Python)
- No transactions (a batch is applied row by row)

Each collection lives in its own worksheet whose header row is the
record's remote field list. The implementation follows the RemoteStore
interface, so sync logic does not know it is talking to a spreadsheet.
"""

import asyncio
from datetime import datetime
from typing import Any, Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from devlife.config import GoogleSheetsSettings, get_settings
from devlife.models.records import Collection, parse_timestamp
from devlife.services.storage.interface import (
    ConnectionError,
    RemoteStore,
    RemoteStoreError,
)


def columns_for(collection: Collection) -> list[str]:
    """Remote column order for a collection. sync_status stays local."""
    return [
        name
        for name in collection.record_type.model_fields
        if name != "sync_status"
    ]


def record_to_row(header: list[str], record: dict[str, Any]) -> list[str]:
    """Convert a remote payload to a spreadsheet row following header."""
    row = []
    for column in header:
        value = record.get(column)
        row.append("" if value is None else str(value))
    return row


def row_to_record(collection: Collection, header: list[str], row: list[str]) -> dict[str, Any]:
    """
    Convert a spreadsheet row back to a remote payload.

    Sheets cannot tell an empty string from a missing value, so an empty
    cell becomes None for nullable fields, "" for text fields and is
    left out otherwise.
    """
    fields = collection.record_type.model_fields
    record: dict[str, Any] = {}
    for index, column in enumerate(header):
        if column not in fields:
            continue
        cell = row[index] if index < len(row) else ""
        if cell == "":
            field = fields[column]
            if field.default is None:
                record[column] = None
            elif field.annotation is str:
                record[column] = ""
            continue
        record[column] = cell
    return record


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

    def get_worksheet(self, collection: Collection) -> gspread.Worksheet:
        """Get or create the worksheet of a collection."""
        spreadsheet = self.get_spreadsheet()
        name = self._settings.sheet_name_for(collection.value)
        try:
            sheet = spreadsheet.worksheet(name)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            columns = columns_for(collection)
            sheet = spreadsheet.add_worksheet(
                title=name,
                rows=1000,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet


class GoogleSheetsRemoteStore(RemoteStore):
    """
    Google Sheets implementation of the remote store.

    gspread is blocking, so every request runs in a worker thread and
    the event loop stays free while Sheets answers.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    async def upsert_batch(
        self,
        collection: Collection,
        records: list[dict[str, Any]],
        conflict_key: str = "id",
    ) -> None:
        if not records:
            return
        try:
            await asyncio.to_thread(self._upsert_rows, collection, records, conflict_key)
        except RemoteStoreError:
            raise
        except Exception as e:
            raise RemoteStoreError(f"Failed to upsert {collection.value}: {e}") from e

    async def query_newer_than(
        self,
        collection: Collection,
        owner_id: str,
        timestamp: datetime,
    ) -> list[dict[str, Any]]:
        try:
            return await asyncio.to_thread(self._query_rows, collection, owner_id, timestamp)
        except RemoteStoreError:
            raise
        except Exception as e:
            raise RemoteStoreError(f"Failed to query {collection.value}: {e}") from e

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(RemoteStoreError),
        reraise=True,
    )
    def _upsert_rows(
        self,
        collection: Collection,
        records: list[dict[str, Any]],
        conflict_key: str,
    ) -> None:
        sheet = self._client.get_worksheet(collection)
        all_rows = sheet.get_all_values()
        if not all_rows:
            header = columns_for(collection)
            sheet.append_row(header)
            all_rows = [header]

        header = all_rows[0]
        if conflict_key not in header:
            raise RemoteStoreError(
                f"Worksheet for {collection.value} has no '{conflict_key}' column"
            )
        key_col = header.index(conflict_key)

        # Row 1 is the header, data starts at row 2
        row_numbers = {
            row[key_col]: number
            for number, row in enumerate(all_rows[1:], start=2)
            if len(row) > key_col and row[key_col]
        }

        # Last occurrence of a key within the batch wins
        batch: dict[str, dict[str, Any]] = {}
        for record in records:
            key = record.get(conflict_key)
            if not key:
                raise RemoteStoreError(f"Record without '{conflict_key}' in batch")
            batch[str(key)] = record

        new_rows = []
        for key, record in batch.items():
            row = record_to_row(header, record)
            if key in row_numbers:
                sheet.update(
                    range_name=f"A{row_numbers[key]}",
                    values=[row],
                    value_input_option="RAW",
                )
            else:
                new_rows.append(row)

        if new_rows:
            sheet.append_rows(new_rows, value_input_option="RAW")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(RemoteStoreError),
        reraise=True,
    )
    def _query_rows(
        self,
        collection: Collection,
        owner_id: str,
        timestamp: datetime,
    ) -> list[dict[str, Any]]:
        sheet = self._client.get_worksheet(collection)
        all_rows = sheet.get_all_values()
        if len(all_rows) < 2:
            return []

        header = all_rows[0]
        results = []
        for row in all_rows[1:]:
            if not row or not any(row):  # Skip empty rows
                continue
            record = row_to_record(collection, header, row)
            if record.get("user_id") != owner_id:
                continue
            try:
                updated_at = parse_timestamp(record.get("updated_at"))
            except ValueError:
                continue  # Skip rows without a usable timestamp
            if updated_at > timestamp:
                results.append(record)
        return results
