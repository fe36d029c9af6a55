"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets can back the record log because:
1. Parents can look at the ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (we're fine for a household)
- No multi-row transactions (the services sequence writes under a lock
  and compensate on failure)
- Every read is a full scan (we filter in Python)

One worksheet per collection, one row per record, columns taken from the
collection schema. Rows are validated on read; a malformed row is an error,
never silently skipped, because skipping a ledger row would change a balance.
"""

from typing import Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials
from pydantic import BaseModel
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from familybank.config import GoogleSheetsSettings, get_settings
from familybank.services.storage.interface import (
    ConnectionError,
    DuplicateError,
    RecordLogInterface,
    RecordNotFoundError,
    SchemaError,
    StorageError,
)
from familybank.services.storage.schema import RecordSchema, get_schema


logger = structlog.get_logger(__name__)

_retry_writes = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_not_exception_type((RecordNotFoundError, DuplicateError, SchemaError)),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and creates worksheets on first use.
    """

    def __init__(
        self,
        settings: Optional[GoogleSheetsSettings] = None,
        spreadsheet: Optional[gspread.Spreadsheet] = None,
    ):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet = spreadsheet
        self._settings = settings or get_settings().google_sheets
        self._worksheets: dict[str, gspread.Worksheet] = {}

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

    def get_worksheet(self, schema: RecordSchema) -> gspread.Worksheet:
        """Get or create the worksheet for a collection."""
        if schema.name in self._worksheets:
            return self._worksheets[schema.name]

        spreadsheet = self.get_spreadsheet()
        title = self._settings.sheet_name_for(schema.name)
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(schema.columns),
            )
            sheet.append_row(schema.columns, value_input_option="RAW")

        self._worksheets[schema.name] = sheet
        return sheet


class GoogleSheetsRecordLog(RecordLogInterface):
    """
    Google Sheets implementation of the record log.

    Row 1 of every worksheet is the header; records start at row 2.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _data_rows(self, sheet: gspread.Worksheet) -> list[list[str]]:
        return sheet.get_all_values()[1:]

    def _find_row(
        self,
        sheet: gspread.Worksheet,
        schema: RecordSchema,
        record_id: str,
    ) -> Optional[tuple[int, list[str]]]:
        """1-based sheet row number and cells of a record, or None."""
        column = schema.columns.index(schema.id_field)
        for idx, row in enumerate(self._data_rows(sheet), start=2):
            if len(row) > column and row[column] == record_id:
                return idx, row
        return None

    @staticmethod
    def _same_cells(stored: list[str], row: list[str]) -> bool:
        # Sheets drops trailing empty cells on read
        width = max(len(stored), len(row))
        return (
            list(stored) + [""] * (width - len(stored))
            == list(row) + [""] * (width - len(row))
        )

    @_retry_writes
    async def append(self, collection: str, record: BaseModel) -> str:
        schema = get_schema(collection)
        row = schema.to_row(record)
        record_id = schema.record_id(record)
        try:
            sheet = self._client.get_worksheet(schema)
            found = self._find_row(sheet, schema, record_id)
            if found is not None:
                # A retried append whose first attempt landed but lost its response
                if self._same_cells(found[1], row):
                    logger.warning(
                        "append_already_applied",
                        collection=collection,
                        record_id=record_id,
                    )
                    return record_id
                raise DuplicateError(f"Duplicate id in '{collection}': {record_id}")
            sheet.append_row(row, value_input_option="RAW")
            return record_id
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to append to '{collection}': {e}")

    async def scan(self, collection: str) -> list[BaseModel]:
        schema = get_schema(collection)
        try:
            sheet = self._client.get_worksheet(schema)
            rows = self._data_rows(sheet)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read '{collection}': {e}")

        # Skip empty rows only
        return [schema.from_row(row) for row in rows if row and row[0]]

    @_retry_writes
    async def update_by_id(self, collection: str, record: BaseModel) -> bool:
        schema = get_schema(collection)
        row = schema.to_row(record)
        record_id = schema.record_id(record)
        try:
            sheet = self._client.get_worksheet(schema)
            found = self._find_row(sheet, schema, record_id)
            if found is None:
                raise RecordNotFoundError(f"No record '{record_id}' in '{collection}'")
            idx = found[0]
            sheet.update(
                range_name=f"A{idx}",
                values=[row],
                value_input_option="RAW",
            )
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update '{collection}': {e}")
