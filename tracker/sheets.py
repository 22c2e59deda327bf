"""Google Sheets API client for the tracker and its activity log."""

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Protocol

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build

from .config import Config
from .models import SideEffectResult, cell_text

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]


class SheetNotFoundError(RuntimeError):
    """The configured tracker tab does not exist in the spreadsheet."""


class TrackerTable(Protocol):
    """Row/column access to the tracker, 1-based, header on row 1."""

    def last_row(self) -> int: ...

    def last_column(self) -> int: ...

    def get_values(self, row: int, col: int, num_rows: int, num_cols: int) -> list[list[Any]]: ...

    def set_value(self, row: int, col: int, value: Any) -> None: ...

    def set_backgrounds(self, row: int, colors: dict[int, Optional[str]]) -> None: ...

    def validation_values(self, row: int, col: int) -> Optional[list[str]]: ...

    def append_row(self, values: list[Any]) -> int: ...

    def hide_column(self, col: int) -> None: ...


class ActivityLog(Protocol):
    def append(self, message: str) -> SideEffectResult: ...


def get_credentials() -> Credentials:
    """Get or refresh Sheets API credentials."""
    config_dir = Path(__file__).parent.parent / "config"
    token_path = config_dir / "sheets_token.json"
    credentials_path = config_dir / "credentials.json"

    creds = None

    if token_path.exists():
        creds = Credentials.from_authorized_user_file(str(token_path), SCOPES)

    if not creds or not creds.valid:
        if creds and creds.expired and creds.refresh_token:
            logger.info("Refreshing expired Sheets credentials")
            creds.refresh(Request())
        else:
            if not credentials_path.exists():
                raise FileNotFoundError(
                    f"Credentials file not found: {credentials_path}. "
                    "Download credentials.json from Google Cloud Console."
                )
            logger.info("Starting OAuth flow for Sheets")
            flow = InstalledAppFlow.from_client_secrets_file(
                str(credentials_path), SCOPES
            )
            creds = flow.run_local_server(port=0)

        with open(token_path, "w") as token:
            token.write(creds.to_json())
            logger.info(f"Saved Sheets credentials to {token_path}")

    return creds


def build_service():
    """Build a Sheets v4 client with stored credentials."""
    return build("sheets", "v4", credentials=get_credentials())


def column_letter(col: int) -> str:
    """1 -> A, 27 -> AA."""
    letters = ""
    while col > 0:
        col, rem = divmod(col - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def a1_range(sheet_name: str, row: int, col: int, num_rows: int = 1, num_cols: int = 1) -> str:
    """A1 notation for a block of cells on a named tab."""
    start = f"{column_letter(col)}{row}"
    end = f"{column_letter(col + num_cols - 1)}{row + num_rows - 1}"
    return f"'{sheet_name}'!{start}:{end}"


def hex_to_rgb(color: str) -> dict[str, float]:
    """Convert #RRGGBB to the Sheets API colour dict."""
    color = color.lstrip("#")
    red, green, blue = (int(color[i : i + 2], 16) / 255 for i in (0, 2, 4))
    return {"red": red, "green": green, "blue": blue}


def find_sheet(service, spreadsheet_id: str, title: str) -> Optional[dict]:
    """Properties of the tab titled ``title``, or None."""
    result = (
        service.spreadsheets()
        .get(spreadsheetId=spreadsheet_id, fields="sheets(properties(sheetId,title))")
        .execute()
    )
    for sheet in result.get("sheets", []):
        if sheet.get("properties", {}).get("title") == title:
            return sheet["properties"]
    return None


class SheetsTable:
    """A tracker tab, read once and kept in sync with every write."""

    def __init__(self, service, spreadsheet_id: str, sheet_name: str, sheet_id: int):
        self.service = service
        self.spreadsheet_id = spreadsheet_id
        self.sheet_name = sheet_name
        self.sheet_id = sheet_id
        self._values: list[list[Any]] = []
        self.refresh()

    @classmethod
    def open(cls, config: Config, service=None) -> "SheetsTable":
        """Open the tracker tab; raises SheetNotFoundError if it is missing."""
        service = service or build_service()
        properties = find_sheet(service, config.spreadsheet_id, config.sheet_name)
        if properties is None:
            raise SheetNotFoundError(f'Sheet "{config.sheet_name}" not found')
        return cls(service, config.spreadsheet_id, config.sheet_name, properties["sheetId"])

    def refresh(self) -> None:
        """Reload every cell of the tab into the local cache."""
        result = (
            self.service.spreadsheets()
            .values()
            .get(spreadsheetId=self.spreadsheet_id, range=f"'{self.sheet_name}'")
            .execute()
        )
        self._values = [list(row) for row in result.get("values", [])]
        logger.debug(f"Loaded {len(self._values)} rows from {self.sheet_name}")

    def last_row(self) -> int:
        return len(self._values)

    def last_column(self) -> int:
        return max((len(row) for row in self._values), default=0)

    def get_values(self, row: int, col: int, num_rows: int, num_cols: int) -> list[list[Any]]:
        block = []
        for r in range(row - 1, row - 1 + num_rows):
            source = self._values[r] if r < len(self._values) else []
            block.append([source[c] if c < len(source) else "" for c in range(col - 1, col - 1 + num_cols)])
        return block

    def _store(self, row: int, col: int, value: Any) -> None:
        while len(self._values) < row:
            self._values.append([])
        cells = self._values[row - 1]
        while len(cells) < col:
            cells.append("")
        cells[col - 1] = value

    def set_value(self, row: int, col: int, value: Any) -> None:
        self.service.spreadsheets().values().update(
            spreadsheetId=self.spreadsheet_id,
            range=a1_range(self.sheet_name, row, col),
            valueInputOption="RAW",
            body={"values": [[value]]},
        ).execute()
        self._store(row, col, value)

    def append_row(self, values: list[Any]) -> int:
        """Append a row and return the 1-based row Sheets actually wrote."""
        result = self.service.spreadsheets().values().append(
            spreadsheetId=self.spreadsheet_id,
            range=f"'{self.sheet_name}'!A:{column_letter(len(values))}",
            valueInputOption="RAW",
            insertDataOption="INSERT_ROWS",
            body={"values": [values]},
        ).execute()

        row = len(self._values) + 1
        updated = result.get("updates", {}).get("updatedRange", "")
        match = re.search(r"![A-Z]+(\d+)", updated)
        if match:
            row = int(match.group(1))
        for col, value in enumerate(values, start=1):
            self._store(row, col, value)
        return row

    def set_backgrounds(self, row: int, colors: dict[int, Optional[str]]) -> None:
        requests = []
        for col, color in sorted(colors.items()):
            cell = {"userEnteredFormat": {"backgroundColor": hex_to_rgb(color)}} if color else {}
            requests.append(
                {
                    "repeatCell": {
                        "range": {
                            "sheetId": self.sheet_id,
                            "startRowIndex": row - 1,
                            "endRowIndex": row,
                            "startColumnIndex": col - 1,
                            "endColumnIndex": col,
                        },
                        "cell": cell,
                        "fields": "userEnteredFormat.backgroundColor",
                    }
                }
            )
        if requests:
            self.service.spreadsheets().batchUpdate(
                spreadsheetId=self.spreadsheet_id, body={"requests": requests}
            ).execute()

    def validation_values(self, row: int, col: int) -> Optional[list[str]]:
        """Items of a dropdown (ONE_OF_LIST) rule on a cell, or None."""
        result = (
            self.service.spreadsheets()
            .get(
                spreadsheetId=self.spreadsheet_id,
                ranges=[a1_range(self.sheet_name, row, col)],
                includeGridData=True,
                fields="sheets(data(rowData(values(dataValidation))))",
            )
            .execute()
        )
        try:
            cell = result["sheets"][0]["data"][0]["rowData"][0]["values"][0]
            condition = cell["dataValidation"]["condition"]
        except (KeyError, IndexError):
            return None
        if condition.get("type") != "ONE_OF_LIST":
            return None
        return [v.get("userEnteredValue", "") for v in condition.get("values", [])]

    def hide_column(self, col: int) -> None:
        self.service.spreadsheets().batchUpdate(
            spreadsheetId=self.spreadsheet_id,
            body={
                "requests": [
                    {
                        "updateDimensionProperties": {
                            "range": {
                                "sheetId": self.sheet_id,
                                "dimension": "COLUMNS",
                                "startIndex": col - 1,
                                "endIndex": col,
                            },
                            "properties": {"hiddenByUser": True},
                            "fields": "hiddenByUser",
                        }
                    }
                ]
            },
        ).execute()


class SheetsActivityLog:
    """Appends (timestamp, message) rows to the log tab, creating it if needed."""

    def __init__(self, service, spreadsheet_id: str, sheet_name: str = "Log"):
        self.service = service
        self.spreadsheet_id = spreadsheet_id
        self.sheet_name = sheet_name
        self._ready = False

    def _ensure_sheet(self) -> None:
        if self._ready:
            return
        if find_sheet(self.service, self.spreadsheet_id, self.sheet_name) is None:
            self.service.spreadsheets().batchUpdate(
                spreadsheetId=self.spreadsheet_id,
                body={"requests": [{"addSheet": {"properties": {"title": self.sheet_name}}}]},
            ).execute()
            logger.info(f"Created log sheet {self.sheet_name}")
        self._ready = True

    def append(self, message: str) -> SideEffectResult:
        logger.info(message)
        try:
            self._ensure_sheet()
            self.service.spreadsheets().values().append(
                spreadsheetId=self.spreadsheet_id,
                range=f"'{self.sheet_name}'!A:B",
                valueInputOption="RAW",
                insertDataOption="INSERT_ROWS",
                body={"values": [[datetime.now().strftime("%Y-%m-%d %H:%M:%S"), message]]},
            ).execute()
        except Exception as e:
            logger.warning(f"Failed to write activity log: {e}")
            return SideEffectResult.skipped(str(e))
        return SideEffectResult.succeeded()


def try_hide_column(table: TrackerTable, col: int) -> SideEffectResult:
    """Hide a column; failures are reported, never raised."""
    try:
        table.hide_column(col)
    except Exception as e:
        result = SideEffectResult.skipped(f"could not hide column {col}: {e}")
        logger.warning(result.reason)
        return result
    return SideEffectResult.succeeded()


def ensure_thread_id_column(table: TrackerTable, config: Config) -> int:
    """Find or create the hidden thread id column and return its index."""
    width = table.last_column()
    headers = [cell_text(h) for h in table.get_values(1, 1, 1, width)[0]] if width else []
    while headers and not headers[-1]:
        headers.pop()

    if config.thread_header in headers:
        col = headers.index(config.thread_header) + 1
    else:
        col = max(len(headers), config.columns.thread_id - 1) + 1
        table.set_value(1, col, config.thread_header)
        logger.info(f'Added "{config.thread_header}" header in column {col}')

    try_hide_column(table, col)
    return col
