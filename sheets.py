# sheets.py
import logging
import threading
from typing import List

from google.oauth2 import service_account
from googleapiclient.discovery import build

import config
from errors import ConfigurationError

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
DEFAULT_ROW_COUNT = 1000


def column_letter(index: int) -> str:
    """1 -> A, 2 -> B ... 27 -> AA"""
    letters = ""
    while index > 0:
        index, rem = divmod(index - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def a1(title: str, start: str, end: str) -> str:
    escaped = title.replace("'", "''")
    return f"'{escaped}'!{start}:{end}"


class SheetsSink:
    """Activity Log Sink backed by one Google spreadsheet.

    Only the handful of calls the activity logger needs are exposed: list
    sheet titles, add a sheet, read/write the header row, append a row and
    read a single column.
    """

    def __init__(self, service, spreadsheet_id: str):
        self.service = service
        self.spreadsheet_id = spreadsheet_id
        # httplib2 is not thread-safe and routes run in the threadpool
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls) -> "SheetsSink":
        if not config.sheets_configured():
            raise ConfigurationError("Google Sheets configuration is missing")

        credentials = service_account.Credentials.from_service_account_info(
            {
                "type": "service_account",
                "client_email": config.GOOGLE_SHEETS_CLIENT_EMAIL,
                "private_key": config.GOOGLE_SHEETS_PRIVATE_KEY,
                "token_uri": "https://oauth2.googleapis.com/token",
            },
            scopes=SCOPES,
        )
        service = build("sheets", "v4", credentials=credentials, cache_discovery=False)
        logger.info("Google Sheets client initialised")
        return cls(service, config.GOOGLE_SHEETS_ID)

    def _execute(self, request):
        with self._lock:
            return request.execute()

    def sheet_titles(self) -> List[str]:
        resp = self._execute(
            self.service.spreadsheets().get(
                spreadsheetId=self.spreadsheet_id, fields="sheets.properties"
            )
        )
        return [s["properties"]["title"] for s in resp.get("sheets", [])]

    def add_sheet(self, title: str, column_count: int):
        body = {
            "requests": [
                {
                    "addSheet": {
                        "properties": {
                            "title": title,
                            "gridProperties": {
                                "rowCount": DEFAULT_ROW_COUNT,
                                "columnCount": column_count,
                            },
                        }
                    }
                }
            ]
        }
        self._execute(
            self.service.spreadsheets().batchUpdate(spreadsheetId=self.spreadsheet_id, body=body)
        )

    def read_header(self, title: str, width: int) -> List[str]:
        last = column_letter(width)
        resp = self._execute(
            self.service.spreadsheets().values().get(
                spreadsheetId=self.spreadsheet_id, range=a1(title, "A1", f"{last}1")
            )
        )
        values = resp.get("values", [])
        return values[0] if values else []

    def write_header(self, title: str, headers: List[str]):
        last = column_letter(len(headers))
        self._execute(
            self.service.spreadsheets().values().update(
                spreadsheetId=self.spreadsheet_id,
                range=a1(title, "A1", f"{last}1"),
                valueInputOption="RAW",
                body={"values": [list(headers)]},
            )
        )

    def append_row(self, title: str, row: List[str]):
        last = column_letter(len(row))
        self._execute(
            self.service.spreadsheets().values().append(
                spreadsheetId=self.spreadsheet_id,
                range=a1(title, "A", last),
                valueInputOption="RAW",
                insertDataOption="INSERT_ROWS",
                body={"values": [list(row)]},
            )
        )

    def read_column(self, title: str, index: int) -> List[str]:
        col = column_letter(index)
        resp = self._execute(
            self.service.spreadsheets().values().get(
                spreadsheetId=self.spreadsheet_id, range=a1(title, col, col)
            )
        )
        return [row[0] for row in resp.get("values", []) if row]
