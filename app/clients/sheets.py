"""Client for the Google Sheets values API used as the funding sink."""

from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import datetime
from typing import Any

import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from app.models.funding import UNKNOWN, FeedSource

SCOPES = ("https://www.googleapis.com/auth/spreadsheets",)
LAST_COLUMN = "K"
SOURCE_COLUMNS = ("ID", "Name", "URL", "Type", "Status", "Last Checked")
SOURCES_LAST_COLUMN = "F"


class SheetsError(RuntimeError):
    """Base error for Google Sheets client failures."""

    def __init__(self, message: str, code: str = "SHEETS_ERROR") -> None:
        super().__init__(message)
        self.code = code


def parse_service_account(raw: str) -> dict[str, Any]:
    """Decode the service-account JSON blob from configuration."""
    try:
        info = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"GOOGLE_SERVICE_ACCOUNT_KEY is not valid JSON: {exc}") from exc
    if not isinstance(info, dict) or "client_email" not in info:
        raise ValueError("GOOGLE_SERVICE_ACCOUNT_KEY must be a service-account JSON object.")
    return info


class GoogleSheetsClient:
    """Reads, appends and updates rows of a single worksheet."""

    def __init__(
        self,
        spreadsheet_id: str,
        *,
        sheet_name: str = "Funding_Data",
        header_rows: int = 1,
        sources_sheet_name: str = "Sources",
        service: Any | None = None,
        credentials: Any | None = None,
    ) -> None:
        if not spreadsheet_id:
            raise ValueError("SPREADSHEET_ID is required to create a GoogleSheetsClient.")
        if service is None:
            if credentials is None:
                raise ValueError("Service-account credentials are required without an injected service.")
            service = build("sheets", "v4", credentials=credentials, cache_discovery=False)
        self._values = service.spreadsheets().values()
        self.spreadsheet_id = spreadsheet_id
        self.sheet_name = sheet_name
        self.header_rows = header_rows
        self.sources_sheet_name = sources_sheet_name

    @classmethod
    def from_service_account(
        cls,
        raw_key: str,
        spreadsheet_id: str,
        *,
        sheet_name: str = "Funding_Data",
        sources_sheet_name: str = "Sources",
    ) -> "GoogleSheetsClient":
        info = parse_service_account(raw_key)
        try:
            credentials = service_account.Credentials.from_service_account_info(info, scopes=list(SCOPES))
        except (GoogleAuthError, ValueError) as exc:
            raise ValueError(f"Invalid service-account credentials: {exc}") from exc
        return cls(
            spreadsheet_id,
            sheet_name=sheet_name,
            sources_sheet_name=sources_sheet_name,
            credentials=credentials,
        )

    def read_rows(self) -> list[list[str]]:
        """Return data rows below the header, as strings."""
        first_row = self.header_rows + 1
        request = self._values.get(
            spreadsheetId=self.spreadsheet_id,
            range=f"{self.sheet_name}!A{first_row}:{LAST_COLUMN}",
        )
        response = self._execute(request, action="read")
        return [[str(cell) for cell in row] for row in response.get("values", [])]

    def append_rows(self, rows: Sequence[Sequence[str]]) -> int:
        if not rows:
            return 0
        request = self._values.append(
            spreadsheetId=self.spreadsheet_id,
            range=f"{self.sheet_name}!A:{LAST_COLUMN}",
            valueInputOption="RAW",
            insertDataOption="INSERT_ROWS",
            body={"values": [list(row) for row in rows]},
        )
        response = self._execute(request, action="append")
        return int(response.get("updates", {}).get("updatedRows", len(rows)))

    def update_row(self, row_number: int, values: Sequence[str]) -> None:
        if row_number <= self.header_rows:
            raise ValueError(f"Refusing to overwrite header row {row_number}.")
        request = self._values.update(
            spreadsheetId=self.spreadsheet_id,
            range=f"{self.sheet_name}!A{row_number}:{LAST_COLUMN}{row_number}",
            valueInputOption="RAW",
            body={"values": [list(values)]},
        )
        self._execute(request, action="update")

    def read_sources(self) -> list[FeedSource]:
        """Return the active feeds listed on the sources tab (id, name, url, type, status, last checked)."""
        first_row = self.header_rows + 1
        request = self._values.get(
            spreadsheetId=self.spreadsheet_id,
            range=f"{self.sources_sheet_name}!A{first_row}:{SOURCES_LAST_COLUMN}",
        )
        response = self._execute(request, action="read sources")
        sources: list[FeedSource] = []
        for offset, row in enumerate(response.get("values", [])):
            cells = [str(cell).strip() for cell in row] + [""] * len(SOURCE_COLUMNS)
            if not cells[2]:
                continue
            source = FeedSource(
                source_id=cells[0] or f"source_{offset}",
                name=cells[1] or UNKNOWN,
                url=cells[2],
                kind=cells[3] or "RSS",
                status=cells[4] or "active",
                last_checked=cells[5],
                row_number=offset + first_row,
            )
            if source.active:
                sources.append(source)
        return sources

    def update_source_checked(self, row_number: int, checked_at: datetime) -> None:
        if row_number <= self.header_rows:
            raise ValueError(f"Refusing to overwrite header row {row_number}.")
        cell = f"{self.sources_sheet_name}!{SOURCES_LAST_COLUMN}{row_number}"
        request = self._values.update(
            spreadsheetId=self.spreadsheet_id,
            range=cell,
            valueInputOption="RAW",
            body={"values": [[checked_at.isoformat()]]},
        )
        self._execute(request, action="update source")

    @staticmethod
    def _execute(request: Any, *, action: str) -> dict[str, Any]:
        try:
            return request.execute() or {}
        except HttpError as exc:
            status = getattr(exc.resp, "status", "unknown")
            raise SheetsError(f"Sheets {action} failed: HTTP {status}", code=f"SHEETS_{status}") from exc
        except (GoogleAuthError, httplib2.HttpLib2Error, OSError) as exc:
            raise SheetsError(f"Sheets {action} failed: {exc}") from exc
