from datetime import datetime, timezone

import httplib2
import pytest
from googleapiclient.errors import HttpError

from app.clients.sheets import GoogleSheetsClient, SheetsError, parse_service_account


class FakeRequest:
    def __init__(self, response=None, error=None):
        self._response = response
        self._error = error

    def execute(self):
        if self._error is not None:
            raise self._error
        return self._response


class FakeValues:
    def __init__(self, *, rows=None, error=None):
        self.rows = rows or []
        self.error = error
        self.calls: list[tuple[str, dict]] = []

    def get(self, **kwargs):
        self.calls.append(("get", kwargs))
        return FakeRequest({"values": self.rows}, self.error)

    def append(self, **kwargs):
        self.calls.append(("append", kwargs))
        return FakeRequest({"updates": {"updatedRows": len(kwargs["body"]["values"])}}, self.error)

    def update(self, **kwargs):
        self.calls.append(("update", kwargs))
        return FakeRequest({}, self.error)


class FakeSpreadsheets:
    def __init__(self, values):
        self._values = values

    def values(self):
        return self._values


class FakeService:
    def __init__(self, values):
        self._spreadsheets = FakeSpreadsheets(values)

    def spreadsheets(self):
        return self._spreadsheets


def _client(values: FakeValues) -> GoogleSheetsClient:
    return GoogleSheetsClient("sheet-123", service=FakeService(values))


def test_read_rows_skips_header_and_stringifies():
    values = FakeValues(rows=[["Zypp", "", "", 3]])

    rows = _client(values).read_rows()

    assert rows == [["Zypp", "", "", "3"]]
    assert values.calls[0][1]["range"] == "Funding_Data!A2:K"


def test_append_and_update_use_raw_values():
    values = FakeValues()
    client = _client(values)

    assert client.append_rows([["Zypp"], ["Acme"]]) == 2
    client.update_row(5, ["Zypp", "https://zypp.app"])

    append_call, update_call = values.calls
    assert append_call[1]["valueInputOption"] == "RAW"
    assert append_call[1]["insertDataOption"] == "INSERT_ROWS"
    assert update_call[1]["range"] == "Funding_Data!A5:K5"
    assert update_call[1]["body"] == {"values": [["Zypp", "https://zypp.app"]]}


def test_append_without_rows_skips_request():
    values = FakeValues()
    assert _client(values).append_rows([]) == 0
    assert values.calls == []


def test_update_refuses_header_row():
    with pytest.raises(ValueError):
        _client(FakeValues()).update_row(1, ["Company"])


def test_http_errors_become_sheets_errors():
    error = HttpError(httplib2.Response({"status": "429"}), b"rate limited")

    with pytest.raises(SheetsError) as excinfo:
        _client(FakeValues(error=error)).read_rows()
    assert excinfo.value.code == "SHEETS_429"


def test_parse_service_account_validates_shape():
    assert parse_service_account('{"client_email": "bot@example.iam.gserviceaccount.com"}')["client_email"]
    with pytest.raises(ValueError):
        parse_service_account("not json")
    with pytest.raises(ValueError):
        parse_service_account('{"type": "service_account"}')


def test_client_requires_spreadsheet_id():
    with pytest.raises(ValueError):
        GoogleSheetsClient("", service=FakeService(FakeValues()))


def test_read_sources_keeps_active_rows_with_urls():
    values = FakeValues(
        rows=[
            ["tc", "TechCrunch", "https://techcrunch.com/feed", "RSS", "Active", "2024-01-05T10:00:00+00:00"],
            ["", "", "https://inc42.com/feed"],
            ["ys", "YourStory", "https://yourstory.com/feed", "RSS", "paused"],
            ["blank", "No URL", ""],
        ]
    )

    sources = _client(values).read_sources()

    assert values.calls[0][1]["range"] == "Sources!A2:F"
    assert [source.url for source in sources] == ["https://techcrunch.com/feed", "https://inc42.com/feed"]
    techcrunch, inc42 = sources
    assert techcrunch.source_id == "tc"
    assert techcrunch.last_checked == "2024-01-05T10:00:00+00:00"
    assert techcrunch.row_number == 2
    assert inc42.source_id == "source_1"
    assert inc42.name == "Unknown"
    assert inc42.kind == "RSS"
    assert inc42.row_number == 3


def test_update_source_checked_writes_last_checked_cell():
    values = FakeValues()
    client = GoogleSheetsClient("sheet-123", sources_sheet_name="Feeds", service=FakeService(values))

    client.update_source_checked(4, datetime(2024, 1, 6, 9, 30, tzinfo=timezone.utc))

    (_, kwargs), = values.calls
    assert kwargs["range"] == "Feeds!F4"
    assert kwargs["valueInputOption"] == "RAW"
    assert kwargs["body"] == {"values": [["2024-01-06T09:30:00+00:00"]]}
    with pytest.raises(ValueError):
        client.update_source_checked(1, datetime(2024, 1, 6, tzinfo=timezone.utc))
