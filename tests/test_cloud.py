"""Tests for the Google OAuth, Sheets and Drive wrappers with mocked API clients."""

import json
import socket
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from google.auth.exceptions import RefreshError, TransportError
from google.oauth2.credentials import Credentials
from googleapiclient.errors import HttpError
from httplib2 import ServerNotFoundError

from listing_tracker.cloud.drive import GoogleDriveService, escape_query_value
from listing_tracker.cloud.google_auth import GoogleAuthService
from listing_tracker.cloud.sheets import GoogleSheetsService
from listing_tracker.errors import ErrorCode, TrackerError
from listing_tracker.snapshot import SHEET_HEADERS, Observation, OpenClosedStatus


def http_error(status: int) -> HttpError:
    return HttpError(SimpleNamespace(status=status, reason="error"), b"{}")


class StubAuth:
    """Hands out one mocked client per API name."""

    def __init__(self):
        self.services = {"sheets": MagicMock(), "drive": MagicMock()}
        self.codes = []

    async def build_service(self, name, version, code=ErrorCode.SHEETS_AUTH_REQUIRED):
        self.codes.append(code)
        return self.services[name]


@pytest.fixture
def stub_auth():
    return StubAuth()


def _observation() -> Observation:
    return Observation(
        date="2026-03-10",
        checked_at="2026-03-10T09:00:00.000Z",
        link="https://www.google.com/maps/place/Joes+Cafe/ChIJ123",
        name="Joe's Cafe",
        address=None,
        webpage="joescafe.ie",
        phone="0112345678",
        open_closed_status=OpenClosedStatus.OPEN,
        review_count=10,
        star_rating=4.0,
    )


# =============================================================================
# OAuth
# =============================================================================

class TestGoogleAuth:
    def _write_client(self, test_settings, payload):
        test_settings.credentials_path.parent.mkdir(parents=True, exist_ok=True)
        test_settings.credentials_path.write_text(json.dumps(payload))

    async def test_unconfigured(self, test_settings):
        auth = GoogleAuthService(test_settings)

        assert not auth.is_configured
        assert await auth.is_authenticated() is False
        with pytest.raises(TrackerError) as exc:
            auth.get_auth_url()
        assert exc.value.code == ErrorCode.SHEETS_AUTH_REQUIRED

    def test_auth_url_from_console_download(self, test_settings):
        self._write_client(test_settings, {"installed": {"client_id": "abc.apps.googleusercontent.com", "client_secret": "s"}})
        auth = GoogleAuthService(test_settings)

        url = auth.get_auth_url()
        assert url.startswith("https://accounts.google.com/o/oauth2/auth")
        assert "client_id=abc.apps.googleusercontent.com" in url
        assert "access_type=offline" in url
        assert "prompt=consent" in url

    def test_client_from_settings(self, test_settings):
        test_settings.google_client_id = "env-client"
        test_settings.google_client_secret = "env-secret"

        assert GoogleAuthService(test_settings).is_configured

    async def test_missing_token_uses_given_error_code(self, test_settings):
        auth = GoogleAuthService(test_settings)

        with pytest.raises(TrackerError) as exc:
            await auth.refresh_if_needed(ErrorCode.DRIVE_AUTH_REQUIRED)
        assert exc.value.code == ErrorCode.DRIVE_AUTH_REQUIRED

    async def test_expired_without_refresh_token(self, test_settings):
        auth = GoogleAuthService(test_settings)
        auth._credentials = Credentials(token=None)

        with pytest.raises(TrackerError) as exc:
            await auth.refresh_if_needed()
        assert exc.value.code == ErrorCode.SHEETS_AUTH_REQUIRED

    async def test_refresh_failure(self, test_settings, monkeypatch):
        auth = GoogleAuthService(test_settings)
        credentials = Credentials(
            token=None,
            refresh_token="r",
            client_id="c",
            client_secret="s",
            token_uri="https://oauth2.googleapis.com/token",
        )

        def refuse(request):
            raise RefreshError("invalid_grant")

        monkeypatch.setattr(credentials, "refresh", refuse)
        auth._credentials = credentials

        with pytest.raises(TrackerError) as exc:
            await auth.refresh_if_needed()
        assert "invalid_grant" in str(exc.value)

    async def test_exchange_code_persists_token(self, test_settings, monkeypatch):
        self._write_client(test_settings, {"web": {"client_id": "c", "client_secret": "s"}})
        auth = GoogleAuthService(test_settings)
        issued = Credentials(
            token="access",
            refresh_token="refresh",
            client_id="c",
            client_secret="s",
            token_uri="https://oauth2.googleapis.com/token",
            expiry=datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(hours=1),
        )
        exchanged = []

        class StubFlow:
            credentials = issued

            def fetch_token(self, code):
                exchanged.append(code)

        def no_network(self, request):
            raise AssertionError("unexpected token refresh")

        monkeypatch.setattr(auth, "_flow", lambda: StubFlow())
        monkeypatch.setattr(Credentials, "refresh", no_network)

        await auth.exchange_code("4/abc")

        assert exchanged == ["4/abc"]
        assert json.loads(test_settings.token_path.read_text())["refresh_token"] == "refresh"
        reloaded = GoogleAuthService(test_settings)
        assert (await reloaded.refresh_if_needed()).token == "access"


# =============================================================================
# Sheets
# =============================================================================

class TestSheets:
    async def test_append_is_raw_insert(self, stub_auth, test_settings):
        sheets = GoogleSheetsService(stub_auth, test_settings)
        client = stub_auth.services["sheets"]

        await sheets.append_observation("sheet-1", _observation())

        kwargs = client.spreadsheets().values().append.call_args.kwargs
        assert kwargs["spreadsheetId"] == "sheet-1"
        assert kwargs["range"] == "Snapshots!A:M"
        assert kwargs["valueInputOption"] == "RAW"
        assert kwargs["insertDataOption"] == "INSERT_ROWS"
        row = kwargs["body"]["values"][0]
        assert len(row) == len(SHEET_HEADERS)
        assert row[6] == "0112345678"

    @pytest.mark.parametrize(
        "error",
        [
            http_error(403),
            socket.timeout("timed out"),
            ConnectionResetError("connection reset by peer"),
            TransportError("connection aborted"),
            ServerNotFoundError("Unable to find the server at sheets.googleapis.com"),
        ],
    )
    async def test_append_failure(self, stub_auth, test_settings, error):
        client = stub_auth.services["sheets"]
        client.spreadsheets().values().append.return_value.execute.side_effect = error

        with pytest.raises(TrackerError) as exc:
            await GoogleSheetsService(stub_auth, test_settings).append_observation("sheet-1", _observation())
        assert exc.value.code == ErrorCode.SHEETS_WRITE_FAILED

    async def test_create_writes_headers_and_moves_to_folder(self, stub_auth, test_settings):
        sheets_client = stub_auth.services["sheets"]
        drive_client = stub_auth.services["drive"]
        sheets_client.spreadsheets().create.return_value.execute.return_value = {
            "spreadsheetId": "abc",
            "sheets": [{"properties": {"sheetId": 7}}],
        }
        drive_client.files().get.return_value.execute.return_value = {"parents": ["root"]}

        spreadsheet_id = await GoogleSheetsService(stub_auth, test_settings).create_spreadsheet("Joe's Cafe", "folder-1")

        assert spreadsheet_id == "abc"
        create_body = sheets_client.spreadsheets().create.call_args.kwargs["body"]
        assert create_body["properties"]["title"] == "Google Business - Joe's Cafe"
        header = sheets_client.spreadsheets().values().update.call_args.kwargs
        assert header["range"] == "Snapshots!A1:M1"
        assert header["body"] == {"values": [SHEET_HEADERS]}
        requests = sheets_client.spreadsheets().batchUpdate.call_args.kwargs["body"]["requests"]
        assert requests[1]["updateSheetProperties"]["properties"] == {"sheetId": 7, "gridProperties": {"frozenRowCount": 1}}
        move = drive_client.files().update.call_args.kwargs
        assert move["addParents"] == "folder-1"
        assert move["removeParents"] == "root"

    @pytest.mark.parametrize(
        "outcome,expected",
        [
            ({"id": "abc", "trashed": False}, True),
            ({"id": "abc", "trashed": True}, False),
            (http_error(404), False),
            (http_error(500), True),
            (socket.timeout("timed out"), True),
        ],
    )
    async def test_spreadsheet_exists(self, stub_auth, test_settings, outcome, expected):
        execute = stub_auth.services["drive"].files().get.return_value.execute
        if isinstance(outcome, Exception):
            execute.side_effect = outcome
        else:
            execute.return_value = outcome

        assert await GoogleSheetsService(stub_auth, test_settings).spreadsheet_exists("abc") is expected

    async def test_last_valid_observation(self, stub_auth, test_settings):
        good = [str(c) for c in _observation().to_row()]
        failed = ["2026-03-11", "2026-03-11T09:00:00.000Z", "", "", "", "", "", "UNKNOWN", "", "", "", "BOT_DETECTED"]
        stub_auth.services["sheets"].spreadsheets().values().get.return_value.execute.return_value = {
            "values": [good, failed]
        }

        baseline = await GoogleSheetsService(stub_auth, test_settings).get_last_valid_observation("abc")
        assert baseline.date == "2026-03-10"
        assert baseline.review_count == 10
        get_kwargs = stub_auth.services["sheets"].spreadsheets().values().get.call_args.kwargs
        assert get_kwargs["range"] == "Snapshots!A2:M"

    async def test_last_valid_observation_read_error(self, stub_auth, test_settings):
        stub_auth.services["sheets"].spreadsheets().values().get.return_value.execute.side_effect = http_error(500)
        assert await GoogleSheetsService(stub_auth, test_settings).get_last_valid_observation("abc") is None


# =============================================================================
# Drive
# =============================================================================

class TestDrive:
    def test_escape_query_value(self):
        assert escape_query_value("Joe's \\ Cafe") == "Joe\\'s \\\\ Cafe"

    async def test_find_or_create_folder_creates_when_missing(self, stub_auth, test_settings):
        client = stub_auth.services["drive"]
        client.files().list.return_value.execute.return_value = {"files": []}
        client.files().create.return_value.execute.return_value = {"id": "new-folder"}

        folder_id = await GoogleDriveService(stub_auth, test_settings).find_or_create_folder("Joe's Cafe", "root-1")

        assert folder_id == "new-folder"
        query = client.files().list.call_args.kwargs["q"]
        assert "name='Joe\\'s Cafe'" in query
        assert "'root-1' in parents" in query
        assert client.files().create.call_args.kwargs["body"]["parents"] == ["root-1"]
        assert set(stub_auth.codes) == {ErrorCode.DRIVE_AUTH_REQUIRED}

    async def test_root_folder_is_cached(self, stub_auth, test_settings):
        client = stub_auth.services["drive"]
        client.files().list.return_value.execute.return_value = {"files": [{"id": "root-1"}]}
        drive = GoogleDriveService(stub_auth, test_settings)

        assert await drive.get_or_create_root_folder() == "root-1"
        assert await drive.get_or_create_root_folder() == "root-1"
        assert client.files().list.call_count == 1

    async def test_create_folder_failure(self, stub_auth, test_settings):
        client = stub_auth.services["drive"]
        client.files().list.return_value.execute.return_value = {"files": []}
        client.files().create.return_value.execute.side_effect = http_error(403)

        with pytest.raises(TrackerError) as exc:
            await GoogleDriveService(stub_auth, test_settings).create_business_folder(None, "root-1")
        assert exc.value.code == ErrorCode.DRIVE_WRITE_FAILED
        assert client.files().create.call_args.kwargs["body"]["name"] == "Unknown Business"

    async def test_upload_screenshot_is_public(self, stub_auth, test_settings, tmp_path):
        client = stub_auth.services["drive"]
        client.files().list.return_value.execute.return_value = {"files": [{"id": "shots"}]}
        client.files().create.return_value.execute.return_value = {
            "id": "file-1",
            "webViewLink": "https://drive.google.com/file/d/file-1/view",
        }
        image = tmp_path / "shot.png"
        image.write_bytes(b"\x89PNG\r\n\x1a\n")

        link = await GoogleDriveService(stub_auth, test_settings).upload_screenshot(image, "folder-1", "stamp.png")

        assert link == "https://drive.google.com/file/d/file-1/view"
        body = client.files().create.call_args.kwargs["body"]
        assert body == {"name": "stamp.png", "parents": ["shots"]}
        permission = client.permissions().create.call_args.kwargs
        assert permission == {"fileId": "file-1", "body": {"role": "reader", "type": "anyone"}}

    async def test_upload_missing_file(self, stub_auth, test_settings, tmp_path):
        stub_auth.services["drive"].files().list.return_value.execute.return_value = {"files": [{"id": "shots"}]}

        with pytest.raises(TrackerError) as exc:
            await GoogleDriveService(stub_auth, test_settings).upload_screenshot(tmp_path / "gone.png", "folder-1", "x.png")
        assert exc.value.code == ErrorCode.DRIVE_WRITE_FAILED

    async def test_create_folder_transport_failure(self, stub_auth, test_settings):
        client = stub_auth.services["drive"]
        client.files().create.return_value.execute.side_effect = socket.timeout("timed out")

        with pytest.raises(TrackerError) as exc:
            await GoogleDriveService(stub_auth, test_settings).create_folder("Joe's Cafe", "root-1")
        assert exc.value.code == ErrorCode.DRIVE_WRITE_FAILED

    async def test_upload_permission_transport_failure(self, stub_auth, test_settings, tmp_path):
        client = stub_auth.services["drive"]
        client.files().list.return_value.execute.return_value = {"files": [{"id": "shots"}]}
        client.files().create.return_value.execute.return_value = {"id": "file-1"}
        client.permissions().create.return_value.execute.side_effect = TransportError("connection aborted")
        image = tmp_path / "shot.png"
        image.write_bytes(b"\x89PNG\r\n\x1a\n")

        with pytest.raises(TrackerError) as exc:
            await GoogleDriveService(stub_auth, test_settings).upload_screenshot(image, "folder-1", "x.png")
        assert exc.value.code == ErrorCode.DRIVE_WRITE_FAILED
