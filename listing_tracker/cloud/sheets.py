"""Google Sheets observation ledger."""

import asyncio
import logging
from typing import Optional

from googleapiclient.errors import HttpError

from listing_tracker.cloud.drive import escape_query_value
from listing_tracker.cloud.google_auth import REQUEST_ERRORS, GoogleAuthService
from listing_tracker.config import Settings, settings as default_settings
from listing_tracker.errors import ErrorCode, TrackerError
from listing_tracker.snapshot import SHEET_HEADERS, Observation, select_last_valid

logger = logging.getLogger(__name__)

SPREADSHEET_MIME_TYPE = "application/vnd.google-apps.spreadsheet"
LAST_COLUMN = chr(ord("A") + len(SHEET_HEADERS) - 1)  # "M"


class GoogleSheetsService:
    """
    One spreadsheet per business with a single observations tab.

    Rows are written with ``valueInputOption=RAW`` so values such as phone
    digits with a leading zero are stored exactly as observed.
    """

    def __init__(self, auth: GoogleAuthService, settings: Optional[Settings] = None):
        self.auth = auth
        self.settings = settings or default_settings

    @property
    def tab(self) -> str:
        return self.settings.sheet_tab_name

    def title_for(self, business_name: Optional[str]) -> str:
        return f"{self.settings.sheet_title_prefix}{business_name or 'Unknown'}"

    async def create_spreadsheet(self, business_name: Optional[str], folder_id: Optional[str] = None) -> str:
        """
        Create the ledger with a bold header row, optionally inside ``folder_id``.

        Returns:
            Spreadsheet id

        Raises:
            TrackerError: SHEETS_WRITE_FAILED on API failure
        """
        sheets = await self.auth.build_service("sheets", "v4")
        body = {
            "properties": {"title": self.title_for(business_name)},
            "sheets": [{"properties": {"title": self.tab}}],
        }

        try:
            created = await asyncio.to_thread(
                sheets.spreadsheets()
                .create(body=body, fields="spreadsheetId,sheets.properties.sheetId")
                .execute
            )
            spreadsheet_id = created["spreadsheetId"]
            sheet_id = created["sheets"][0]["properties"]["sheetId"]

            await asyncio.to_thread(
                sheets.spreadsheets()
                .values()
                .update(
                    spreadsheetId=spreadsheet_id,
                    range=f"{self.tab}!A1:{LAST_COLUMN}1",
                    valueInputOption="RAW",
                    body={"values": [SHEET_HEADERS]},
                )
                .execute
            )
            await asyncio.to_thread(
                sheets.spreadsheets()
                .batchUpdate(
                    spreadsheetId=spreadsheet_id,
                    body={
                        "requests": [
                            {
                                "repeatCell": {
                                    "range": {"sheetId": sheet_id, "startRowIndex": 0, "endRowIndex": 1},
                                    "cell": {
                                        "userEnteredFormat": {
                                            "textFormat": {"bold": True},
                                            "backgroundColor": {"red": 0.9, "green": 0.9, "blue": 0.9},
                                        }
                                    },
                                    "fields": "userEnteredFormat(textFormat,backgroundColor)",
                                }
                            },
                            {
                                "updateSheetProperties": {
                                    "properties": {"sheetId": sheet_id, "gridProperties": {"frozenRowCount": 1}},
                                    "fields": "gridProperties.frozenRowCount",
                                }
                            },
                        ]
                    },
                )
                .execute
            )
        except REQUEST_ERRORS as e:
            raise TrackerError(ErrorCode.SHEETS_WRITE_FAILED, f"Failed to create spreadsheet: {e}")

        if folder_id:
            await self._move_to_folder(spreadsheet_id, folder_id)

        logger.info(f"Created spreadsheet {spreadsheet_id} for {business_name!r}")
        return spreadsheet_id

    async def _move_to_folder(self, file_id: str, folder_id: str) -> None:
        drive = await self.auth.build_service("drive", "v3")
        try:
            current = await asyncio.to_thread(drive.files().get(fileId=file_id, fields="parents").execute)
            await asyncio.to_thread(
                drive.files()
                .update(
                    fileId=file_id,
                    addParents=folder_id,
                    removeParents=",".join(current.get("parents", [])),
                    fields="id, parents",
                )
                .execute
            )
        except REQUEST_ERRORS as e:
            raise TrackerError(ErrorCode.SHEETS_WRITE_FAILED, f"Failed to move spreadsheet into folder: {e}")

    async def spreadsheet_exists(self, spreadsheet_id: str) -> bool:
        """
        False if the spreadsheet was deleted or trashed.

        Errors other than not-found are logged and treated as existing so a
        transient failure never triggers a duplicate ledger.
        """
        drive = await self.auth.build_service("drive", "v3")
        try:
            meta = await asyncio.to_thread(
                drive.files().get(fileId=spreadsheet_id, fields="id, trashed").execute
            )
        except HttpError as e:
            if e.resp.status in (404, 410):
                return False
            logger.warning(f"Could not verify spreadsheet {spreadsheet_id}: {e}")
            return True
        except REQUEST_ERRORS as e:
            logger.warning(f"Could not verify spreadsheet {spreadsheet_id}: {type(e).__name__}: {e}")
            return True
        return not meta.get("trashed", False)

    async def find_spreadsheet_in_folder(self, folder_id: str, business_name: Optional[str]) -> Optional[str]:
        title = escape_query_value(self.title_for(business_name))
        query = (
            f"name='{title}' and '{folder_id}' in parents "
            f"and mimeType='{SPREADSHEET_MIME_TYPE}' and trashed=false"
        )
        drive = await self.auth.build_service("drive", "v3")
        try:
            result = await asyncio.to_thread(
                drive.files().list(q=query, fields="files(id, name)", pageSize=1).execute
            )
        except REQUEST_ERRORS as e:
            logger.error(f"Error searching folder {folder_id} for spreadsheet: {e}")
            return None
        files = result.get("files", [])
        return files[0]["id"] if files else None

    async def append_observation(self, spreadsheet_id: str, observation: Observation) -> None:
        """
        Append one ledger row.

        Raises:
            TrackerError: SHEETS_WRITE_FAILED if the row was not written
        """
        sheets = await self.auth.build_service("sheets", "v4")
        try:
            await asyncio.to_thread(
                sheets.spreadsheets()
                .values()
                .append(
                    spreadsheetId=spreadsheet_id,
                    range=f"{self.tab}!A:{LAST_COLUMN}",
                    valueInputOption="RAW",
                    insertDataOption="INSERT_ROWS",
                    body={"values": [observation.to_row()]},
                )
                .execute
            )
        except REQUEST_ERRORS as e:
            raise TrackerError(ErrorCode.SHEETS_WRITE_FAILED, str(e))

    async def get_rows(self, spreadsheet_id: str) -> list[list[str]]:
        """Data rows (header excluded). Trailing empty cells are omitted by the API."""
        sheets = await self.auth.build_service("sheets", "v4")
        result = await asyncio.to_thread(
            sheets.spreadsheets()
            .values()
            .get(spreadsheetId=spreadsheet_id, range=f"{self.tab}!A2:{LAST_COLUMN}")
            .execute
        )
        return result.get("values", [])

    async def get_last_valid_observation(self, spreadsheet_id: str) -> Optional[Observation]:
        """Most recent row with an empty error code and a non-empty name, or None."""
        try:
            rows = await self.get_rows(spreadsheet_id)
        except REQUEST_ERRORS as e:
            logger.warning(f"Could not read baseline from {spreadsheet_id}: {e}")
            return None
        return select_last_valid(rows)
