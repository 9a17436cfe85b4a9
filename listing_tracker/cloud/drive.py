"""Google Drive folders and screenshot uploads."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from googleapiclient.http import MediaFileUpload

from listing_tracker.cloud.google_auth import REQUEST_ERRORS, GoogleAuthService
from listing_tracker.config import Settings, settings as default_settings
from listing_tracker.errors import ErrorCode, TrackerError

logger = logging.getLogger(__name__)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"


def escape_query_value(value: str) -> str:
    """Quote a value for a Drive ``q`` expression."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


class GoogleDriveService:
    """Folder tree ``<root>/<business>/screenshots`` and public screenshot links."""

    def __init__(self, auth: GoogleAuthService, settings: Optional[Settings] = None):
        self.auth = auth
        self.settings = settings or default_settings
        self._root_folder_id: Optional[str] = None

    async def _drive(self):
        return await self.auth.build_service("drive", "v3", code=ErrorCode.DRIVE_AUTH_REQUIRED)

    async def find_folder(self, name: str, parent_id: Optional[str] = None) -> Optional[str]:
        query = f"name='{escape_query_value(name)}' and mimeType='{FOLDER_MIME_TYPE}' and trashed=false"
        if parent_id:
            query += f" and '{parent_id}' in parents"

        drive = await self._drive()
        try:
            result = await asyncio.to_thread(
                drive.files().list(q=query, fields="files(id, name)", pageSize=1).execute
            )
        except REQUEST_ERRORS as e:
            logger.error(f"Error looking up folder {name!r}: {e}")
            return None

        files = result.get("files", [])
        return files[0]["id"] if files else None

    async def create_folder(self, name: str, parent_id: Optional[str] = None) -> str:
        body = {"name": name, "mimeType": FOLDER_MIME_TYPE}
        if parent_id:
            body["parents"] = [parent_id]

        drive = await self._drive()
        try:
            folder = await asyncio.to_thread(drive.files().create(body=body, fields="id").execute)
        except REQUEST_ERRORS as e:
            raise TrackerError(ErrorCode.DRIVE_WRITE_FAILED, f"Failed to create folder {name!r}: {e}")

        logger.info(f"Created Drive folder {name!r} ({folder['id']})")
        return folder["id"]

    async def find_or_create_folder(self, name: str, parent_id: Optional[str] = None) -> str:
        existing = await self.find_folder(name, parent_id)
        if existing:
            return existing
        return await self.create_folder(name, parent_id)

    async def get_or_create_root_folder(self) -> str:
        if self._root_folder_id is None:
            self._root_folder_id = await self.find_or_create_folder(self.settings.drive_root_folder_name)
        return self._root_folder_id

    async def create_business_folder(self, business_name: Optional[str], root_folder_id: str) -> str:
        return await self.find_or_create_folder(business_name or "Unknown Business", root_folder_id)

    async def get_or_create_screenshots_folder(self, business_folder_id: str) -> str:
        return await self.find_or_create_folder(self.settings.drive_screenshots_folder_name, business_folder_id)

    async def upload_screenshot(self, file_path: Path, business_folder_id: str, file_name: str) -> str:
        """
        Upload a PNG into the business's screenshots folder.

        Returns:
            Public (anyone with the link) view URL

        Raises:
            TrackerError: DRIVE_WRITE_FAILED on upload or permission failure
        """
        screenshots_folder_id = await self.get_or_create_screenshots_folder(business_folder_id)
        drive = await self._drive()

        try:
            media = MediaFileUpload(str(file_path), mimetype="image/png")
            uploaded = await asyncio.to_thread(
                drive.files()
                .create(
                    body={"name": file_name, "parents": [screenshots_folder_id]},
                    media_body=media,
                    fields="id, webViewLink",
                )
                .execute
            )
            await asyncio.to_thread(
                drive.permissions()
                .create(fileId=uploaded["id"], body={"role": "reader", "type": "anyone"})
                .execute
            )
        except REQUEST_ERRORS as e:
            raise TrackerError(ErrorCode.DRIVE_WRITE_FAILED, f"Screenshot upload failed: {e}")

        link = uploaded.get("webViewLink", "")
        logger.info(f"Uploaded screenshot {file_name} -> {link}")
        return link
