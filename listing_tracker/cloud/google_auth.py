"""Google OAuth credentials for Sheets and Drive."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from httplib2 import HttpLib2Error

from listing_tracker.config import Settings, settings as default_settings
from listing_tracker.errors import ErrorCode, TrackerError

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive.file",
]

AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"

# What a request's execute() raises: API errors plus transport and credential failures
REQUEST_ERRORS = (HttpError, HttpLib2Error, OSError, GoogleAuthError)


class GoogleAuthService:
    """
    OAuth identity for the Google document services.

    Client configuration comes from ``data/credentials.json`` (either the
    console download with a ``web``/``installed`` key, or a flat
    ``client_id``/``client_secret`` object), falling back to settings.
    The user token is stored at ``data/token.json``.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self.token_path = Path(self.settings.token_path)
        self._client_config = self._load_client_config(Path(self.settings.credentials_path))
        self._credentials: Optional[Credentials] = self._load_token()

    # =========================================================================
    # Configuration
    # =========================================================================

    def _load_client_config(self, path: Path) -> Optional[dict[str, Any]]:
        client: Optional[dict[str, Any]] = None

        if path.exists():
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
                client = data.get("web") or data.get("installed") or data
            except (OSError, ValueError) as e:
                logger.warning(f"Invalid OAuth client file {path}: {e}")

        if not client and self.settings.google_client_id and self.settings.google_client_secret:
            client = {
                "client_id": self.settings.google_client_id,
                "client_secret": self.settings.google_client_secret,
            }

        if not client or not client.get("client_id"):
            return None

        return {
            "web": {
                "client_id": client["client_id"],
                "client_secret": client.get("client_secret", ""),
                "auth_uri": client.get("auth_uri", AUTH_URI),
                "token_uri": client.get("token_uri", TOKEN_URI),
                "redirect_uris": [client.get("redirect_uri") or self.settings.google_redirect_uri],
            }
        }

    def _load_token(self) -> Optional[Credentials]:
        if not self.token_path.exists():
            return None
        try:
            return Credentials.from_authorized_user_file(str(self.token_path), SCOPES)
        except (OSError, ValueError) as e:
            logger.warning(f"Invalid OAuth token file {self.token_path}: {e}")
            return None

    def _save_token(self, credentials: Credentials) -> None:
        self.token_path.parent.mkdir(parents=True, exist_ok=True)
        self.token_path.write_text(credentials.to_json(), encoding="utf-8")
        logger.info(f"Saved OAuth token to {self.token_path}")

    @property
    def is_configured(self) -> bool:
        return self._client_config is not None

    def _flow(self) -> Flow:
        if self._client_config is None:
            raise TrackerError(ErrorCode.SHEETS_AUTH_REQUIRED, "OAuth credentials not configured")
        return Flow.from_client_config(
            self._client_config,
            scopes=SCOPES,
            redirect_uri=self._client_config["web"]["redirect_uris"][0],
            autogenerate_code_verifier=False,
        )

    # =========================================================================
    # OAuth flow
    # =========================================================================

    def get_auth_url(self) -> str:
        """Consent URL requesting offline access."""
        auth_url, _ = self._flow().authorization_url(
            access_type="offline",
            prompt="consent",
            include_granted_scopes="true",
        )
        return auth_url

    async def exchange_code(self, code: str) -> None:
        """Exchange an authorization code for a token and persist it."""
        flow = self._flow()
        await asyncio.to_thread(flow.fetch_token, code=code)
        self._credentials = flow.credentials
        self._save_token(self._credentials)

    # =========================================================================
    # Credentials
    # =========================================================================

    async def refresh_if_needed(self, code: ErrorCode = ErrorCode.SHEETS_AUTH_REQUIRED) -> Credentials:
        """
        Return valid credentials, refreshing an expired access token.

        Args:
            code: Error code raised when no usable credentials exist

        Raises:
            TrackerError: SHEETS_AUTH_REQUIRED (or ``code``) when unauthenticated
        """
        credentials = self._credentials
        if credentials is None:
            raise TrackerError(code, "No OAuth token; authorize via /api/auth/url")

        if credentials.expired or not credentials.token:
            if not credentials.refresh_token:
                raise TrackerError(code, "OAuth token expired and cannot be refreshed")
            try:
                await asyncio.to_thread(credentials.refresh, Request())
            except GoogleAuthError as e:
                logger.error(f"OAuth token refresh failed: {e}")
                raise TrackerError(code, f"Token refresh failed: {e}")
            self._save_token(credentials)

        return credentials

    async def build_service(
        self,
        name: str,
        version: str,
        code: ErrorCode = ErrorCode.SHEETS_AUTH_REQUIRED,
    ):
        """Authenticated API client, e.g. ``build_service("drive", "v3")``."""
        credentials = await self.refresh_if_needed(code)
        return await asyncio.to_thread(build, name, version, credentials=credentials, cache_discovery=False)

    async def is_authenticated(self) -> bool:
        """True if credentials exist and a trivial Drive call succeeds."""
        if self._credentials is None:
            return False
        try:
            drive = await self.build_service("drive", "v3")
            await asyncio.to_thread(drive.files().list(pageSize=1, fields="files(id)").execute)
            return True
        except Exception as e:
            logger.info(f"Google authentication check failed: {type(e).__name__}: {e}")
            return False
