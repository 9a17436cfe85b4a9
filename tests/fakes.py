"""In-memory stand-ins for the browser and Google services."""

import asyncio
from pathlib import Path
from typing import Optional

from listing_tracker.errors import ErrorCode, TrackerError
from listing_tracker.ingest.snapshot_probe import HtmlSnapshotProbe
from listing_tracker.snapshot import ExtractedData, Observation, OpenClosedStatus, select_last_valid

LISTING_HTML = """
<html>
<head><title>Joe's Cafe - Google Maps</title></head>
<body>
<div role="main" aria-label="Joe's Cafe">
  <h1 class="DUwDvf">Joe's Cafe</h1>
  <div class="F7nice">
    <span><span aria-hidden="true">4.3</span><span role="img" aria-label="4.3 stars"></span></span>
    <span><span role="img" aria-label="1,234 reviews">(1,234)</span></span>
  </div>
  <button data-value="Directions">Directions</button>
  <button data-item-id="address" aria-label="Address: 12 Main Street, Dublin 2">
    <div class="Io6YTe">12 Main Street, Dublin 2</div>
  </button>
  <a data-item-id="authority" href="https://www.joescafe.ie/menu" aria-label="Website: joescafe.ie">
    <div class="Io6YTe">joescafe.ie</div>
  </a>
  <button data-item-id="phone:tel:+35312345678" aria-label="Phone: +353 1 234 5678">
    <div class="Io6YTe">+353 1 234 5678</div>
  </button>
  <button data-item-id="oh" aria-label="Show open hours for the week">Open - Closes 5 pm</button>
  <div class="related">
    <span role="img" aria-label="2.1 stars"></span>
    <span aria-label="99 reviews">Another Place</span>
  </div>
</div>
</body>
</html>
"""

LOGGED_IN_HTML = '<html><body><a aria-label="Google Account: Jane Doe" href="#">J</a></body></html>'
LOGGED_OUT_HTML = '<html><body><a href="https://accounts.google.com/ServiceLogin?hl=en">Sign in</a></body></html>'
BLANK_HTML = "<html><body><div>Loading</div></body></html>"


# =============================================================================
# Browser
# =============================================================================

class FakePage:
    """Playwright page double showing a static HTML snapshot."""

    def __init__(self, html: str = BLANK_HTML, cookies=(), goto_error: Optional[Exception] = None):
        self.set_html(html, cookies)
        self.goto_error = goto_error
        self.screenshot_error: Optional[Exception] = None
        self.closed = False
        self.visited: list[str] = []
        self.clicked: list[str] = []
        self.viewport: Optional[dict] = None

    def set_html(self, html: str, cookies=()) -> None:
        self.probe = HtmlSnapshotProbe(html, cookies)

    async def goto(self, url, **kwargs):
        self.visited.append(url)
        if self.goto_error is not None:
            raise self.goto_error

    async def wait_for_selector(self, selector, **kwargs):
        return None

    async def click(self, selector, **kwargs):
        self.clicked.append(selector)

    async def set_viewport_size(self, size):
        self.viewport = size

    async def screenshot(self, path, **kwargs):
        if self.screenshot_error is not None:
            raise self.screenshot_error
        Path(path).write_bytes(b"\x89PNG\r\n\x1a\n")

    def is_closed(self) -> bool:
        return self.closed

    async def close(self):
        self.closed = True


class LivePageProbe:
    """Probe that always reads the page's current snapshot."""

    def __init__(self, page: FakePage):
        self.page = page

    def __getattr__(self, name):
        return getattr(self.page.probe, name)


class FakeContext:
    def __init__(self, pages: list[FakePage], options: dict):
        self._pages = pages
        self.options = options
        self.opened: list[FakePage] = []
        self.init_scripts: list[str] = []
        self.closed = False

    async def add_init_script(self, script):
        self.init_scripts.append(script)

    async def new_page(self) -> FakePage:
        page = self._pages.pop(0) if self._pages else FakePage()
        self.opened.append(page)
        return page

    @property
    def pages(self) -> list[FakePage]:
        return [page for page in self.opened if not page.closed]

    async def storage_state(self) -> dict:
        return {"cookies": [{"name": "SID", "value": "x", "domain": ".google.com"}], "origins": []}

    async def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self, pages: list[FakePage]):
        self._pages = pages
        self.contexts: list[FakeContext] = []
        self.closed = False

    async def new_context(self, **options) -> FakeContext:
        context = FakeContext(self._pages, options)
        self.contexts.append(context)
        return context

    async def close(self):
        self.closed = True


class FakeClock:
    """Monotonic clock advanced by the paired sleep."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class FakeSession:
    """Session manager double for extraction and orchestration tests."""

    def __init__(self, authenticated: bool = True, pages: Optional[list[FakePage]] = None):
        self.authenticated = authenticated
        self.pages = pages or []
        self.opened: list[FakePage] = []
        self.closed = False
        self.login_in_progress = False
        self.login_calls = 0

    async def is_authenticated(self) -> bool:
        return self.authenticated

    async def new_page(self) -> FakePage:
        page = self.pages.pop(0) if self.pages else FakePage(LISTING_HTML)
        self.opened.append(page)
        return page

    async def open_interactive_login(self):
        from listing_tracker.ingest.session_manager import LoginState

        self.login_calls += 1
        return LoginState.AUTHENTICATED

    async def close(self):
        self.closed = True


def listing_data(url: str = "https://www.google.com/maps/place/Joes+Cafe/ChIJ123", **overrides) -> ExtractedData:
    fields = dict(
        link=url,
        name="Joe's Cafe",
        address="12 Main Street, Dublin 2",
        webpage="joescafe.ie",
        phone="35312345678",
        open_closed_status=OpenClosedStatus.OPEN,
        review_count=100,
        star_rating=4.2,
    )
    fields.update(overrides)
    return ExtractedData(**fields)


class FakeExtractor:
    """Returns queued extraction results and a page per successful extraction."""

    def __init__(self, results: Optional[list[ExtractedData]] = None, screenshot_ok: bool = True):
        self.results = list(results or [])
        self.screenshot_ok = screenshot_ok
        self.extracted_urls: list[str] = []
        self.pages: list[FakePage] = []
        self.screenshot_targets: list = []

    async def extract(self, url: str):
        self.extracted_urls.append(url)
        data = self.results.pop(0) if self.results else listing_data(url)
        if data.error_code:
            return data, None
        page = FakePage(LISTING_HTML)
        self.pages.append(page)
        return data, page

    async def capture_screenshot(self, target, output_path) -> bool:
        self.screenshot_targets.append(target)
        if not self.screenshot_ok:
            return False
        Path(output_path).write_bytes(b"\x89PNG\r\n\x1a\n")
        return True


# =============================================================================
# Google services
# =============================================================================

class FakeAuth:
    def __init__(self, authenticated: bool = True, configured: bool = True):
        self.authenticated = authenticated
        self.is_configured = configured
        self.codes: list[str] = []

    async def is_authenticated(self) -> bool:
        return self.authenticated

    def get_auth_url(self) -> str:
        return "https://accounts.google.com/o/oauth2/auth?client_id=test"

    async def exchange_code(self, code: str) -> None:
        if code == "bad":
            raise ValueError("invalid_grant")
        self.codes.append(code)


class FakeSheets:
    """Spreadsheets as lists of rows keyed by id."""

    def __init__(self):
        self.spreadsheets: dict[str, dict] = {}
        self.fail_appends = False
        self._next = 1

    def title_for(self, name):
        return f"Google Business - {name or 'Unknown'}"

    async def create_spreadsheet(self, business_name, folder_id=None) -> str:
        spreadsheet_id = f"sheet-{self._next}"
        self._next += 1
        self.spreadsheets[spreadsheet_id] = {
            "title": self.title_for(business_name),
            "folder": folder_id,
            "rows": [],
        }
        return spreadsheet_id

    async def spreadsheet_exists(self, spreadsheet_id) -> bool:
        return spreadsheet_id in self.spreadsheets

    async def find_spreadsheet_in_folder(self, folder_id, business_name) -> Optional[str]:
        title = self.title_for(business_name)
        for spreadsheet_id, sheet in self.spreadsheets.items():
            if sheet["folder"] == folder_id and sheet["title"] == title:
                return spreadsheet_id
        return None

    async def append_observation(self, spreadsheet_id, observation: Observation) -> None:
        if self.fail_appends or spreadsheet_id not in self.spreadsheets:
            raise TrackerError(ErrorCode.SHEETS_WRITE_FAILED, "append rejected")
        self.spreadsheets[spreadsheet_id]["rows"].append([str(v) for v in observation.to_row()])

    async def get_last_valid_observation(self, spreadsheet_id) -> Optional[Observation]:
        sheet = self.spreadsheets.get(spreadsheet_id)
        return select_last_valid(sheet["rows"]) if sheet else None

    def rows(self, spreadsheet_id) -> list[list[str]]:
        return self.spreadsheets[spreadsheet_id]["rows"]


class FakeDrive:
    def __init__(self):
        self.folders: dict[str, tuple[str, Optional[str]]] = {}
        self.uploads: list[tuple[str, str, str]] = []
        self.fail_uploads = False
        self._next = 1

    async def find_or_create_folder(self, name, parent_id=None) -> str:
        for folder_id, (folder_name, parent) in self.folders.items():
            if folder_name == name and parent == parent_id:
                return folder_id
        folder_id = f"folder-{self._next}"
        self._next += 1
        self.folders[folder_id] = (name, parent_id)
        return folder_id

    async def get_or_create_root_folder(self) -> str:
        return await self.find_or_create_folder("Google Business Tracker")

    async def create_business_folder(self, business_name, root_folder_id) -> str:
        return await self.find_or_create_folder(business_name or "Unknown Business", root_folder_id)

    async def get_or_create_screenshots_folder(self, business_folder_id) -> str:
        return await self.find_or_create_folder("screenshots", business_folder_id)

    async def upload_screenshot(self, file_path, business_folder_id, file_name) -> str:
        if self.fail_uploads:
            raise TrackerError(ErrorCode.DRIVE_WRITE_FAILED, "upload rejected")
        assert Path(file_path).exists()
        folder = await self.get_or_create_screenshots_folder(business_folder_id)
        self.uploads.append((str(file_path), folder, file_name))
        return f"https://drive.google.com/file/d/{len(self.uploads)}/view"
