"""Authenticated browser session management for Google Maps."""

import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, Iterable, Optional

from playwright.async_api import Browser, BrowserContext, Page, async_playwright

from listing_tracker import metrics
from listing_tracker.config import Settings, settings as default_settings
from listing_tracker.ingest.base import DocumentProbe
from listing_tracker.ingest.fetchers.headless import PlaywrightProbe
from listing_tracker.ingest.session_store import StorageStateStore
from listing_tracker.ingest.stealth_browser import stealth_browser

logger = logging.getLogger(__name__)

# Logged-in signals
ACCOUNT_AFFORDANCE = '[data-value="Account"], button[aria-label*="Account"], [aria-label*="Google Account"]'
PROFILE_IMAGE = 'img[alt*="Account"], img[alt*="Profile"]'
ACCOUNT_MENU = '[role="button"][aria-label*="Account"]'

# Logged-out signal
SIGN_IN_AFFORDANCE = 'a[href*="ServiceLogin"], a[aria-label="Sign in"], button[aria-label="Sign in"]'


class LoginState(str, Enum):
    """Interactive login progress."""

    UNCHECKED = "UNCHECKED"
    AWAITING_SIGNIN_CLICK = "AWAITING_SIGNIN_CLICK"
    AWAITING_USER_COMPLETION = "AWAITING_USER_COMPLETION"
    AUTHENTICATED = "AUTHENTICATED"
    TIMED_OUT = "TIMED_OUT"
    IN_PROGRESS = "IN_PROGRESS"


async def detect_login(probe: DocumentProbe, auth_cookie_names: Iterable[str]) -> Optional[bool]:
    """
    Evaluate independent login signals in parallel.

    Returns:
        True if any logged-in signal fired, False if a sign-in affordance
        confirms the logged-out state, None if undetermined
    """
    auth_cookies = set(auth_cookie_names)

    async def has_auth_cookie() -> bool:
        return bool(auth_cookies & await probe.cookie_names())

    checks = await asyncio.gather(
        probe.is_visible(ACCOUNT_AFFORDANCE),
        probe.is_visible(PROFILE_IMAGE),
        probe.is_visible(ACCOUNT_MENU),
        has_auth_cookie(),
    )
    if any(checks):
        return True
    if await probe.is_visible(SIGN_IN_AFFORDANCE):
        return False
    return None


BrowserFactory = Callable[[bool], Awaitable[Browser]]


class SessionManager:
    """
    Owns the browser contexts backed by the saved identity.

    Three contexts are created lazily and cached:
    - status context (headless): login status checks on one reusable page
    - extraction context (headless): listing pages handed to callers
    - login context (visible): interactive login only

    All are built from the saved storage state. When the identity changes
    the status context is rebuilt at once. The extraction context is
    retired instead, and closed only after its last page is closed.
    """

    def __init__(
        self,
        store: Optional[StorageStateStore] = None,
        settings: Optional[Settings] = None,
        browser_factory: Optional[BrowserFactory] = None,
        probe_factory: Optional[Callable[[Page], DocumentProbe]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize session manager.

        Args:
            store: Saved identity store
            settings: Application settings
            browser_factory: Launches a browser given a headless flag
            probe_factory: Wraps a page in a DocumentProbe
            sleep: Awaitable sleep (injectable for tests)
            clock: Monotonic clock in seconds (injectable for tests)
        """
        self.store = store or StorageStateStore()
        self.settings = settings or default_settings
        self._browser_factory = browser_factory
        self._probe_factory = probe_factory or PlaywrightProbe
        self._sleep = sleep
        self._clock = clock

        self._playwright = None
        self._status_browser: Optional[Browser] = None
        self._login_browser: Optional[Browser] = None
        self._status_context: Optional[BrowserContext] = None
        self._extraction_context: Optional[BrowserContext] = None
        self._retired_contexts: list[BrowserContext] = []
        self._login_context: Optional[BrowserContext] = None
        self._status_page: Optional[Page] = None
        self._login_page: Optional[Page] = None

        self._init_lock = asyncio.Lock()
        self._status_lock = asyncio.Lock()
        self._login_in_progress = False
        self._own_saved_state: Optional[dict] = None
        self.login_state = LoginState.UNCHECKED

    # =========================================================================
    # Context lifecycle
    # =========================================================================

    async def _launch(self, headless: bool) -> Browser:
        if self._browser_factory is not None:
            return await self._browser_factory(headless)
        if self._playwright is None:
            self._playwright = await async_playwright().start()
        return await self._playwright.chromium.launch(**stealth_browser.launch_options(headless))

    async def _new_context(self, browser: Browser) -> BrowserContext:
        self.store.ensure_directory()
        context = await browser.new_context(**stealth_browser.context_options(self.store.load()))
        await stealth_browser.apply_to_context(context)
        return context

    async def _headless_browser(self) -> Browser:
        if self._status_browser is None:
            self._status_browser = await self._launch(self.settings.browser_headless)
        return self._status_browser

    async def get_status_context(self) -> BrowserContext:
        """Headless context for status checks."""
        async with self._init_lock:
            if self._status_context is None:
                self._status_context = await self._new_context(await self._headless_browser())
                logger.debug("Created status browser context")
            return self._status_context

    async def get_extraction_context(self) -> BrowserContext:
        """Headless context for listing pages."""
        async with self._init_lock:
            await self._close_idle_retired()
            if self._extraction_context is None:
                self._extraction_context = await self._new_context(await self._headless_browser())
                logger.debug("Created extraction browser context")
            return self._extraction_context

    async def get_login_context(self) -> BrowserContext:
        """Visible context for interactive login."""
        async with self._init_lock:
            if self._login_context is None:
                if self._login_browser is None:
                    self._login_browser = await self._launch(False)
                self._login_context = await self._new_context(self._login_browser)
                logger.debug("Created login browser context")
            return self._login_context

    async def new_page(self) -> Page:
        """Open a page in the extraction context. The caller closes it."""
        context = await self.get_extraction_context()
        return await context.new_page()

    async def invalidate_status_context(self) -> None:
        """Discard the status context so the next use loads the latest identity."""
        if self._status_page is not None:
            await _close_quietly(self._status_page)
            self._status_page = None
        if self._status_context is not None:
            await _close_quietly(self._status_context)
            self._status_context = None
            logger.info("Status browser context invalidated")

    async def retire_extraction_context(self) -> None:
        """Stop handing out pages from the extraction context; close it once idle."""
        async with self._init_lock:
            if self._extraction_context is not None:
                self._retired_contexts.append(self._extraction_context)
                self._extraction_context = None
                logger.info("Extraction browser context retired")
            await self._close_idle_retired()

    async def _close_idle_retired(self) -> None:
        still_open = []
        for context in self._retired_contexts:
            if context.pages:
                still_open.append(context)
            else:
                await _close_quietly(context)
        self._retired_contexts = still_open

    async def _reload_identity(self) -> None:
        await self.invalidate_status_context()
        await self.retire_extraction_context()

    def _identity_written_elsewhere(self) -> bool:
        """True if the saved identity is fresh and this manager did not write it."""
        age = self.store.age_seconds()
        if age is None or age >= self.settings.storage_reload_age_seconds:
            return False
        return self.store.load() != self._own_saved_state

    async def save_identity(self) -> None:
        """Persist storage state, preferring the login context (freshest cookies)."""
        context = self._login_context or self._status_context
        if context is None:
            return
        try:
            await self.store.save_from_context(context)
        except Exception as e:
            logger.error(f"Failed to save storage state: {e}")
            return
        self._own_saved_state = self.store.load()

    async def close(self) -> None:
        """Close every page, context and browser."""
        await self.invalidate_status_context()
        for resource in (
            self._extraction_context,
            *self._retired_contexts,
            self._login_page,
            self._login_context,
            self._status_browser,
            self._login_browser,
        ):
            if resource is not None:
                await _close_quietly(resource)
        self._extraction_context = None
        self._retired_contexts = []
        self._login_page = None
        self._login_context = None
        self._status_browser = None
        self._login_browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    # =========================================================================
    # Status
    # =========================================================================

    async def _get_status_page(self) -> Page:
        if self._status_page is None or self._status_page.is_closed():
            context = await self.get_status_context()
            self._status_page = await context.new_page()
        return self._status_page

    async def _recycle_status_page(self) -> None:
        if self._status_page is not None:
            await _close_quietly(self._status_page)
            self._status_page = None

    async def is_authenticated(self) -> bool:
        """
        Check whether the saved identity is currently logged in.

        Fails closed: navigation errors and undetermined signals both
        report not authenticated.
        """
        async with self._status_lock:
            if self._identity_written_elsewhere():
                logger.debug("Saved identity changed on disk, reloading browser contexts")
                await self._reload_identity()

            try:
                page = await self._get_status_page()
                await page.goto(
                    self.settings.maps_home_url,
                    wait_until="domcontentloaded",
                    timeout=self.settings.page_load_timeout * 1000,
                )
                await self._sleep(self.settings.status_settle_delay_seconds)
                state = await detect_login(self._probe_factory(page), self.settings.auth_cookie_names)
            except Exception as e:
                logger.error(f"Error checking login status: {type(e).__name__}: {e}")
                await self._recycle_status_page()
                metrics.login_checks_total.labels(result="error").inc()
                return False

            if state:
                await self.save_identity()
                metrics.login_checks_total.labels(result="authenticated").inc()
                return True

            if state is False:
                logger.info("Sign-in affordance visible, session is logged out")
            else:
                logger.info("Login state undetermined, assuming logged out")
            metrics.login_checks_total.labels(result="anonymous").inc()
            return False

    # =========================================================================
    # Interactive login
    # =========================================================================

    async def open_interactive_login(self) -> LoginState:
        """
        Open a visible login window and wait for the user to sign in.

        Returns:
            AUTHENTICATED, TIMED_OUT, or IN_PROGRESS if another login is running
        """
        if self._login_in_progress:
            logger.info("Login already in progress")
            return LoginState.IN_PROGRESS

        self._login_in_progress = True
        self.login_state = LoginState.UNCHECKED
        try:
            if await self.is_authenticated():
                logger.info("Already logged in")
                self.login_state = LoginState.AUTHENTICATED
                return self.login_state

            context = await self.get_login_context()
            page = await context.new_page()
            self._login_page = page
            await page.goto(
                self.settings.maps_home_url,
                wait_until="domcontentloaded",
                timeout=self.settings.page_load_timeout * 1000,
            )
            probe = self._probe_factory(page)

            self.login_state = LoginState.AWAITING_SIGNIN_CLICK
            if await probe.is_visible(SIGN_IN_AFFORDANCE):
                try:
                    await page.click(SIGN_IN_AFFORDANCE, timeout=self.settings.login_check_timeout * 1000)
                except Exception as e:
                    logger.debug(f"Could not click sign-in affordance: {e}")

            self.login_state = LoginState.AWAITING_USER_COMPLETION
            logger.info("Browser window opened. Please log in to your Google account.")

            deadline = self._clock() + self.settings.login_max_wait_seconds
            while self._clock() < deadline:
                await self._sleep(self.settings.login_poll_interval_seconds)
                try:
                    logged_in = await detect_login(probe, self.settings.auth_cookie_names)
                except Exception as e:
                    logger.debug(f"Login poll failed, continuing: {e}")
                    continue
                if logged_in:
                    logger.info("Login detected, saving session")
                    await self.save_identity()
                    await self._reload_identity()
                    self.login_state = LoginState.AUTHENTICATED
                    return self.login_state

            # The window stays open so the user can finish and retry
            logger.warning("Login timeout. Please try again.")
            self.login_state = LoginState.TIMED_OUT
            return self.login_state

        finally:
            self._login_in_progress = False

    @property
    def login_in_progress(self) -> bool:
        return self._login_in_progress


async def _close_quietly(resource) -> None:
    try:
        await resource.close()
    except Exception as e:
        logger.debug(f"Error closing {type(resource).__name__}: {e}")
