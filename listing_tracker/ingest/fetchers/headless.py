"""Headless browser extraction of listing pages."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Union

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from listing_tracker import metrics
from listing_tracker.config import settings
from listing_tracker.errors import ErrorCode
from listing_tracker.ingest.base import DocumentProbe, TextPattern, compile_pattern
from listing_tracker.ingest.interstitials import detect_interstitial
from listing_tracker.ingest.strategies import get_chain
from listing_tracker.snapshot import ExtractedData, OpenClosedStatus

if TYPE_CHECKING:
    from listing_tracker.ingest.session_manager import SessionManager

logger = logging.getLogger(__name__)

# Structural marker for a rendered place panel
PAGE_READY_SELECTOR = 'h1, [role="main"]'

# Fields resolved concurrently; star rating depends on review count
PARALLEL_FIELDS = ("name", "address", "webpage", "phone", "open_closed_status", "review_count")

LABELS_BEFORE_JS = """
([boundarySelector, selector, name]) => {
    const boundary = document.querySelector(boundarySelector);
    return Array.from(document.querySelectorAll(selector))
        .filter(el => !boundary || (el.compareDocumentPosition(boundary) & Node.DOCUMENT_POSITION_FOLLOWING))
        .map(el => el.getAttribute(name))
        .filter(Boolean);
}
"""

ATTRIBUTES_JS = "(els, name) => els.map(el => el.getAttribute(name)).filter(Boolean)"


class PlaywrightProbe(DocumentProbe):
    """
    Probe a live Playwright page.

    Every query runs under a short timeout and degrades to an empty
    result, so one slow lookup cannot stall a strategy chain.
    """

    def __init__(
        self,
        page: Page,
        query_timeout: Optional[float] = None,
        visibility_timeout: Optional[float] = None,
    ):
        self.page = page
        self.query_timeout_ms = (query_timeout or settings.query_timeout) * 1000
        self.visibility_timeout = visibility_timeout or settings.visibility_check_timeout

    async def _safe(self, operation: Awaitable[Any], default: Any, context: str) -> Any:
        try:
            return await operation
        except (PlaywrightError, asyncio.TimeoutError) as e:
            logger.debug(f"[{context}] operation failed, using default: {e}")
            return default

    async def text(self, selector: str) -> Optional[str]:
        value = await self._safe(
            self.page.locator(selector).first.text_content(timeout=self.query_timeout_ms),
            None,
            f"text {selector}",
        )
        return value.strip() or None if value else None

    async def texts(self, selector: str, limit: int = 20) -> list[str]:
        values = await self._safe(self.page.locator(selector).all_text_contents(), [], f"texts {selector}")
        return [v.strip() for v in values[:limit] if v and v.strip()]

    async def attribute(self, selector: str, name: str) -> Optional[str]:
        value = await self._safe(
            self.page.locator(selector).first.get_attribute(name, timeout=self.query_timeout_ms),
            None,
            f"attribute {selector}@{name}",
        )
        return value or None

    async def attributes(self, selector: str, name: str, limit: int = 20) -> list[str]:
        values = await self._safe(
            self.page.eval_on_selector_all(selector, ATTRIBUTES_JS, name),
            [],
            f"attributes {selector}@{name}",
        )
        return list(values[:limit])

    async def is_visible(self, selector: str) -> bool:
        return await self._safe(
            asyncio.wait_for(self.page.locator(selector).first.is_visible(), self.visibility_timeout),
            False,
            f"visible {selector}",
        )

    async def has_text(self, pattern: TextPattern) -> bool:
        return compile_pattern(pattern).search(await self.body_text()) is not None

    async def accessible_heading(self) -> Optional[str]:
        heading = self.page.get_by_role("heading", level=1).first
        label = await self._safe(
            heading.get_attribute("aria-label", timeout=self.query_timeout_ms), None, "heading label"
        )
        if label:
            return label.strip() or None
        value = await self._safe(heading.inner_text(timeout=self.query_timeout_ms), None, "heading text")
        return value.strip() or None if value else None

    async def title(self) -> Optional[str]:
        return await self._safe(self.page.title(), None, "title")

    async def body_text(self) -> str:
        return await self._safe(self.page.inner_text("body", timeout=self.query_timeout_ms), "", "body")

    async def labels_before(
        self,
        boundary_selector: str,
        selector: str,
        name: str = "aria-label",
    ) -> list[str]:
        return await self._safe(
            self.page.evaluate(LABELS_BEFORE_JS, [boundary_selector, selector, name]),
            [],
            f"labels before {boundary_selector}",
        )

    async def cookie_names(self) -> set[str]:
        cookies = await self._safe(self.page.context.cookies(), [], "cookies")
        return {cookie["name"] for cookie in cookies}


ProbeFactory = Callable[[Page], DocumentProbe]


class ListingExtractor:
    """Navigates to a listing and extracts its fields through the session's extraction context."""

    def __init__(
        self,
        session: Optional["SessionManager"],
        probe_factory: Optional[ProbeFactory] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        field_timeout: Optional[float] = None,
    ):
        """
        Initialize extractor.

        Args:
            session: Provides pages in the authenticated extraction context (unused by extract_from_probe)
            probe_factory: Wraps a page in a DocumentProbe (defaults to PlaywrightProbe)
            sleep: Awaitable sleep used for settle delays
            field_timeout: Per-field race timeout in seconds
        """
        self.session = session
        self._probe_factory = probe_factory or PlaywrightProbe
        self._sleep = sleep
        self.field_timeout = field_timeout or settings.field_extraction_timeout

    async def extract(self, url: str) -> tuple[ExtractedData, Optional[Page]]:
        """
        Navigate to ``url`` and extract listing fields.

        Page-level failures are returned as a terminal result carrying the
        error code, never raised.

        Returns:
            Tuple of (ExtractedData, open page for screenshot reuse or None).
            The caller owns the returned page and must close it.
        """
        page = await self.session.new_page()
        started = time.monotonic()

        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=settings.page_load_timeout * 1000)
        except PlaywrightError as e:
            logger.warning(f"Navigation failed for {url}: {e}")
            await _close_quietly(page)
            metrics.observation_errors_total.labels(error_code=ErrorCode.PAGE_LOAD_FAILED.value).inc()
            return ExtractedData.failed(url, ErrorCode.PAGE_LOAD_FAILED.value), None

        elapsed = time.monotonic() - started
        if elapsed > settings.slow_navigation_seconds:
            logger.warning(f"Slow navigation to {url}: {elapsed:.1f}s")
        else:
            logger.debug(f"Navigated to {url} in {elapsed:.1f}s")

        try:
            try:
                await page.wait_for_selector(PAGE_READY_SELECTOR, timeout=settings.selector_wait_timeout * 1000)
            except PlaywrightError:
                logger.debug(f"Place panel marker not found on {url}, continuing")

            await self._sleep(settings.settle_delay_seconds)
            data = await self.extract_from_probe(self._probe_factory(page), url)
        except BaseException:
            await _close_quietly(page)
            raise

        if data.error_code:
            metrics.observation_errors_total.labels(error_code=data.error_code).inc()
            await _close_quietly(page)
            return data, None
        return data, page

    async def extract_from_probe(self, probe: DocumentProbe, url: Optional[str]) -> ExtractedData:
        """
        Classify interstitials, then run every field chain against ``probe``.

        Args:
            probe: Rendered document
            url: Listing link recorded on the result
        """
        interstitial = await detect_interstitial(probe)
        if interstitial is not None:
            return ExtractedData.failed(url, interstitial.value)

        started = time.monotonic()
        results = await asyncio.gather(*(self._resolve(field, probe) for field in PARALLEL_FIELDS))
        values = dict(zip(PARALLEL_FIELDS, results))

        # No visible review count means no trustworthy rating
        star_rating = None
        if values["review_count"] is not None:
            star_rating = await self._resolve("star_rating", probe)

        elapsed = time.monotonic() - started
        metrics.extraction_duration_seconds.observe(elapsed)
        if elapsed > settings.slow_extraction_seconds:
            logger.warning(f"Slow field extraction for {url}: {elapsed:.1f}s")

        data = ExtractedData(
            link=url,
            name=values["name"],
            address=values["address"],
            webpage=values["webpage"],
            phone=values["phone"],
            open_closed_status=values["open_closed_status"] or OpenClosedStatus.UNKNOWN,
            review_count=values["review_count"],
            star_rating=star_rating,
        )

        if data.link and not data.has_identity:
            logger.warning(f"No identifying fields extracted from {url}")
            data.error_code = ErrorCode.EXTRACTION_FAILED.value

        return data

    async def _resolve(self, field: str, probe: DocumentProbe) -> Optional[Any]:
        try:
            return await asyncio.wait_for(get_chain(field).resolve(probe), timeout=self.field_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Field {field} timed out after {self.field_timeout}s")
            metrics.record_field(field, "timeout")
            return None

    async def capture_screenshot(self, target: Union[str, Page], output_path: Union[str, Path]) -> bool:
        """
        Capture a fixed-size, non-full-page PNG.

        Args:
            target: URL to open in a fresh page, or a page reused from ``extract``
            output_path: Destination file

        Returns:
            True if the file was written; failures are logged, never raised
        """
        owns_page = isinstance(target, str)
        page: Optional[Page] = None
        output_path = Path(output_path)

        try:
            if owns_page:
                page = await self.session.new_page()
                await page.goto(target, wait_until="domcontentloaded", timeout=settings.page_load_timeout * 1000)
            else:
                page = target

            await page.set_viewport_size({"width": settings.screenshot_width, "height": settings.screenshot_height})
            await self._sleep(settings.screenshot_settle_seconds)

            output_path.parent.mkdir(parents=True, exist_ok=True)
            await page.screenshot(path=str(output_path), full_page=False, type="png")
            metrics.screenshots_total.labels(status="captured").inc()
            logger.info(f"Screenshot saved to {output_path}")
            return True

        except Exception as e:
            metrics.screenshots_total.labels(status="failed").inc()
            logger.error(f"Screenshot capture failed: {type(e).__name__}: {e}")
            return False

        finally:
            if owns_page and page is not None:
                await _close_quietly(page)


async def _close_quietly(page: Page) -> None:
    try:
        await page.close()
    except PlaywrightError as e:
        logger.debug(f"Error closing page: {e}")
