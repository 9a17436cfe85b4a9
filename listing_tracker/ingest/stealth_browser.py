"""Stealth settings for Playwright browsers and contexts.

Implements automation flag hiding and a fixed, realistic browser profile so
listing pages render the same way on every run.
"""

import logging
from typing import Any, Optional

from playwright.async_api import BrowserContext

from listing_tracker.config import settings

logger = logging.getLogger(__name__)

BROWSER_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
    "--disable-setuid-sandbox",
]

ANTI_DETECTION_SCRIPT = """
if (typeof navigator !== 'undefined') {
    Object.defineProperty(navigator, 'webdriver', {
        get: () => false
    });
    Object.defineProperty(navigator, 'plugins', {
        get: () => [1, 2, 3, 4, 5]
    });
    Object.defineProperty(navigator, 'languages', {
        get: () => ['en-US', 'en']
    });
}
"""


class StealthBrowser:
    """
    Builds browser launch and context options.

    Features:
    - Automation flag hiding (launch args + init script)
    - Fixed viewport, locale and user agent
    - Saved identity (storage state) loaded into new contexts
    """

    def launch_options(self, headless: bool) -> dict[str, Any]:
        """
        Get ``chromium.launch`` options.

        Args:
            headless: Run without a visible window
        """
        return {
            "headless": headless,
            "channel": settings.browser_channel,
            "args": list(BROWSER_ARGS),
        }

    def context_options(self, storage_state: Optional[dict] = None) -> dict[str, Any]:
        """
        Get ``browser.new_context`` options.

        Args:
            storage_state: Saved identity to restore, if any

        Returns:
            Dict of context options
        """
        options: dict[str, Any] = {
            "viewport": {"width": settings.viewport_width, "height": settings.viewport_height},
            "locale": settings.browser_locale,
            "user_agent": settings.user_agent,
            "ignore_https_errors": True,
        }
        if storage_state:
            options["storage_state"] = storage_state
        return options

    async def apply_to_context(self, context: BrowserContext) -> None:
        """Register the anti-detection init script on every page of ``context``."""
        await context.add_init_script(ANTI_DETECTION_SCRIPT)
        logger.debug("Stealth init script registered on context")


# Global stealth browser instance
stealth_browser = StealthBrowser()
