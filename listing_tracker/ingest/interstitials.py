"""Blocking page states that must be classified before extraction."""

import logging
import re
from typing import Optional

from listing_tracker.errors import ErrorCode
from listing_tracker.ingest.base import DocumentProbe

logger = logging.getLogger(__name__)

# Consent / cookie banners
CONSENT_SELECTORS = [
    'form[action*="consent.google"]',
    "div[aria-label*='cookie'] button[aria-label*='Accept']",
    'button[aria-label*="Accept all"]',
    'button[aria-label*="Reject all"]',
]
CONSENT_TEXT_RE = re.compile(r"before you continue to google|we use cookies and data to", re.IGNORECASE)

# Bot challenges
CAPTCHA_SELECTORS = [
    'iframe[src*="recaptcha"]',
    "div.g-recaptcha",
    "#captcha-form",
    "[data-callback]",
]
BOT_TEXT_RE = re.compile(
    r"unusual traffic from your computer|our systems have detected unusual traffic|"
    r"not a robot|before you continue",
    re.IGNORECASE,
)


async def detect_interstitial(probe: DocumentProbe) -> Optional[ErrorCode]:
    """
    Classify blocking page states.

    Consent banners are checked before bot challenges because Google's
    consent wall also reads "Before you continue".

    Returns:
        CONSENT_REQUIRED, BOT_DETECTED or None
    """
    for selector in CONSENT_SELECTORS:
        if await probe.is_visible(selector):
            logger.warning(f"Consent interstitial detected ({selector})")
            return ErrorCode.CONSENT_REQUIRED

    if await probe.has_text(CONSENT_TEXT_RE):
        logger.warning("Consent interstitial detected (page text)")
        return ErrorCode.CONSENT_REQUIRED

    for selector in CAPTCHA_SELECTORS:
        if await probe.is_visible(selector):
            logger.warning(f"Bot challenge detected ({selector})")
            return ErrorCode.BOT_DETECTED

    if await probe.has_text(BOT_TEXT_RE):
        logger.warning("Bot challenge detected (page text)")
        return ErrorCode.BOT_DETECTED

    return None
