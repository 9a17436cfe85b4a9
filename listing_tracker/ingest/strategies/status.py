"""Open/closed status strategies."""

import re
from typing import Optional

from listing_tracker.ingest.base import DocumentProbe
from listing_tracker.ingest.strategies.base import FieldChain, FieldStrategy
from listing_tracker.snapshot import OpenClosedStatus

OPEN_HOURS_SELECTORS = [
    'button[data-item-id="oh"]',
    '[aria-label*="Hide open hours"]',
    '[aria-label*="Show open hours"]',
]
PERMANENTLY_CLOSED_RE = re.compile(r"permanently closed", re.IGNORECASE)
TEMPORARILY_CLOSED_RE = re.compile(r"temporarily closed", re.IGNORECASE)
GENERIC_KEYWORD_RE = re.compile(r"\b(?:open|hours|closed)\b", re.IGNORECASE)


async def open_hours_affordance(probe: DocumentProbe) -> Optional[OpenClosedStatus]:
    for selector in OPEN_HOURS_SELECTORS:
        if await probe.is_visible(selector):
            return OpenClosedStatus.OPEN
    return None


async def permanently_closed(probe: DocumentProbe) -> Optional[OpenClosedStatus]:
    if await probe.has_text(PERMANENTLY_CLOSED_RE):
        return OpenClosedStatus.PERMANENTLY_CLOSED
    return None


async def temporarily_closed(probe: DocumentProbe) -> Optional[OpenClosedStatus]:
    if await probe.has_text(TEMPORARILY_CLOSED_RE):
        return OpenClosedStatus.TEMPORARILY_CLOSED
    return None


async def generic_keyword(probe: DocumentProbe) -> Optional[OpenClosedStatus]:
    if await probe.has_text(GENERIC_KEYWORD_RE):
        return OpenClosedStatus.OPEN
    return None


# Closed phrases must run before the generic keyword, which matches them too
STATUS_CHAIN = FieldChain(
    field="open_closed_status",
    strategies=[
        FieldStrategy("open_hours_affordance", open_hours_affordance),
        FieldStrategy("permanently_closed", permanently_closed),
        FieldStrategy("temporarily_closed", temporarily_closed),
        FieldStrategy("generic_keyword", generic_keyword),
    ],
)
