"""Review count and star rating strategies.

Both are scoped to the region before the Directions button where
possible, so numbers from related places further down the panel are not
picked up.
"""

import re
from typing import Optional

from listing_tracker.ingest.base import DocumentProbe
from listing_tracker.ingest.strategies.base import FieldChain, FieldStrategy
from listing_tracker.normalize.fields import (
    REVIEW_LABEL_RE,
    normalize_rating,
    parse_count,
    parse_rating_value,
    parse_review_label,
    parse_star_label,
)

DIRECTIONS_BOUNDARY = '[data-value="Directions"]'
SUMMARY_SELECTOR = "div.F7nice"
PARENTHESIZED_COUNT_RE = re.compile(r"\(([\d.,\s]+[kKmMbB]?)\)")


def _is_count(value) -> bool:
    return isinstance(value, int) and value >= 0


def _is_rating(value) -> bool:
    return normalize_rating(value) is not None


async def scoped_review_label(probe: DocumentProbe) -> Optional[int]:
    for label in await probe.labels_before(DIRECTIONS_BOUNDARY, '[aria-label*="review"]'):
        count = parse_review_label(label)
        if count is not None:
            return count
    return None


async def summary_count(probe: DocumentProbe) -> Optional[int]:
    text = await probe.text(SUMMARY_SELECTOR)
    if not text:
        return None
    match = PARENTHESIZED_COUNT_RE.search(text)
    return parse_count(match.group(1)) if match else None


async def body_review_text(probe: DocumentProbe) -> Optional[int]:
    match = REVIEW_LABEL_RE.search(await probe.body_text())
    return parse_count(match.group(1)) if match else None


async def scoped_star_label(probe: DocumentProbe) -> Optional[float]:
    for label in await probe.labels_before(DIRECTIONS_BOUNDARY, '[aria-label*="star"]'):
        rating = parse_star_label(label)
        if rating is not None:
            return rating
    return None


async def summary_rating(probe: DocumentProbe) -> Optional[float]:
    return parse_rating_value(await probe.text(f'{SUMMARY_SELECTOR} span[aria-hidden="true"]'))


REVIEW_COUNT_CHAIN = FieldChain(
    field="review_count",
    strategies=[
        FieldStrategy("scoped_review_label", scoped_review_label),
        FieldStrategy("summary_count", summary_count),
        FieldStrategy("body_review_text", body_review_text),
    ],
    accept=_is_count,
)

STAR_RATING_CHAIN = FieldChain(
    field="star_rating",
    strategies=[
        FieldStrategy("scoped_star_label", scoped_star_label),
        FieldStrategy("summary_rating", summary_rating),
    ],
    accept=_is_rating,
)
