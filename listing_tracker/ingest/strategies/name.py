"""Business name strategies."""

from typing import Optional

from listing_tracker.ingest.base import DocumentProbe
from listing_tracker.ingest.strategies.base import FieldChain, FieldStrategy
from listing_tracker.normalize.fields import clean_text, is_plausible_name, strip_title_suffix

# Known heading fingerprints for the place panel, most specific first
STRUCTURAL_HEADINGS = [
    "h1.DUwDvf",
    "h1.fontHeadlineLarge",
    '[role="main"] h1',
]


async def structural_heading(probe: DocumentProbe) -> Optional[str]:
    for selector in STRUCTURAL_HEADINGS:
        value = clean_text(await probe.text(selector))
        if value:
            return value
    return None


async def accessibility_heading(probe: DocumentProbe) -> Optional[str]:
    # The place panel is labelled with the business name
    label = clean_text(await probe.attribute('[role="main"][aria-label]', "aria-label"))
    if label and is_plausible_name(label):
        return label
    return clean_text(await probe.accessible_heading())


async def first_heading(probe: DocumentProbe) -> Optional[str]:
    for text in await probe.texts("h1, h2", limit=5):
        value = clean_text(text)
        if value and is_plausible_name(value):
            return value
    return None


async def document_title(probe: DocumentProbe) -> Optional[str]:
    return strip_title_suffix(await probe.title())


NAME_CHAIN = FieldChain(
    field="name",
    strategies=[
        FieldStrategy("structural_heading", structural_heading),
        FieldStrategy("accessibility_heading", accessibility_heading),
        FieldStrategy("first_heading", first_heading),
        FieldStrategy("document_title", document_title),
    ],
    accept=is_plausible_name,
)
