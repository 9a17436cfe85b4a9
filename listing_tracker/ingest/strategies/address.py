"""Address strategies."""

from typing import Optional

from listing_tracker.ingest.base import DocumentProbe
from listing_tracker.ingest.strategies.base import FieldChain, FieldStrategy
from listing_tracker.normalize.fields import (
    clean_text,
    find_street_address,
    is_plausible_address,
    strip_label_prefix,
)

PANEL_SELECTOR = '[role="main"]'


async def labelled_attribute(probe: DocumentProbe) -> Optional[str]:
    return clean_text(await probe.text('[data-item-id="address"] .Io6YTe')) or clean_text(
        await probe.text('[data-item-id="address"]')
    )


async def accessibility_label(probe: DocumentProbe) -> Optional[str]:
    label = await probe.attribute('button[aria-label^="Address"]', "aria-label")
    return strip_label_prefix(label, "Address")


async def nearby_structure(probe: DocumentProbe) -> Optional[str]:
    return clean_text(await probe.text('[data-tooltip="Copy address"]'))


async def panel_pattern(probe: DocumentProbe) -> Optional[str]:
    text = await probe.text(PANEL_SELECTOR) or await probe.body_text()
    return find_street_address(text)


ADDRESS_CHAIN = FieldChain(
    field="address",
    strategies=[
        FieldStrategy("labelled_attribute", labelled_attribute),
        FieldStrategy("accessibility_label", accessibility_label),
        FieldStrategy("nearby_structure", nearby_structure),
        FieldStrategy("panel_pattern", panel_pattern),
    ],
    accept=is_plausible_address,
)
