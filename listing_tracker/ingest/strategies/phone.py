"""Phone strategies; every result is digits only."""

from typing import Optional

from listing_tracker.ingest.base import DocumentProbe
from listing_tracker.ingest.strategies.base import FieldChain, FieldStrategy
from listing_tracker.normalize.fields import find_phone_in_text, parse_phone, strip_label_prefix


async def labelled_attribute(probe: DocumentProbe) -> Optional[str]:
    # data-item-id="phone:tel:+35312345678"
    item_id = await probe.attribute('[data-item-id^="phone:"]', "data-item-id")
    if not item_id:
        return None
    return parse_phone(item_id[len("phone:"):])


async def label_text(probe: DocumentProbe) -> Optional[str]:
    label = await probe.attribute('[aria-label^="Phone"]', "aria-label")
    return parse_phone(strip_label_prefix(label, "Phone"))


async def tel_link(probe: DocumentProbe) -> Optional[str]:
    return parse_phone(await probe.attribute('a[href^="tel:"]', "href"))


async def visible_digits(probe: DocumentProbe) -> Optional[str]:
    text = await probe.text('[role="main"]') or await probe.body_text()
    return find_phone_in_text(text)


PHONE_CHAIN = FieldChain(
    field="phone",
    strategies=[
        FieldStrategy("labelled_attribute", labelled_attribute),
        FieldStrategy("label_text", label_text),
        FieldStrategy("tel_link", tel_link),
        FieldStrategy("visible_digits", visible_digits),
    ],
    accept=bool,
)
