"""Website strategies; every result is a bare hostname."""

from typing import Optional

from listing_tracker.ingest.base import DocumentProbe
from listing_tracker.ingest.strategies.base import FieldChain, FieldStrategy
from listing_tracker.normalize.fields import bare_hostname, find_hostname_in_text, strip_label_prefix


async def labelled_link(probe: DocumentProbe) -> Optional[str]:
    return bare_hostname(await probe.attribute('a[data-item-id="authority"]', "href"))


async def label_text(probe: DocumentProbe) -> Optional[str]:
    label = await probe.attribute('[aria-label^="Website"]', "aria-label")
    return bare_hostname(strip_label_prefix(label, "Website"))


async def nearby_link(probe: DocumentProbe) -> Optional[str]:
    for selector in ('[data-tooltip="Open website"]', 'a[aria-label*="Website"]'):
        host = bare_hostname(await probe.attribute(selector, "href"))
        if host:
            return host
    return bare_hostname(await probe.text('[data-item-id="authority"] .Io6YTe'))


async def panel_url_scan(probe: DocumentProbe) -> Optional[str]:
    text = await probe.text('[role="main"]') or await probe.body_text()
    return find_hostname_in_text(text)


WEBPAGE_CHAIN = FieldChain(
    field="webpage",
    strategies=[
        FieldStrategy("labelled_link", labelled_link),
        FieldStrategy("label_text", label_text),
        FieldStrategy("nearby_link", nearby_link),
        FieldStrategy("panel_url_scan", panel_url_scan),
    ],
    accept=bool,
)
