"""Document probe over saved HTML, backed by selectolax."""

import logging
from pathlib import Path
from typing import Iterable, Optional, Union

from selectolax.parser import HTMLParser, Node

from listing_tracker.ingest.base import DocumentProbe, TextPattern, compile_pattern

logger = logging.getLogger(__name__)

HEADING_SELECTOR = 'h1, [role="heading"][aria-level="1"]'


def _is_hidden(node: Node) -> bool:
    current: Optional[Node] = node
    while current is not None and current.tag != "html":
        attrs = current.attributes
        if "hidden" in attrs or attrs.get("aria-hidden") == "true":
            return True
        style = (attrs.get("style") or "").replace(" ", "").lower()
        if "display:none" in style or "visibility:hidden" in style:
            return True
        current = current.parent
    return False


class HtmlSnapshotProbe(DocumentProbe):
    """
    Probe a static HTML document.

    Used to run field strategies against pages saved from a live session
    and in tests. Visibility is approximated from ``hidden``,
    ``aria-hidden`` and inline ``display``/``visibility`` styles.
    """

    def __init__(self, html: str, cookies: Iterable[str] = ()):
        """
        Initialize probe.

        Args:
            html: Document markup
            cookies: Cookie names to report as present in the browsing context
        """
        self._tree = HTMLParser(html)
        self._tree.strip_tags(["script", "style", "noscript"])
        self._cookies = set(cookies)

    @classmethod
    def from_file(cls, path: Union[str, Path], cookies: Iterable[str] = ()) -> "HtmlSnapshotProbe":
        return cls(Path(path).read_text(encoding="utf-8"), cookies)

    def _first(self, selector: str) -> Optional[Node]:
        try:
            return self._tree.css_first(selector)
        except ValueError as e:
            logger.debug(f"Unsupported selector {selector!r}: {e}")
            return None

    def _all(self, selector: str) -> list[Node]:
        try:
            return self._tree.css(selector)
        except ValueError as e:
            logger.debug(f"Unsupported selector {selector!r}: {e}")
            return []

    async def text(self, selector: str) -> Optional[str]:
        node = self._first(selector)
        if node is None:
            return None
        return node.text(separator=" ", strip=True) or None

    async def texts(self, selector: str, limit: int = 20) -> list[str]:
        values = []
        for node in self._all(selector)[:limit]:
            value = node.text(separator=" ", strip=True)
            if value:
                values.append(value)
        return values

    async def attribute(self, selector: str, name: str) -> Optional[str]:
        node = self._first(selector)
        if node is None:
            return None
        return node.attributes.get(name) or None

    async def attributes(self, selector: str, name: str, limit: int = 20) -> list[str]:
        values = []
        for node in self._all(selector)[:limit]:
            value = node.attributes.get(name)
            if value:
                values.append(value)
        return values

    async def is_visible(self, selector: str) -> bool:
        return any(not _is_hidden(node) for node in self._all(selector))

    async def has_text(self, pattern: TextPattern) -> bool:
        return compile_pattern(pattern).search(await self.body_text()) is not None

    async def accessible_heading(self) -> Optional[str]:
        node = self._first(HEADING_SELECTOR)
        if node is None:
            return None
        return node.attributes.get("aria-label") or node.text(separator=" ", strip=True) or None

    async def title(self) -> Optional[str]:
        node = self._first("title")
        return node.text(strip=True) if node is not None else None

    async def body_text(self) -> str:
        body = self._tree.body
        if body is None:
            return ""
        return body.text(separator=" ", strip=True)

    async def labels_before(
        self,
        boundary_selector: str,
        selector: str,
        name: str = "aria-label",
    ) -> list[str]:
        matches = self._all(selector)
        boundary = self._first(boundary_selector)
        if boundary is None:
            return [v for v in (n.attributes.get(name) for n in matches) if v]

        wanted = {node.mem_id for node in matches}
        values = []
        # Walk in document order until the boundary element is reached
        for node in self._tree.root.traverse():
            if node.mem_id == boundary.mem_id:
                break
            if node.mem_id in wanted:
                value = node.attributes.get(name)
                if value:
                    values.append(value)
        return values

    async def cookie_names(self) -> set[str]:
        return set(self._cookies)
