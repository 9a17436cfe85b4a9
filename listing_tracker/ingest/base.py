"""Base interface for queryable listing documents."""

import re
from abc import ABC, abstractmethod
from typing import Optional, Pattern, Union

TextPattern = Union[str, Pattern[str]]


def compile_pattern(pattern: TextPattern) -> Pattern[str]:
    """Strings are matched case-insensitively."""
    if isinstance(pattern, str):
        return re.compile(pattern, re.IGNORECASE)
    return pattern


class DocumentProbe(ABC):
    """
    Abstract queryable tree for a rendered listing page.

    Implementations must never raise for a missing element; lookups that
    find nothing return None, an empty list or False. Selectors are plain
    CSS so the same field strategies run against a live browser page and
    against saved HTML.
    """

    @abstractmethod
    async def text(self, selector: str) -> Optional[str]:
        """Text content of the first element matching ``selector``."""
        pass

    @abstractmethod
    async def texts(self, selector: str, limit: int = 20) -> list[str]:
        """Text content of up to ``limit`` matching elements."""
        pass

    @abstractmethod
    async def attribute(self, selector: str, name: str) -> Optional[str]:
        """Attribute ``name`` of the first element matching ``selector``."""
        pass

    @abstractmethod
    async def attributes(self, selector: str, name: str, limit: int = 20) -> list[str]:
        """Non-empty values of attribute ``name`` across matching elements."""
        pass

    @abstractmethod
    async def is_visible(self, selector: str) -> bool:
        """True if an element matching ``selector`` is present and visible."""
        pass

    @abstractmethod
    async def has_text(self, pattern: TextPattern) -> bool:
        """True if the visible document text matches ``pattern``."""
        pass

    @abstractmethod
    async def accessible_heading(self) -> Optional[str]:
        """Accessible name of the first level-one heading."""
        pass

    @abstractmethod
    async def title(self) -> Optional[str]:
        """Document title."""
        pass

    @abstractmethod
    async def body_text(self) -> str:
        """Visible text of the whole document."""
        pass

    @abstractmethod
    async def labels_before(
        self,
        boundary_selector: str,
        selector: str,
        name: str = "aria-label",
    ) -> list[str]:
        """
        Attribute values of elements preceding a structural boundary.

        Args:
            boundary_selector: Element marking the end of the scanned region
            selector: Elements whose attribute is collected
            name: Attribute to collect

        Returns:
            Values in document order; every match when the boundary is absent
        """
        pass

    @abstractmethod
    async def cookie_names(self) -> set[str]:
        """Names of cookies visible to the document's browsing context."""
        pass
