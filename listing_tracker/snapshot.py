"""Observation records and their spreadsheet row form."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Sequence


class OpenClosedStatus(str, Enum):
    OPEN = "OPEN"
    TEMPORARILY_CLOSED = "TEMPORARILY_CLOSED"
    PERMANENTLY_CLOSED = "PERMANENTLY_CLOSED"
    UNKNOWN = "UNKNOWN"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: Optional[str]) -> "OpenClosedStatus":
        try:
            return cls((value or "").strip().upper())
        except ValueError:
            return cls.UNKNOWN


@dataclass
class ExtractedData:
    """Typed result of one extraction attempt."""

    link: Optional[str]
    name: Optional[str] = None
    address: Optional[str] = None
    webpage: Optional[str] = None
    phone: Optional[str] = None
    open_closed_status: OpenClosedStatus = OpenClosedStatus.UNKNOWN
    review_count: Optional[int] = None
    star_rating: Optional[float] = None
    error_code: Optional[str] = None

    def __post_init__(self):
        # A listing without a visible review count has no trustworthy rating
        if self.review_count is None:
            self.star_rating = None

    @classmethod
    def failed(cls, link: Optional[str], error_code: str) -> "ExtractedData":
        """Terminal result for page-level failures (navigation, interstitial)."""
        return cls(link=link, error_code=error_code)

    @property
    def has_identity(self) -> bool:
        """True when at least one identifying field resolved."""
        return any((self.name, self.address, self.webpage, self.phone))


# Column order of the ledger spreadsheet
SHEET_HEADERS = [
    "Date",
    "CheckedAt",
    "Link",
    "Name",
    "Address",
    "Webpage",
    "Phone",
    "OpenClosedStatus",
    "ReviewCount",
    "StarRating",
    "Activity",
    "ErrorCode",
    "ScreenshotLink",
]

ERROR_CODE_COLUMN = SHEET_HEADERS.index("ErrorCode")
NAME_COLUMN = SHEET_HEADERS.index("Name")


@dataclass(frozen=True)
class Observation:
    """One append-only ledger row."""

    date: str  # YYYY-MM-DD in the fixed civil timezone
    checked_at: str  # ISO-8601 UTC
    link: Optional[str]
    name: Optional[str]
    address: Optional[str]
    webpage: Optional[str]
    phone: Optional[str]
    open_closed_status: OpenClosedStatus
    review_count: Optional[int]
    star_rating: Optional[float]
    activity: str = ""
    error_code: Optional[str] = None
    screenshot_link: Optional[str] = None

    @classmethod
    def from_extracted(
        cls,
        extracted: ExtractedData,
        date: str,
        checked_at: str,
        activity: str = "",
    ) -> "Observation":
        return cls(
            date=date,
            checked_at=checked_at,
            link=extracted.link,
            name=extracted.name,
            address=extracted.address,
            webpage=extracted.webpage,
            phone=extracted.phone,
            open_closed_status=extracted.open_closed_status,
            review_count=extracted.review_count,
            star_rating=extracted.star_rating,
            activity=activity,
            error_code=extracted.error_code,
        )

    @property
    def is_valid_baseline(self) -> bool:
        return not self.error_code and bool(self.name)

    def with_screenshot(self, link: Optional[str]) -> "Observation":
        return replace(self, screenshot_link=link)

    def with_activity(self, activity: str) -> "Observation":
        return replace(self, activity=activity)

    def to_row(self) -> list:
        """Serialise to a spreadsheet row; unknowns become empty cells."""
        return [
            self.date,
            self.checked_at,
            self.link or "",
            self.name or "",
            self.address or "",
            self.webpage or "",
            self.phone or "",
            self.open_closed_status.value,
            self.review_count if self.review_count is not None else "",
            self.star_rating if self.star_rating is not None else "",
            self.activity or "",
            self.error_code or "",
            self.screenshot_link or "",
        ]


def _cell(row: Sequence, index: int) -> str:
    if index >= len(row) or row[index] is None:
        return ""
    return str(row[index]).strip()


def _parse_int(value: str) -> Optional[int]:
    if not value:
        return None
    try:
        return int(float(value.replace(",", "")))
    except ValueError:
        return None


def _parse_float(value: str) -> Optional[float]:
    if not value:
        return None
    try:
        return float(value.replace(",", "."))
    except ValueError:
        return None


def row_to_observation(row: Sequence) -> Observation:
    """Inverse of ``Observation.to_row`` (empty cells become ``None``)."""
    return Observation(
        date=_cell(row, 0),
        checked_at=_cell(row, 1),
        link=_cell(row, 2) or None,
        name=_cell(row, 3) or None,
        address=_cell(row, 4) or None,
        webpage=_cell(row, 5) or None,
        phone=_cell(row, 6) or None,
        open_closed_status=OpenClosedStatus.parse(_cell(row, 7)),
        review_count=_parse_int(_cell(row, 8)),
        star_rating=_parse_float(_cell(row, 9)),
        activity=_cell(row, 10),
        error_code=_cell(row, 11) or None,
        screenshot_link=_cell(row, 12) or None,
    )


def select_last_valid(rows: Sequence[Sequence]) -> Optional[Observation]:
    """
    Pick the baseline from ledger rows (header excluded).

    The baseline is the most recent row with an empty error code and a
    non-empty name.
    """
    for row in reversed(rows):
        if not _cell(row, ERROR_CODE_COLUMN) and _cell(row, NAME_COLUMN):
            return row_to_observation(row)
    return None
