"""Parse and validate raw listing field values."""

import logging
import re
from typing import Optional
from urllib.parse import parse_qs, urlsplit

logger = logging.getLogger(__name__)

# Icon glyphs (private use area) rendered inside Maps info rows
PRIVATE_USE_RE = re.compile(r"[\ue000-\uf8ff]")
WHITESPACE_RE = re.compile(r"\s+")

# Candidate names containing these are review/rating text, not a business name
NAME_REJECT_HINTS = ("reviews", "review", "stars", "star rating")

# Navigation chrome that can show up as the first heading
NAVIGATION_CHROME = {
    "results",
    "directions",
    "menu",
    "sign in",
    "google maps",
    "maps",
    "search",
    "overview",
    "saved",
    "recents",
    "sponsored",
}

TITLE_SUFFIXES = (" - Google Maps", " – Google Maps")

MAX_NAME_LENGTH = 200
MIN_ADDRESS_LENGTH = 5
MAX_ADDRESS_LENGTH = 300

STREET_ADDRESS_RE = re.compile(
    r"(\d+[\s\w.'-]*?\b(?:street|st|avenue|ave|road|rd|boulevard|blvd|drive|dr|lane|ln|way|"
    r"circle|cir|court|ct|place|pl|square|sq|terrace|parkway|pkwy|highway|hwy)\b\.?[^,\n]*,\s*[^,\n]+)",
    re.IGNORECASE,
)

URL_IN_TEXT_RE = re.compile(r"https?://(?:www\.)?([a-zA-Z0-9-]+(?:\.[a-zA-Z0-9-]+)*\.[a-zA-Z]{2,})")
HOSTNAME_RE = re.compile(r"^[a-z0-9-]+(?:\.[a-z0-9-]+)*\.[a-z]{2,}$")

PHONE_IN_TEXT_RE = re.compile(r"(?:\+?\d{1,3}[\s.-]?)?\(?\d{2,4}\)?[\s.-]?\d{3}[\s.-]?\d{3,4}")
MIN_LABELLED_PHONE_DIGITS = 7
MIN_HEURISTIC_PHONE_DIGITS = 10
MAX_PHONE_DIGITS = 15

COUNT_RE = re.compile(r"(\d+(?:[.,\s]\d+)*)\s*([kKmMbB])?(?![a-zA-Z])")
REVIEW_LABEL_RE = re.compile(r"(\d[\d.,\s]*\s*[kKmMbB]?)\s*reviews?\b", re.IGNORECASE)
STAR_LABEL_RE = re.compile(r"(\d+(?:[.,]\d+)?)\s*stars?\b", re.IGNORECASE)
RATING_VALUE_RE = re.compile(r"^\s*(\d(?:[.,]\d)?)\s*$")

MAGNITUDES = {"k": 1_000, "m": 1_000_000, "b": 1_000_000_000}


def clean_text(value: Optional[str]) -> Optional[str]:
    """Drop icon glyphs and collapse whitespace; empty results become None."""
    if value is None:
        return None
    cleaned = WHITESPACE_RE.sub(" ", PRIVATE_USE_RE.sub("", value)).strip()
    return cleaned or None


def strip_label_prefix(value: Optional[str], prefix: str) -> Optional[str]:
    """``"Address: 1 Main St"`` -> ``"1 Main St"`` (case-insensitive prefix)."""
    cleaned = clean_text(value)
    if cleaned and cleaned.lower().startswith(prefix.lower()):
        cleaned = clean_text(cleaned[len(prefix):].lstrip(" :"))
    return cleaned


# =============================================================================
# Name
# =============================================================================

def strip_title_suffix(title: Optional[str]) -> Optional[str]:
    cleaned = clean_text(title)
    if not cleaned:
        return None
    for suffix in TITLE_SUFFIXES:
        if cleaned.endswith(suffix):
            return clean_text(cleaned[: -len(suffix)])
    return cleaned


def is_plausible_name(value: Optional[str]) -> bool:
    """Reject review/rating text, navigation chrome and oversize strings."""
    if not value or len(value) > MAX_NAME_LENGTH:
        return False
    lowered = value.lower()
    if lowered in NAVIGATION_CHROME:
        return False
    return not any(hint in lowered for hint in NAME_REJECT_HINTS)


# =============================================================================
# Address
# =============================================================================

def is_plausible_address(value: Optional[str]) -> bool:
    if not value or not MIN_ADDRESS_LENGTH <= len(value) <= MAX_ADDRESS_LENGTH:
        return False
    if not any(c.isalpha() for c in value):
        return False
    return any(c.isdigit() for c in value) or "," in value


def find_street_address(text: Optional[str]) -> Optional[str]:
    """Regex heuristic for street-style strings inside panel text."""
    if not text:
        return None
    match = STREET_ADDRESS_RE.search(text)
    return clean_text(match.group(1)) if match else None


# =============================================================================
# Webpage
# =============================================================================

def bare_hostname(value: Optional[str]) -> Optional[str]:
    """
    Reduce a URL or host-like string to its hostname without ``www.``.

    Google redirect links (``/url?q=...``) are unwrapped first.

    Returns:
        Lowercase hostname, or None if the value has no plausible host
    """
    cleaned = clean_text(value)
    if not cleaned:
        return None

    if "://" not in cleaned and not cleaned.startswith("/"):
        cleaned = f"http://{cleaned}"

    try:
        parts = urlsplit(cleaned)
    except ValueError:
        return None

    if parts.path == "/url" and "q=" in parts.query:
        target = parse_qs(parts.query).get("q", [None])[0]
        return bare_hostname(target) if target else None

    host = (parts.hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return host if HOSTNAME_RE.match(host) else None


def find_hostname_in_text(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    for match in URL_IN_TEXT_RE.finditer(text):
        host = bare_hostname(match.group(1))
        # Links back to Google itself are page chrome
        if host and "google." not in host and "gstatic." not in host:
            return host
    return None


# =============================================================================
# Phone
# =============================================================================

def digits_only(value: Optional[str]) -> str:
    return re.sub(r"\D", "", value or "")


def parse_phone(value: Optional[str], min_digits: int = MIN_LABELLED_PHONE_DIGITS) -> Optional[str]:
    """Digits of a phone reference (``tel:`` prefix or label text)."""
    if not value:
        return None
    if value.lower().startswith("tel:"):
        value = value[4:]
    digits = digits_only(value)
    if min_digits <= len(digits) <= MAX_PHONE_DIGITS:
        return digits
    return None


def find_phone_in_text(text: Optional[str]) -> Optional[str]:
    """Visible-text heuristic; only strings with at least 10 digits are accepted."""
    if not text:
        return None
    for match in PHONE_IN_TEXT_RE.finditer(text):
        phone = parse_phone(match.group(0), MIN_HEURISTIC_PHONE_DIGITS)
        if phone:
            return phone
    return None


# =============================================================================
# Reviews and rating
# =============================================================================

def parse_count(text: Optional[str]) -> Optional[int]:
    """
    Parse a count with optional thousands separators or K/M/B suffix.

    Examples:
        "1,234" -> 1234, "1.2K" -> 1200, "(87)" -> 87, "3 M" -> 3000000
    """
    if not text:
        return None
    match = COUNT_RE.search(text)
    if not match:
        return None

    number, suffix = match.group(1), match.group(2)
    number = re.sub(r"\s", "", number)

    if suffix:
        try:
            value = float(number.replace(",", "."))
        except ValueError:
            return None
        return int(round(value * MAGNITUDES[suffix.lower()]))

    try:
        return int(re.sub(r"[.,]", "", number))
    except ValueError:
        return None


def parse_review_label(label: Optional[str]) -> Optional[int]:
    """``"1,234 reviews"`` / ``"1.2K reviews"`` -> count."""
    if not label:
        return None
    match = REVIEW_LABEL_RE.search(label)
    return parse_count(match.group(1)) if match else None


def normalize_rating(value: Optional[float]) -> Optional[float]:
    """Round to one decimal and reject values outside [0, 5]."""
    if value is None:
        return None
    rounded = round(value, 1)
    return rounded if 0.0 <= rounded <= 5.0 else None


def parse_star_label(label: Optional[str]) -> Optional[float]:
    """``"4.5 stars"`` -> 4.5."""
    if not label:
        return None
    match = STAR_LABEL_RE.search(label)
    if not match:
        return None
    return normalize_rating(float(match.group(1).replace(",", ".")))


def parse_rating_value(text: Optional[str]) -> Optional[float]:
    """Bare rating text such as ``"4,3"`` -> 4.3."""
    if not text:
        return None
    match = RATING_VALUE_RE.match(text)
    if not match:
        return None
    return normalize_rating(float(match.group(1).replace(",", ".")))
