"""Google Maps URL normalisation and canonical business keys."""

import re
from typing import Optional
from urllib.parse import parse_qsl, unquote, urlencode, urlsplit, urlunsplit

from listing_tracker.errors import ErrorCode, TrackerError

# Query parameters that never change which listing a URL points at
TRACKING_PARAMS = {"utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content", "gid"}
VIEW_PARAMS = {"zoom", "hl"}

LOCALE_PREFIX_RE = re.compile(r"^/[a-z]{2}(?:-[A-Z]{2})?/")
PLACE_PATH_RE = re.compile(r"^/maps/place/([^/]+)(?:/([^/]+))?")
KG_ID_RE = re.compile(r"!16s([^!&]+)")
FEATURE_ID_RE = re.compile(r"!1s0x[0-9a-fA-F]+:(0x[0-9a-fA-F]+)")
DATA_CID_RE = re.compile(r"cid[=:]([^&!]+)")


def _is_view_segment(segment: Optional[str]) -> bool:
    """Coordinates (``@lat,lng,zoom``) and ``data=`` blobs are view state, not identity."""
    return not segment or segment.startswith("@") or segment.startswith("data=")


def _data_blob(parts) -> str:
    """Collect the ``data=`` payload from either the path or the query string."""
    blobs = [seg[len("data="):] for seg in parts.path.split("/") if seg.startswith("data=")]
    blobs.extend(v for k, v in parse_qsl(parts.query, keep_blank_values=True) if k == "data")
    return "!".join(blobs)


def validate_url(url: str) -> str:
    """Return the stripped URL or raise ``INVALID_URL``."""
    candidate = (url or "").strip()
    try:
        parts = urlsplit(candidate)
    except ValueError:
        raise TrackerError(ErrorCode.INVALID_URL, f"Unparseable URL: {url!r}")
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise TrackerError(ErrorCode.INVALID_URL, f"Not an http(s) URL: {url!r}")
    return candidate


def normalize_maps_url(url: str) -> str:
    """
    Normalise a Maps listing URL for storage and navigation.

    Strips tracking and view-only parameters and removes a leading locale
    path segment. The place path is kept whole: its ``@lat,lng,zoom`` and
    ``data=`` segments are what open the listing panel instead of a name
    search. Unparseable input is returned unchanged.
    """
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return url

    query = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key not in TRACKING_PARAMS and key not in VIEW_PARAMS
    ]
    path = LOCALE_PREFIX_RE.sub("/", parts.path, count=1)
    return urlunsplit((parts.scheme, parts.netloc, path, urlencode(query), parts.fragment))


def _listing_key_url(url: str) -> str:
    """Normalised URL with the place path reduced to ``/maps/place/<name>[/<id>]``."""
    normalized = normalize_maps_url(url)
    try:
        parts = urlsplit(normalized)
    except ValueError:
        return normalized

    match = PLACE_PATH_RE.match(parts.path)
    if not match:
        return normalized

    place_name, place_segment = match.group(1), match.group(2)
    path = f"/maps/place/{place_name}"
    if not _is_view_segment(place_segment):
        path = f"{path}/{place_segment}"
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment))


def extract_place_id(url: str) -> Optional[str]:
    """Place id from the path segment after the place name, else the ``!16s`` data token."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return None

    path = LOCALE_PREFIX_RE.sub("/", parts.path, count=1)
    match = PLACE_PATH_RE.match(path)
    if match and not _is_view_segment(match.group(2)):
        return match.group(2)

    kg_match = KG_ID_RE.search(_data_blob(parts))
    if kg_match:
        return unquote(kg_match.group(1))
    return None


def extract_cid(url: str) -> Optional[str]:
    """Customer id from ``?cid=``, a ``cid:`` data token or the feature id's second half."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return None

    for key, value in parse_qsl(parts.query, keep_blank_values=True):
        if key == "cid" and value:
            return value

    blob = _data_blob(parts)
    cid_match = DATA_CID_RE.search(blob)
    if cid_match:
        return cid_match.group(1)

    feature_match = FEATURE_ID_RE.search(blob)
    if feature_match:
        return str(int(feature_match.group(1), 16))
    return None


def derive_canonical_key(url: str, place_id: Optional[str], cid: Optional[str]) -> str:
    """Deduplication key with priority place id > cid > normalised URL without view state."""
    if place_id:
        return f"place_id:{place_id}"
    if cid:
        return f"cid:{cid}"
    return f"url:{_listing_key_url(url)}"
