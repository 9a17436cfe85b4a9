"""Change detection between two observations of the same listing."""

from typing import Optional, Union

from listing_tracker.snapshot import ExtractedData, Observation

Comparable = Union[Observation, ExtractedData]

CHANGE_SEPARATOR = "; "


def _fmt(value: Union[int, float]) -> str:
    """Render numbers without a trailing ``.0`` (4.0 -> "4", 4.2 -> "4.2")."""
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


def _link_change(old: Optional[str], new: Optional[str]) -> Optional[str]:
    if old == new:
        return None
    if not old and new:
        return "Link: added"
    if old and not new:
        return "Link: removed"
    return "Link: changed"


def _contact_change(label: str, old: Optional[str], new: Optional[str]) -> Optional[str]:
    # First appearance of a value is not reported
    if old == new or not old:
        return None
    if not new:
        return f"{label}: removed"
    return f"{label}: changed"


def detect_changes(baseline: Optional[Observation], current: Comparable) -> str:
    """
    Describe what changed between ``baseline`` and ``current``.

    Args:
        baseline: Last valid observation, or None for a first observation
        current: The new observation (or raw extraction result)

    Returns:
        Semicolon-delimited change list; empty when nothing changed or
        there is no baseline
    """
    if baseline is None:
        return ""

    changes: list[str] = []

    link = _link_change(baseline.link, current.link)
    if link:
        changes.append(link)

    if baseline.name and current.name and baseline.name != current.name:
        changes.append("Name: changed")

    for label, attr in (("Address", "address"), ("Webpage", "webpage"), ("Phone", "phone")):
        change = _contact_change(label, getattr(baseline, attr), getattr(current, attr))
        if change:
            changes.append(change)

    if baseline.open_closed_status != current.open_closed_status:
        changes.append(
            f"OpenClosedStatus: {baseline.open_closed_status.value} → {current.open_closed_status.value}"
        )

    old_reviews, new_reviews = baseline.review_count, current.review_count
    if old_reviews is not None and new_reviews is not None and old_reviews != new_reviews:
        diff = new_reviews - old_reviews
        sign = "+" if diff > 0 else ""
        changes.append(f"ReviewCount: {sign}{diff} ({old_reviews} → {new_reviews})")

    old_rating, new_rating = baseline.star_rating, current.star_rating
    if old_rating is not None and new_rating is not None and old_rating != new_rating:
        direction = "increased" if new_rating > old_rating else "decreased"
        changes.append(f"StarRating: {_fmt(old_rating)} → {_fmt(new_rating)} ({direction})")

    return CHANGE_SEPARATOR.join(changes)
