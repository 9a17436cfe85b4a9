"""Field strategy registry."""

from __future__ import annotations

from listing_tracker.ingest.strategies.address import ADDRESS_CHAIN
from listing_tracker.ingest.strategies.base import FieldChain, FieldStrategy, run_chain
from listing_tracker.ingest.strategies.name import NAME_CHAIN
from listing_tracker.ingest.strategies.phone import PHONE_CHAIN
from listing_tracker.ingest.strategies.reviews import REVIEW_COUNT_CHAIN, STAR_RATING_CHAIN
from listing_tracker.ingest.strategies.status import STATUS_CHAIN
from listing_tracker.ingest.strategies.webpage import WEBPAGE_CHAIN


_CHAINS = {
    "name": NAME_CHAIN,
    "address": ADDRESS_CHAIN,
    "webpage": WEBPAGE_CHAIN,
    "phone": PHONE_CHAIN,
    "open_closed_status": STATUS_CHAIN,
    "review_count": REVIEW_COUNT_CHAIN,
    "star_rating": STAR_RATING_CHAIN,
}


def get_chain(field: str) -> FieldChain:
    """Return the ordered strategy chain for a field."""
    try:
        return _CHAINS[field]
    except KeyError:
        raise ValueError(f"No strategy chain for field {field!r}")


__all__ = [
    "FieldChain",
    "FieldStrategy",
    "get_chain",
    "run_chain",
]
