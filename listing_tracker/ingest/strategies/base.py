"""Field strategy base classes."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from listing_tracker import metrics
from listing_tracker.ingest.base import DocumentProbe

logger = logging.getLogger(__name__)

StrategyFn = Callable[[DocumentProbe], Awaitable[Optional[Any]]]


@dataclass(frozen=True)
class FieldStrategy:
    """One way of locating a field value."""

    name: str
    fn: StrategyFn

    async def __call__(self, probe: DocumentProbe) -> Optional[Any]:
        return await self.fn(probe)


@dataclass
class FieldChain:
    """Ordered strategies for one field plus the plausibility gate."""

    field: str
    strategies: list[FieldStrategy] = field(default_factory=list)
    accept: Optional[Callable[[Any], bool]] = None

    async def resolve(self, probe: DocumentProbe) -> Optional[Any]:
        value, _ = await run_chain(self.field, self.strategies, probe, self.accept)
        return value


async def run_chain(
    field_name: str,
    strategies: list[FieldStrategy],
    probe: DocumentProbe,
    accept: Optional[Callable[[Any], bool]] = None,
) -> tuple[Optional[Any], Optional[str]]:
    """
    Try strategies in order until one yields a plausible value.

    Args:
        field_name: Field label used in logs and metrics
        strategies: Ordered strategies
        probe: Document to query
        accept: Plausibility gate; rejected values fall through to the next strategy

    Returns:
        Tuple of (value, winning strategy name) or (None, None)
    """
    for strategy in strategies:
        try:
            value = await strategy(probe)
        except Exception as e:
            logger.debug(f"[{field_name}] strategy {strategy.name} failed: {type(e).__name__}: {e}")
            continue

        if value is None:
            continue

        if accept is not None and not accept(value):
            logger.debug(f"[{field_name}] strategy {strategy.name} rejected {value!r}")
            continue

        logger.debug(f"[{field_name}] resolved by {strategy.name}: {value!r}")
        metrics.record_field(field_name, strategy.name)
        return value, strategy.name

    metrics.record_field(field_name, None)
    return None, None
