"""Keyed access to tracked businesses and the run-state record."""

import logging
from typing import Any, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from listing_tracker import metrics
from listing_tracker.db.models import Business, RunState, RunStatus
from listing_tracker.errors import BusinessNotFoundError, DuplicateBusinessError
from listing_tracker.utils.timezone import utc_now_iso

logger = logging.getLogger(__name__)

# Columns callers may change after creation (canonical_key is immutable)
MUTABLE_FIELDS = {
    "url",
    "name",
    "spreadsheet_id",
    "folder_id",
    "last_checked_date",
    "last_checked_at",
}


class BusinessRepository:
    """
    Business records.

    Each call runs in its own short-lived session so concurrent checks
    never share one.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get(self, business_id: int) -> Optional[Business]:
        async with self._session_factory() as session:
            return await session.get(Business, business_id)

    async def require(self, business_id: int) -> Business:
        business = await self.get(business_id)
        if business is None:
            raise BusinessNotFoundError(business_id)
        return business

    async def list_all(self) -> list[Business]:
        """All businesses, newest first."""
        async with self._session_factory() as session:
            result = await session.execute(select(Business).order_by(Business.created_at.desc(), Business.id.desc()))
            return list(result.scalars().all())

    async def count(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(select(func.count(Business.id)))
            return int(result.scalar_one())

    async def find_collision(
        self,
        canonical_key: str,
        place_id: Optional[str],
        cid: Optional[str],
    ) -> Optional[DuplicateBusinessError]:
        """
        Find an existing business sharing any identity field.

        Returns:
            A DuplicateBusinessError describing the first collision, or None
        """
        conditions = [Business.canonical_key == canonical_key]
        if place_id:
            conditions.append(Business.place_id == place_id)
        if cid:
            conditions.append(Business.cid == cid)

        async with self._session_factory() as session:
            result = await session.execute(select(Business).where(or_(*conditions)).limit(1))
            existing = result.scalar_one_or_none()

        if existing is None:
            return None
        if existing.canonical_key == canonical_key:
            return DuplicateBusinessError("canonical_key", canonical_key, existing.id)
        if place_id and existing.place_id == place_id:
            return DuplicateBusinessError("place_id", place_id, existing.id)
        return DuplicateBusinessError("cid", cid, existing.id)

    async def insert(self, **fields: Any) -> Business:
        """
        Insert a business.

        Raises:
            DuplicateBusinessError: If a unique identity column collides
        """
        business = Business(**fields)
        async with self._session_factory() as session:
            session.add(business)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                logger.warning(f"Insert collided for {fields.get('canonical_key')}: {e.orig}")
                raise DuplicateBusinessError("canonical_key", fields.get("canonical_key", ""))
            await session.refresh(business)

        metrics.businesses_tracked.inc()
        logger.info(f"Created business {business.id} ({business.canonical_key})")
        return business

    async def update(self, business_id: int, **fields: Any) -> Business:
        """
        Update mutable columns of a business.

        Raises:
            BusinessNotFoundError: If no business has this id
            ValueError: If an immutable or unknown column is passed
        """
        unknown = set(fields) - MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")

        async with self._session_factory() as session:
            business = await session.get(Business, business_id)
            if business is None:
                raise BusinessNotFoundError(business_id)
            for key, value in fields.items():
                setattr(business, key, value)
            await session.commit()
            await session.refresh(business)
            return business

    async def delete(self, business_id: int) -> None:
        """
        Delete a business record.

        Raises:
            BusinessNotFoundError: If no business has this id
        """
        async with self._session_factory() as session:
            business = await session.get(Business, business_id)
            if business is None:
                raise BusinessNotFoundError(business_id)
            await session.delete(business)
            await session.commit()

        metrics.businesses_tracked.dec()
        logger.info(f"Deleted business {business_id}")


class RunStateRepository:
    """Singleton run-state record."""

    SINGLETON_ID = 1

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get(self) -> Optional[RunState]:
        async with self._session_factory() as session:
            return await session.get(RunState, self.SINGLETON_ID)

    async def record(self, status: RunStatus, error: Optional[str] = None, at: Optional[str] = None) -> RunState:
        """Upsert the last run outcome."""
        async with self._session_factory() as session:
            state = await session.get(RunState, self.SINGLETON_ID)
            if state is None:
                state = RunState(id=self.SINGLETON_ID)
                session.add(state)
            state.last_run_at = at or utc_now_iso()
            state.last_run_status = RunStatus(status).value
            state.last_run_error = error
            await session.commit()
            await session.refresh(state)
            return state
