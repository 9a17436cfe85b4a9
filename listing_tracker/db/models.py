"""SQLAlchemy database models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class RunStatus(str, Enum):
    SUCCESS = "SUCCESS"
    PARTIAL = "PARTIAL"
    FAILED = "FAILED"


class Business(Base):
    """Tracked Google Maps listing."""

    __tablename__ = "businesses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    canonical_key: Mapped[str] = mapped_column(String(512), unique=True, nullable=False)
    place_id: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    cid: Mapped[Optional[str]] = mapped_column(String(64), unique=True, nullable=True)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # External artifacts
    spreadsheet_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    folder_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    # Daily gate
    last_checked_date: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)  # YYYY-MM-DD, civil tz
    last_checked_at: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)  # ISO-8601 UTC

    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<Business id={self.id} key={self.canonical_key!r}>"


class RunState(Base):
    """Outcome of the most recent batch run (singleton row, id = 1)."""

    __tablename__ = "run_state"
    __table_args__ = (
        CheckConstraint("id = 1", name="ck_run_state_singleton"),
        CheckConstraint(
            "last_run_status IS NULL OR last_run_status IN ('SUCCESS', 'PARTIAL', 'FAILED')",
            name="ck_run_state_status",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    last_run_at: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    last_run_status: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    last_run_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
