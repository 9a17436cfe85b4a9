"""File-based process lock gating check and onboarding runs."""

import json
import logging
import os
import sys
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, TypeVar

from listing_tracker import metrics
from listing_tracker.config import settings
from listing_tracker.errors import ErrorCode, TrackerError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class LockInfo:
    """Contents of the lock record."""

    pid: int
    started_at: str
    command: str

    @property
    def started_at_dt(self) -> datetime:
        return datetime.fromisoformat(self.started_at.replace("Z", "+00:00"))


def pid_exists(pid: int) -> bool:
    """Signal-0 liveness probe for a process id on this host."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but owned by another user
        return True
    except OSError:
        return False
    return True


class RunLock:
    """
    Advisory lock record persisted at a well-known path.

    Features:
    - At most one live holder per host
    - Abandoned records (dead pid, unreadable file) are reclaimed
    - Records older than the staleness threshold can be overridden on request
    - Release only deletes a record owned by this process
    """

    def __init__(
        self,
        lock_path: Optional[Path] = None,
        stale_after_seconds: Optional[float] = None,
        pid: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the lock.

        Args:
            lock_path: Lock record location (defaults to settings)
            stale_after_seconds: Age after which a live holder may be overridden
            pid: Process id recorded as owner (defaults to this process)
            clock: Returns the current UTC instant (injectable for tests)
        """
        self.lock_path = Path(lock_path or settings.lock_path)
        self.stale_after_seconds = (
            stale_after_seconds if stale_after_seconds is not None else settings.lock_stale_seconds
        )
        self.pid = pid if pid is not None else os.getpid()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def read(self) -> Optional[LockInfo]:
        """Return the current record, or None if absent or unreadable."""
        try:
            data = json.loads(self.lock_path.read_text(encoding="utf-8"))
            return LockInfo(pid=int(data["pid"]), started_at=str(data["startedAt"]), command=str(data.get("command", "")))
        except FileNotFoundError:
            return None
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Lock record at {self.lock_path} is invalid: {e}")
            return None

    def _remove(self, reason: str) -> None:
        try:
            self.lock_path.unlink()
            logger.warning(f"Removed lock record ({reason})")
        except FileNotFoundError:
            pass

    def _write(self) -> Optional[LockInfo]:
        """Create the record exclusively; None if another caller won the race."""
        info = LockInfo(
            pid=self.pid,
            started_at=self._clock().isoformat().replace("+00:00", "Z"),
            command=" ".join(sys.argv),
        )
        payload = {"pid": info.pid, "startedAt": info.started_at, "command": info.command}
        try:
            fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return None
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
        return info

    def age_seconds(self, info: LockInfo) -> float:
        try:
            return (self._clock() - info.started_at_dt).total_seconds()
        except ValueError:
            return float("inf")

    def acquire(self, allow_stale_override: bool = False) -> Optional[LockInfo]:
        """
        Acquire the lock.

        Args:
            allow_stale_override: Replace a live holder's record once it is stale

        Returns:
            The new LockInfo, or None if the lock is held
        """
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)

        if self.lock_path.exists():
            existing = self.read()
            if existing is None:
                self._remove("unreadable record")
            elif not pid_exists(existing.pid):
                self._remove(f"holder pid {existing.pid} is gone")
            else:
                age = self.age_seconds(existing)
                if age > self.stale_after_seconds and allow_stale_override:
                    self._remove(f"stale record from pid {existing.pid}, age {age:.0f}s")
                else:
                    logger.info(
                        f"Run lock held by pid {existing.pid} since {existing.started_at} "
                        f"(age {age:.0f}s, stale={age > self.stale_after_seconds})"
                    )
                    metrics.run_lock_contention_total.inc()
                    return None

        info = self._write()
        if info is None:
            logger.info("Run lock was taken concurrently by another caller")
            metrics.run_lock_contention_total.inc()
            return None

        logger.info(f"Acquired run lock (pid {info.pid})")
        return info

    def release(self) -> bool:
        """
        Release the lock if this process owns it.

        Returns:
            True if a record owned by this process was deleted
        """
        existing = self.read()
        if existing is None or existing.pid != self.pid:
            return False
        try:
            self.lock_path.unlink()
        except FileNotFoundError:
            return False
        logger.info(f"Released run lock (pid {self.pid})")
        return True

    @asynccontextmanager
    async def hold(self, allow_stale_override: bool = False):
        """Hold the lock for the body of an ``async with`` block."""
        info = self.acquire(allow_stale_override)
        if info is None:
            raise TrackerError(ErrorCode.RUN_IN_PROGRESS)
        try:
            yield info
        finally:
            self.release()

    async def with_lock(
        self,
        work: Callable[[], Awaitable[T]],
        allow_stale_override: bool = False,
    ) -> T:
        """
        Run ``work`` while holding the lock.

        Raises:
            TrackerError: RUN_IN_PROGRESS if the lock is unavailable
        """
        async with self.hold(allow_stale_override):
            return await work()

    def status(self) -> Optional[dict[str, Any]]:
        """Lock holder details for status endpoints."""
        info = self.read()
        if info is None:
            return None
        data = asdict(info)
        data["age_seconds"] = round(self.age_seconds(info), 1)
        data["alive"] = pid_exists(info.pid)
        return data


