"""Lock-gated workflow entrypoints shared by the API, CLI and scheduler."""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from listing_tracker import metrics
from listing_tracker.cloud.drive import GoogleDriveService
from listing_tracker.cloud.google_auth import GoogleAuthService
from listing_tracker.cloud.sheets import GoogleSheetsService
from listing_tracker.config import Settings, settings as default_settings
from listing_tracker.db.models import Business, RunStatus
from listing_tracker.db.repository import BusinessRepository, RunStateRepository
from listing_tracker.errors import ErrorCode, TrackerError
from listing_tracker.ingest.fetchers.headless import ListingExtractor
from listing_tracker.ingest.session_manager import SessionManager
from listing_tracker.ingest.session_store import StorageStateStore
from listing_tracker.worker.orchestrator import BatchResult, CheckOrchestrator, CheckOutcome
from listing_tracker.worker.run_lock import RunLock

logger = logging.getLogger(__name__)


class TaskRunner:
    """
    Runs orchestrator workflows under the run lock.

    Onboarding and checks started from the API never override a stale lock;
    the daily check does, and records its outcome in the run-state row.
    """

    def __init__(
        self,
        orchestrator: CheckOrchestrator,
        run_state: RunStateRepository,
        run_lock: Optional[RunLock] = None,
    ):
        self.orchestrator = orchestrator
        self.run_state = run_state
        self.run_lock = run_lock or RunLock()

    @property
    def session(self) -> SessionManager:
        return self.orchestrator.session

    @property
    def auth(self) -> GoogleAuthService:
        return self.orchestrator.auth

    @property
    def repository(self) -> BusinessRepository:
        return self.orchestrator.repository

    async def close(self):
        """Close browser resources."""
        await self.session.close()

    async def onboard(self, url: str) -> Business:
        return await self.run_lock.with_lock(lambda: self.orchestrator.onboard(url))

    async def check(self, business_id: int, force: bool = True) -> CheckOutcome:
        return await self.run_lock.with_lock(lambda: self.orchestrator.check(business_id, force=force))

    async def check_all(self, force: bool = True) -> BatchResult:
        return await self.run_lock.with_lock(lambda: self.orchestrator.check_all(force=force))

    async def delete(self, business_id: int) -> None:
        await self.run_lock.with_lock(lambda: self.orchestrator.delete(business_id))

    async def run_daily_check(self) -> BatchResult:
        """
        Daily-gated check of every business.

        Overrides a stale lock, verifies both identities up front and records
        SUCCESS/PARTIAL (or FAILED when the run could not start) in run state.

        Raises:
            TrackerError: RUN_IN_PROGRESS, NOT_LOGGED_IN or SHEETS_AUTH_REQUIRED
        """
        logger.info("Starting daily check")

        try:
            async with self.run_lock.hold(allow_stale_override=True):
                if not await self.session.is_authenticated():
                    raise TrackerError(ErrorCode.NOT_LOGGED_IN)
                if not await self.auth.is_authenticated():
                    raise TrackerError(ErrorCode.SHEETS_AUTH_REQUIRED)

                result = await self.orchestrator.check_all(force=False)
        except Exception as e:
            logger.error(f"Daily check failed: {e}")
            await self.run_state.record(RunStatus.FAILED, error=str(e))
            metrics.record_scheduler_run("daily_check", success=False)
            raise

        await self.run_state.record(result.run_status)
        metrics.record_scheduler_run("daily_check", success=True)
        logger.info(
            f"Daily check completed ({result.run_status.value}): "
            f"{result.checked} checked, {result.skipped} skipped, {result.failed} failed"
        )
        return result


def build_task_runner(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Optional[Settings] = None,
) -> TaskRunner:
    """Wire the production collaborators together."""
    settings = settings or default_settings

    session = SessionManager(StorageStateStore(settings.storage_state_path), settings)
    auth = GoogleAuthService(settings)
    orchestrator = CheckOrchestrator(
        repository=BusinessRepository(session_factory),
        session=session,
        extractor=ListingExtractor(session),
        auth=auth,
        sheets=GoogleSheetsService(auth, settings),
        drive=GoogleDriveService(auth, settings),
        settings=settings,
    )
    return TaskRunner(
        orchestrator,
        RunStateRepository(session_factory),
        RunLock(settings.lock_path, settings.lock_stale_seconds),
    )
