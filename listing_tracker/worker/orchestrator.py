"""Onboarding and daily-gated check workflows for tracked businesses."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from playwright.async_api import Page

from listing_tracker import metrics
from listing_tracker.cloud.drive import GoogleDriveService
from listing_tracker.cloud.google_auth import GoogleAuthService
from listing_tracker.cloud.sheets import GoogleSheetsService
from listing_tracker.config import Settings, settings as default_settings
from listing_tracker.db.models import Business, RunStatus
from listing_tracker.db.repository import BusinessRepository
from listing_tracker.detect.changes import detect_changes
from listing_tracker.errors import BusinessNotFoundError, ErrorCode, TrackerError
from listing_tracker.ingest.fetchers.headless import ListingExtractor
from listing_tracker.ingest.session_manager import SessionManager
from listing_tracker.logging_config import get_logger
from listing_tracker.snapshot import ExtractedData, Observation
from listing_tracker.utils.timezone import civil_date, utc_now, utc_now_iso
from listing_tracker.utils.url import (
    derive_canonical_key,
    extract_cid,
    extract_place_id,
    normalize_maps_url,
    validate_url,
)

logger = logging.getLogger(__name__)

UNKNOWN_BUSINESS_NAME = "Unknown Business"


class CheckStatus(str, Enum):
    CHECKED = "CHECKED"
    SKIPPED = "SKIPPED"  # Already checked today (daily gate)


@dataclass
class CheckOutcome:
    business_id: int
    status: CheckStatus
    observation: Optional[Observation] = None


@dataclass
class BatchFailure:
    business_id: int
    name: Optional[str]
    error: str


@dataclass
class BatchResult:
    """Per-business results of a check-all run."""

    total: int = 0
    outcomes: list[CheckOutcome] = field(default_factory=list)
    failures: list[BatchFailure] = field(default_factory=list)

    @property
    def checked(self) -> int:
        return sum(1 for o in self.outcomes if o.status == CheckStatus.CHECKED)

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.status == CheckStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def run_status(self) -> RunStatus:
        return RunStatus.SUCCESS if not self.failures else RunStatus.PARTIAL

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "checked": self.checked,
            "skipped": self.skipped,
            "failed": self.failed,
            "errors": [
                {"id": f.business_id, "name": f.name, "error": f.error}
                for f in self.failures
            ],
        }


def screenshot_stamp(checked_at: str) -> str:
    """``2026-01-02T17:16:01.382Z`` -> ``2026-01-02T17-16-01-382``."""
    return checked_at.replace(":", "-").replace(".", "-").replace("Z", "")


def build_activity(extracted: ExtractedData, baseline: Optional[Observation], current: Observation) -> str:
    """Activity column: the failure marker for failed extraction, else the change summary."""
    if extracted.error_code == ErrorCode.EXTRACTION_FAILED.value:
        return ErrorCode.EXTRACTION_FAILED.value
    return detect_changes(baseline, current)


class CheckOrchestrator:
    """
    Composes session, extraction, change detection and the cloud ledger.

    Callers must hold the run lock for the whole of ``onboard``, ``check``
    or ``check_all``; nothing here acquires it.
    """

    def __init__(
        self,
        repository: BusinessRepository,
        session: SessionManager,
        extractor: ListingExtractor,
        auth: GoogleAuthService,
        sheets: GoogleSheetsService,
        drive: GoogleDriveService,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.repository = repository
        self.session = session
        self.extractor = extractor
        self.auth = auth
        self.sheets = sheets
        self.drive = drive
        self.settings = settings or default_settings
        self._clock = clock or utc_now

    def _today(self, now: datetime) -> str:
        return civil_date(now, self.settings.timezone)

    def _observation(self, extracted: ExtractedData, baseline: Optional[Observation]) -> Observation:
        now = self._clock()
        observation = Observation.from_extracted(extracted, date=self._today(now), checked_at=utc_now_iso(now))
        return observation.with_activity(build_activity(extracted, baseline, observation))

    async def _require_session(self) -> None:
        if not await self.session.is_authenticated():
            raise TrackerError(ErrorCode.NOT_LOGGED_IN)

    async def _stamp_checked(self, business_id: int, observation: Observation) -> Business:
        return await self.repository.update(
            business_id,
            last_checked_date=observation.date,
            last_checked_at=observation.checked_at,
        )

    # =========================================================================
    # Onboarding
    # =========================================================================

    async def onboard(self, url: str) -> Business:
        """
        Register a listing and write its first observation.

        Raises:
            TrackerError: INVALID_URL or NOT_LOGGED_IN
            DuplicateBusinessError: If canonical key, place id or cid collides
        """
        raw = validate_url(url)
        normalized = validate_url(normalize_maps_url(raw))

        # Identity is read from the raw URL, before any parameter stripping
        place_id = extract_place_id(raw)
        cid = extract_cid(raw)
        canonical_key = derive_canonical_key(normalized, place_id, cid)

        collision = await self.repository.find_collision(canonical_key, place_id, cid)
        if collision is not None:
            raise collision

        await self._require_session()

        extracted, page = await self.extractor.extract(normalized)
        if page is not None:
            await page.close()

        business = await self.repository.insert(
            canonical_key=canonical_key,
            place_id=place_id,
            cid=cid,
            url=normalized,
            name=extracted.name,
        )
        log = get_logger(__name__, business_id=business.id)
        log.info(f"Onboarded {canonical_key} as business {business.id}")

        try:
            if await self.auth.is_authenticated():
                business = await self._provision(business, extracted.name)
            else:
                log.info("Google account not authorized; artifacts will be created on first check")
        except Exception as e:
            log.error(f"Failed to provision folder/spreadsheet: {e}")

        if business.spreadsheet_id:
            observation = self._observation(extracted, None)
            await self.sheets.append_observation(business.spreadsheet_id, observation)
            business = await self._stamp_checked(business.id, observation)

        return business

    # =========================================================================
    # Artifacts
    # =========================================================================

    async def _provision(self, business: Business, extracted_name: Optional[str]) -> Business:
        """Create or find the business folder, screenshots folder and spreadsheet."""
        name = extracted_name or business.name or UNKNOWN_BUSINESS_NAME

        folder_id = business.folder_id
        if not folder_id:
            root_id = await self.drive.get_or_create_root_folder()
            folder_id = await self.drive.create_business_folder(name, root_id)
        await self.drive.get_or_create_screenshots_folder(folder_id)

        spreadsheet_id = business.spreadsheet_id
        if not spreadsheet_id:
            spreadsheet_id = await self.sheets.find_spreadsheet_in_folder(folder_id, name)
            if spreadsheet_id:
                logger.info(f"Reusing spreadsheet {spreadsheet_id} found in folder {folder_id}")
            else:
                spreadsheet_id = await self.sheets.create_spreadsheet(name, folder_id)

        return await self.repository.update(business.id, folder_id=folder_id, spreadsheet_id=spreadsheet_id)

    async def _ensure_artifacts(self, business: Business, extracted_name: Optional[str]) -> Business:
        log = get_logger(__name__, business_id=business.id)

        if business.folder_id and business.spreadsheet_id:
            if await self.sheets.spreadsheet_exists(business.spreadsheet_id):
                try:
                    await self.drive.get_or_create_screenshots_folder(business.folder_id)
                except TrackerError as e:
                    log.warning(f"Could not ensure screenshots folder: {e}")
                return business

            log.warning(f"Spreadsheet {business.spreadsheet_id} no longer exists, recreating")
            business = await self.repository.update(business.id, spreadsheet_id=None)

        try:
            business = await self._provision(business, extracted_name)
            log.info(f"Artifacts ready: folder={business.folder_id} spreadsheet={business.spreadsheet_id}")
        except Exception as e:
            # Check continues; screenshot is skipped without a folder
            log.error(f"Failed to ensure folder/spreadsheet: {e}")
        return business

    async def _screenshot(self, business: Business, observation: Observation, page: Optional[Page]) -> Optional[str]:
        """Capture and upload a screenshot. Never raises."""
        log = get_logger(__name__, business_id=business.id)

        stamp = screenshot_stamp(observation.checked_at)
        local_path = Path(self.settings.screenshot_path) / f"{business.id}-{stamp}.png"
        local_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            target = page if page is not None else business.url
            if not await self.extractor.capture_screenshot(target, local_path):
                log.warning("Screenshot capture failed")
                return None
            return await self.drive.upload_screenshot(local_path, business.folder_id, f"{stamp}.png")
        except Exception as e:
            log.error(f"Screenshot upload failed: {e}")
            return None
        finally:
            local_path.unlink(missing_ok=True)

    # =========================================================================
    # Checks
    # =========================================================================

    async def check(self, business_id: int, force: bool = False) -> CheckOutcome:
        """
        Run one check, gated to once per civil day unless ``force``.

        Raises:
            BusinessNotFoundError: Unknown id
            TrackerError: NOT_LOGGED_IN, SHEETS_AUTH_REQUIRED, INVALID_URL or
                SHEETS_WRITE_FAILED
        """
        business = await self.repository.require(business_id)
        log = get_logger(__name__, business_id=business_id)

        today = self._today(self._clock())
        if not force and business.last_checked_date == today:
            log.info(f"Already checked today ({today}), skipping")
            metrics.record_check("skipped")
            return CheckOutcome(business_id, CheckStatus.SKIPPED)

        log.info(f"Checking business {business_id} ({business.name or 'Unknown'})")
        try:
            outcome = await self._check(business)
        except TrackerError as e:
            metrics.record_check("failed", e.code.value)
            raise
        except Exception:
            metrics.record_check("failed")
            raise

        metrics.record_check("checked")
        return outcome

    async def _check(self, business: Business) -> CheckOutcome:
        log = get_logger(__name__, business_id=business.id)

        await self._require_session()
        if not await self.auth.is_authenticated():
            raise TrackerError(ErrorCode.SHEETS_AUTH_REQUIRED)
        if not business.url:
            raise TrackerError(ErrorCode.INVALID_URL, "Business has no URL")

        extracted, page = await self.extractor.extract(business.url)

        try:
            baseline = None
            if business.spreadsheet_id:
                baseline = await self.sheets.get_last_valid_observation(business.spreadsheet_id)

            business = await self._ensure_artifacts(business, extracted.name)
            observation = self._observation(extracted, baseline)

            screenshot_link = None
            if extracted.error_code:
                log.info(f"Screenshot skipped: extraction error {extracted.error_code}")
            elif not business.folder_id:
                log.info("Screenshot skipped: no folder")
            else:
                screenshot_link = await self._screenshot(business, observation, page)
        finally:
            if page is not None:
                await page.close()

        observation = observation.with_screenshot(screenshot_link)

        if not business.spreadsheet_id:
            raise TrackerError(ErrorCode.SHEETS_WRITE_FAILED, "No spreadsheet available for business")
        await self.sheets.append_observation(business.spreadsheet_id, observation)

        await self._stamp_checked(business.id, observation)
        log.info(f"Appended observation to {business.spreadsheet_id}: {observation.activity or 'no changes'}")
        return CheckOutcome(business.id, CheckStatus.CHECKED, observation)

    async def check_all(self, force: bool = False) -> BatchResult:
        """Check every business with bounded concurrency; failures are isolated."""
        businesses = await self.repository.list_all()
        result = BatchResult(total=len(businesses))
        if not businesses:
            return result

        concurrency = max(1, self.settings.check_all_concurrency)
        semaphore = asyncio.Semaphore(concurrency)
        logger.info(f"Checking {len(businesses)} businesses (concurrency {concurrency})")

        async def run_one(business: Business) -> None:
            async with semaphore:
                try:
                    result.outcomes.append(await self.check(business.id, force=force))
                except (TrackerError, BusinessNotFoundError) as e:
                    logger.error(f"Check failed for business {business.id}: {e}")
                    result.failures.append(BatchFailure(business.id, business.name, str(e)))
                except Exception as e:
                    logger.exception(f"Unexpected error checking business {business.id}")
                    result.failures.append(BatchFailure(business.id, business.name, f"{type(e).__name__}: {e}"))

        await asyncio.gather(*(run_one(b) for b in businesses))

        logger.info(
            f"Check-all completed: {result.checked} checked, {result.skipped} skipped, {result.failed} failed"
        )
        return result

    async def delete(self, business_id: int) -> None:
        """Remove the record. The spreadsheet and Drive folder are kept."""
        await self.repository.delete(business_id)
