"""Tests for lock-gated task entrypoints and the scheduled daily check."""

import json
import os
from datetime import datetime, timedelta, timezone

import pytest

from listing_tracker.db.models import RunStatus
from listing_tracker.errors import ErrorCode, TrackerError
from listing_tracker.worker.run_lock import RunLock
from listing_tracker.worker.scheduler import daily_check_job, setup_scheduler
from listing_tracker.worker.tasks import TaskRunner

URL = "https://www.google.com/maps/place/Joes+Cafe/ChIJ123"


@pytest.fixture
def lock_path(test_settings):
    return test_settings.lock_path


@pytest.fixture
def runner(orchestrator, run_state, lock_path):
    return TaskRunner(orchestrator, run_state, RunLock(lock_path, stale_after_seconds=3600))


def _foreign_lock(lock_path, age: timedelta):
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    started = (datetime.now(timezone.utc) - age).isoformat().replace("+00:00", "Z")
    # Held by a live process (this one) under a different owner record
    lock_path.write_text(json.dumps({"pid": os.getpid(), "startedAt": started, "command": "other"}))


async def test_daily_check_records_success(runner, run_state, clock, lock_path):
    await runner.onboard(URL)
    clock.current["now"] += timedelta(days=1)

    result = await runner.run_daily_check()

    assert result.checked == 1
    state = await run_state.get()
    assert state.last_run_status == RunStatus.SUCCESS.value
    assert state.last_run_error is None
    assert not lock_path.exists()


async def test_daily_check_records_partial(runner, run_state, repository, clock):
    business = await runner.onboard(URL)
    await repository.update(business.id, url="")
    clock.current["now"] += timedelta(days=1)

    result = await runner.run_daily_check()

    assert result.failed == 1
    assert (await run_state.get()).last_run_status == RunStatus.PARTIAL.value


async def test_daily_check_respects_gate(runner, fake_extractor):
    await runner.onboard(URL)

    result = await runner.run_daily_check()
    assert result.skipped == 1
    assert len(fake_extractor.extracted_urls) == 1


@pytest.mark.parametrize(
    "attr,code",
    [("fake_session", ErrorCode.NOT_LOGGED_IN), ("fake_auth", ErrorCode.SHEETS_AUTH_REQUIRED)],
)
async def test_daily_check_preflight_failures_are_recorded(request, runner, run_state, lock_path, attr, code):
    request.getfixturevalue(attr).authenticated = False

    with pytest.raises(TrackerError) as exc:
        await runner.run_daily_check()
    assert exc.value.code == code

    state = await run_state.get()
    assert state.last_run_status == RunStatus.FAILED.value
    assert state.last_run_error == code.value
    assert not lock_path.exists()


async def test_api_runs_never_override_stale_lock(runner, lock_path):
    _foreign_lock(lock_path, timedelta(hours=2))

    with pytest.raises(TrackerError) as exc:
        await runner.check_all()
    assert exc.value.code == ErrorCode.RUN_IN_PROGRESS


async def test_daily_check_overrides_stale_lock(runner, lock_path):
    _foreign_lock(lock_path, timedelta(hours=2))

    result = await runner.run_daily_check()
    assert result.total == 0
    assert not lock_path.exists()


async def test_daily_check_blocked_by_fresh_lock(runner, run_state, lock_path):
    _foreign_lock(lock_path, timedelta(minutes=1))

    with pytest.raises(TrackerError) as exc:
        await runner.run_daily_check()
    assert exc.value.code == ErrorCode.RUN_IN_PROGRESS
    assert lock_path.exists()
    assert (await run_state.get()).last_run_status == RunStatus.FAILED.value


async def test_scheduled_job_swallows_failures(runner, fake_session):
    fake_session.authenticated = False
    await daily_check_job(runner)


def test_scheduler_registers_daily_job(runner):
    scheduler = setup_scheduler(runner)
    job = scheduler.get_job("daily_check")

    assert job is not None
    assert job.max_instances == 1
    assert job.coalesce is True
    assert job.args == (runner,)
