"""Run state routes."""

from fastapi import APIRouter, Depends

from listing_tracker.api.deps import get_task_runner
from listing_tracker.worker.tasks import TaskRunner

router = APIRouter(prefix="/api/runs", tags=["runs"])


@router.get("/status")
async def run_status(runner: TaskRunner = Depends(get_task_runner)):
    """Outcome of the last daily check and the current lock holder, if any."""
    state = await runner.run_state.get()
    lock = runner.run_lock.status()
    return {
        "lastRunAt": state.last_run_at if state else None,
        "lastRunStatus": state.last_run_status if state else None,
        "lastRunError": state.last_run_error if state else None,
        "lock": lock,
    }
