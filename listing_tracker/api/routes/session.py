"""Browser session routes."""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends

from listing_tracker.api.deps import get_task_runner
from listing_tracker.ingest.session_manager import LoginState
from listing_tracker.worker.tasks import TaskRunner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/session", tags=["session"])


@router.get("/status")
async def session_status(runner: TaskRunner = Depends(get_task_runner)):
    """Whether the saved browser identity is signed in."""
    logged_in = await runner.session.is_authenticated()
    return {
        "loggedIn": logged_in,
        "loginInProgress": runner.session.login_in_progress,
    }


async def _run_interactive_login(runner: TaskRunner) -> None:
    state = await runner.session.open_interactive_login()
    logger.info(f"Interactive login finished: {state.value}")


@router.post("/open-login")
async def open_login(background_tasks: BackgroundTasks, runner: TaskRunner = Depends(get_task_runner)):
    """
    Open a visible browser window for signing in.

    The login wait runs in the background; poll ``/status`` for the result.
    """
    if runner.session.login_in_progress:
        return {"success": True, "state": LoginState.IN_PROGRESS.value}

    background_tasks.add_task(_run_interactive_login, runner)
    return {"success": True, "state": LoginState.AWAITING_SIGNIN_CLICK.value}
