"""Google OAuth routes."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import HTMLResponse

from listing_tracker.api.deps import get_task_runner
from listing_tracker.worker.tasks import TaskRunner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

SUCCESS_PAGE = (
    "<html><body><h1>Authentication successful!</h1>"
    "<p>You can close this window.</p></body></html>"
)
FAILURE_PAGE = "<html><body><h1>Authentication failed</h1></body></html>"


@router.get("/status")
async def auth_status(runner: TaskRunner = Depends(get_task_runner)):
    """Whether Sheets/Drive calls are currently authorized."""
    return {
        "authenticated": await runner.auth.is_authenticated(),
        "configured": runner.auth.is_configured,
    }


@router.get("/url")
async def auth_url(runner: TaskRunner = Depends(get_task_runner)):
    """Consent URL for the Google account that owns the spreadsheets."""
    if not runner.auth.is_configured:
        raise HTTPException(status_code=500, detail="OAuth not configured")
    return {"url": runner.auth.get_auth_url()}


@router.get("/callback", response_class=HTMLResponse)
async def auth_callback(code: str | None = Query(None), runner: TaskRunner = Depends(get_task_runner)):
    """OAuth redirect target; stores the token."""
    if not code:
        return HTMLResponse("Missing authorization code", status_code=400)

    try:
        await runner.auth.exchange_code(code)
    except Exception as e:
        logger.error(f"OAuth code exchange failed: {e}")
        return HTMLResponse(FAILURE_PAGE, status_code=500)

    return HTMLResponse(SUCCESS_PAGE)
