"""Tracked business routes."""

import logging
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from listing_tracker.api.deps import get_task_runner
from listing_tracker.worker.tasks import TaskRunner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/businesses", tags=["businesses"])


class BusinessCreate(BaseModel):
    url: str


class BusinessResponse(BaseModel):
    id: int
    canonical_key: str
    place_id: str | None
    cid: str | None
    url: str
    name: str | None
    spreadsheet_id: str | None
    folder_id: str | None
    last_checked_date: str | None
    last_checked_at: str | None
    created_at: datetime

    class Config:
        from_attributes = True


@router.get("", response_model=List[BusinessResponse])
async def list_businesses(runner: TaskRunner = Depends(get_task_runner)):
    """List all tracked businesses, newest first."""
    return await runner.repository.list_all()


@router.post("", response_model=BusinessResponse, status_code=201)
async def create_business(data: BusinessCreate, runner: TaskRunner = Depends(get_task_runner)):
    """
    Start tracking a Maps listing.

    Runs a first extraction and, when Google is authorized, creates the
    business folder and spreadsheet and appends the first observation.
    """
    business = await runner.onboard(data.url)
    logger.info(f"Tracking business {business.id} ({business.canonical_key})")
    return business


@router.post("/check-all")
async def check_all(runner: TaskRunner = Depends(get_task_runner)):
    """Check every business now, ignoring the daily gate."""
    result = await runner.check_all(force=True)
    return {"success": True, **result.to_dict()}


@router.get("/{business_id}", response_model=BusinessResponse)
async def get_business(business_id: int, runner: TaskRunner = Depends(get_task_runner)):
    return await runner.repository.require(business_id)


@router.post("/{business_id}/check")
async def check_business(business_id: int, runner: TaskRunner = Depends(get_task_runner)):
    """Check one business now, ignoring the daily gate."""
    outcome = await runner.check(business_id, force=True)
    observation = outcome.observation
    return {
        "success": True,
        "status": outcome.status.value,
        "activity": observation.activity if observation else None,
        "errorCode": observation.error_code if observation else None,
    }


@router.delete("/{business_id}")
async def delete_business(business_id: int, runner: TaskRunner = Depends(get_task_runner)):
    """Stop tracking a business. Its spreadsheet and Drive folder are kept."""
    await runner.delete(business_id)
    return {"success": True}
