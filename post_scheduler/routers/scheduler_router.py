"""Reminder scheduler status and run history."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from post_scheduler.db import get_db
from post_scheduler.schemas.scheduler import ReminderRunOut, ReminderRunsResponse, SchedulerStatusResponse
from post_scheduler.services import reminder_scheduler

router = APIRouter(prefix="/scheduler", tags=["scheduler"])


@router.get("/status", response_model=SchedulerStatusResponse)
async def get_scheduler_status(
    db: AsyncSession = Depends(get_db),
) -> SchedulerStatusResponse:
    """Loop enabled/interval, last tick and run, posts due for a reminder or in doubt."""
    return SchedulerStatusResponse(**await reminder_scheduler.get_scheduler_status(db))


@router.get("/runs", response_model=ReminderRunsResponse)
async def get_runs(
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> ReminderRunsResponse:
    runs = await reminder_scheduler.list_runs(db, limit=limit)
    return ReminderRunsResponse(
        runs=[
            ReminderRunOut(
                id=r.id,
                trigger=r.trigger,
                started_at=r.started_at,
                finished_at=r.finished_at,
                found=r.found,
                sent=r.sent,
                failed=r.failed,
                skipped=r.skipped,
                deferred=r.deferred,
                stale=r.stale,
                error=r.error,
            )
            for r in runs
        ]
    )
