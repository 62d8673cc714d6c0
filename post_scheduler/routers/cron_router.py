"""Reminder trigger for the external cron (bearer CRON_SECRET)."""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from post_scheduler.auth import verify_cron_token
from post_scheduler.db import get_session_factory
from post_scheduler.schemas.scheduler import ReminderTriggerResponse
from post_scheduler.services.dispatch_client import (
    DispatchClient,
    DispatchConfigurationError,
    get_dispatch_client,
)
from post_scheduler.services.reminder_scheduler import DataError, run_reminders

router = APIRouter(prefix="/api/cron", tags=["cron"])


@router.api_route(
    "/send-notifications",
    methods=["GET", "POST"],
    response_model=ReminderTriggerResponse,
    dependencies=[Depends(verify_cron_token)],
)
async def send_notifications(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    dispatch: DispatchClient = Depends(get_dispatch_client),
) -> ReminderTriggerResponse:
    """
    Run the reminder scheduler once. Safe to call more often than needed.
    401 bad token, 500 missing key or failed candidate query (nothing claimed).
    """
    try:
        summary = await run_reminders(session_factory=session_factory, dispatch=dispatch, trigger="http")
    except DispatchConfigurationError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Reminder dispatch not configured: {e.reason}",
        )
    except DataError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load reminder candidates",
        )
    return ReminderTriggerResponse(
        found=summary.found,
        sent=summary.sent,
        failed=summary.failed,
        skipped=summary.skipped,
        deferred=summary.deferred,
        stale=summary.stale,
        run_id=summary.run_id,
        timestamp=summary.finished_at or datetime.now(timezone.utc),
    )
