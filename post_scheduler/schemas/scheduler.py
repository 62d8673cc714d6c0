"""Reminder scheduler schemas."""
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel


class SchedulerStatusResponse(BaseModel):
    """GET /scheduler/status."""

    enabled: bool
    interval_seconds: int
    lead_minutes: int
    last_tick_at: Optional[str] = None
    last_run: Optional[Dict[str, Any]] = None
    pending_count: int = 0
    # Posts whose email may be out but was never confirmed; left for manual handling.
    delivery_unknown_count: int = 0


class ReminderTriggerResponse(BaseModel):
    """GET|POST /api/cron/send-notifications."""

    found: int
    sent: int
    failed: int
    skipped: int
    deferred: int
    stale: int
    run_id: UUID
    timestamp: datetime


class ReminderRunOut(BaseModel):
    id: UUID
    trigger: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    found: int
    sent: int
    failed: int
    skipped: int
    deferred: int
    stale: int
    error: Optional[str] = None


class ReminderRunsResponse(BaseModel):
    """GET /scheduler/runs."""

    runs: List[ReminderRunOut]
